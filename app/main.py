"""
Streamlit Frontend for the Personal Ledger

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Visual feedback for all operations
4. No hidden actions

Every page works on the account typed in the sidebar. There is no
login: the account name is passed straight through as the owner id.
"""

import asyncio
from datetime import date, datetime, time

import streamlit as st

from src.config import validate_all_settings
from src.errors import InputValidationError, LedgerError
from src.models.ledger import EntryKind
from src.orchestrator import LedgerFacade, create_app_components
from src.validation import get_user_friendly_summary


# Page configuration
st.set_page_config(
    page_title="Personal Ledger",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One loop for the whole session so stores keep their async state."""
    return asyncio.new_event_loop()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return get_event_loop().run_until_complete(coro)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return run_async(create_app_components())


def show_error(error: LedgerError) -> None:
    """Render a component error in plain language."""
    if isinstance(error, InputValidationError):
        st.error(get_user_friendly_summary(error))
    elif error.kind == "conflict":
        st.warning(error.message)
    else:
        st.error(error.message)


def main():
    """Main application entry point."""
    facade, _ = get_components()

    st.sidebar.title("💰 Personal Ledger")
    owner_id = st.sidebar.text_input("Account", value="demo").strip()
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📒 Transactions", "🎯 Budgets", "📊 Reports", "⚙️ Settings"],
        index=0,
    )

    if not owner_id and page != "⚙️ Settings":
        st.info("Enter an account name in the sidebar to get started.")
        return

    if page == "📒 Transactions":
        render_transactions_page(facade, owner_id)
    elif page == "🎯 Budgets":
        render_budgets_page(facade, owner_id)
    elif page == "📊 Reports":
        render_reports_page(facade, owner_id)
    elif page == "⚙️ Settings":
        render_settings_page()


def category_picker(facade: LedgerFacade, owner_id: str, kind: EntryKind, key: str):
    """Selectbox over the categories of one kind."""
    categories = [
        c for c in run_async(facade.list_categories(owner_id))
        if c.kind == kind
    ]
    return st.selectbox(
        "Category",
        options=categories,
        format_func=lambda c: f"{c.icon} {c.name}",
        key=key,
    )


def render_transactions_page(facade: LedgerFacade, owner_id: str):
    """Balance, filtered transaction list and the add form."""
    st.title("📒 Transactions")

    balance = run_async(facade.get_balance(owner_id))
    col1, col2, col3 = st.columns(3)
    col1.metric("Total income", f"{balance.total_income:,.2f}")
    col2.metric("Total expense", f"{balance.total_expense:,.2f}")
    col3.metric("Balance", f"{balance.balance:,.2f}")

    with st.expander("➕ Add transaction"):
        kind = st.radio(
            "Type",
            options=list(EntryKind),
            format_func=lambda k: k.value.title(),
            horizontal=True,
        )
        with st.form("add_entry", clear_on_submit=True):
            category = category_picker(facade, owner_id, kind, key="entry_category")
            amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
            description = st.text_input("Description")
            occurred_on = st.date_input("Date", value=date.today())
            if st.form_submit_button("Save", type="primary"):
                try:
                    run_async(facade.create_entry(owner_id, {
                        "category_id": category.id if category else None,
                        "kind": kind,
                        "amount": f"{amount:.2f}",
                        "description": description,
                        "occurred_on": occurred_on,
                    }))
                    st.success("Transaction saved")
                except LedgerError as e:
                    show_error(e)

    st.markdown("---")

    # Filters
    col1, col2, col3 = st.columns(3)
    with col1:
        kind_filter = st.selectbox(
            "Type",
            options=[None] + list(EntryKind),
            format_func=lambda k: "All" if k is None else k.value.title(),
        )
    with col2:
        date_from = st.date_input("From", value=None)
    with col3:
        date_to = st.date_input("To", value=None)

    page_number = st.number_input("Page", min_value=1, value=1, step=1)

    filters = {"kind": kind_filter, "date_from": date_from}
    if date_to:
        filters["date_to"] = datetime.combine(date_to, time(23, 59, 59))

    try:
        result = run_async(facade.list_entries(owner_id, filters, page=page_number))
    except LedgerError as e:
        show_error(e)
        return

    if not result.entries:
        st.info("No transactions found.")
        return

    st.caption(f"Page {result.page} of {max(result.total_pages, 1)} ({result.total} transactions)")
    for entry in result.entries:
        sign = "+" if entry.kind == EntryKind.INCOME else "-"
        name = entry.category.name if entry.category else "Uncategorized"
        col1, col2 = st.columns([5, 1])
        col1.markdown(
            f"**{entry.occurred_on:%d %b %Y}** · {name} · "
            f"{sign}{entry.amount:,.2f} {entry.currency} · {entry.description}"
        )
        if col2.button("🗑️", key=f"delete_{entry.id}"):
            try:
                run_async(facade.delete_entry(entry.id, owner_id))
                st.rerun()
            except LedgerError as e:
                show_error(e)


def period_picker(key: str) -> tuple[int, int]:
    today = date.today()
    col1, col2 = st.columns(2)
    month = col1.selectbox(
        "Month",
        options=range(1, 13),
        index=today.month - 1,
        format_func=lambda m: MONTH_NAMES[m - 1],
        key=f"{key}_month",
    )
    year = col2.number_input(
        "Year", min_value=1, max_value=9999, value=today.year, key=f"{key}_year"
    )
    return month, int(year)


def render_budgets_page(facade: LedgerFacade, owner_id: str):
    """Budget-versus-actual for a month, plus the add form."""
    st.title("🎯 Budgets")
    month, year = period_picker("budgets")

    with st.expander("➕ Add budget"):
        with st.form("add_budget", clear_on_submit=True):
            category = category_picker(
                facade, owner_id, EntryKind.EXPENSE, key="budget_category"
            )
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
            if st.form_submit_button("Save", type="primary"):
                try:
                    run_async(facade.create_budget(owner_id, {
                        "category_id": category.id if category else None,
                        "amount": f"{amount:.2f}",
                        "month": month,
                        "year": year,
                    }))
                    st.success("Budget saved")
                except LedgerError as e:
                    show_error(e)

    st.markdown("---")

    statuses = run_async(facade.get_budget_status(owner_id, month, year))
    if not statuses:
        st.info(f"No budgets for {MONTH_NAMES[month - 1]} {year}.")
        return

    for status in statuses:
        name = status.category.name if status.category else "Uncategorized"
        icon = status.category.icon if status.category else "📦"
        col1, col2 = st.columns([5, 1])
        with col1:
            st.markdown(
                f"{icon} **{name}**: {status.spent_amount:,.2f} of "
                f"{status.budget_amount:,.2f} ({status.percentage}%)"
            )
            st.progress(min(status.percentage, 100) / 100)
            if status.is_over_budget:
                st.error(f"Over budget by {-status.remaining:,.2f}")
        if col2.button("🗑️", key=f"delete_budget_{status.id}"):
            try:
                run_async(facade.delete_budget(status.id, owner_id))
                st.rerun()
            except LedgerError as e:
                show_error(e)


def render_reports_page(facade: LedgerFacade, owner_id: str):
    """Monthly breakdown and yearly trend."""
    st.title("📊 Reports")
    month, year = period_picker("reports")

    report = run_async(facade.get_monthly_report(owner_id, month, year))
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", f"{report.total_income:,.2f}")
    col2.metric("Expense", f"{report.total_expense:,.2f}")
    col3.metric("Balance", f"{report.balance:,.2f}")
    col4.metric("Transactions", report.transactions_count)

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Expenses by category")
        if report.expenses_by_category:
            st.bar_chart({
                group.category.name: float(group.total)
                for group in report.expenses_by_category
            })
        else:
            st.caption("No expenses this month.")
    with col2:
        st.subheader("Income by category")
        if report.income_by_category:
            st.bar_chart({
                group.category.name: float(group.total)
                for group in report.income_by_category
            })
        else:
            st.caption("No income this month.")

    st.markdown("---")
    st.subheader(f"{year} trend")
    trend = run_async(facade.get_yearly_trend(owner_id, year))
    st.line_chart({
        "income": [float(m.income) for m in trend.months],
        "expense": [float(m.expense) for m in trend.months],
    })


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    sections = [
        ("Storage", "storage"),
        ("Ledger defaults", "ledger"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "Configuration is read from environment variables or a `.env` file "
        "(`LEDGER_STORAGE_BACKEND`, `LEDGER_STORAGE_DATABASE_URL`, "
        "`LEDGER_DEFAULT_CURRENCY`, ...)."
    )


if __name__ == "__main__":
    main()
