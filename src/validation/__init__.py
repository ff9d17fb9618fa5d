"""Input validation package."""

from src.validation.validator import (
    InputValidator,
    PageRequest,
    get_user_friendly_summary,
)

__all__ = ["InputValidator", "PageRequest", "get_user_friendly_summary"]
