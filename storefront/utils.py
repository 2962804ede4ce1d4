"""Utility functions for common operations across the application."""

import math


def normalize_email(email: str) -> str:
    """Convert email to lowercase and strip whitespace."""
    return email.strip().lower()


def escape_like(term: str) -> str:
    """Escape LIKE wildcards (%, _, \\) so user input matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed to show `total` items `limit` at a time."""
    return math.ceil(total / limit) if limit > 0 else 0
