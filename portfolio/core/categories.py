"""Gallery categories."""

from typing import Optional

CATEGORIES = ("nature", "wildlife", "architecture", "travel")


def is_valid_category(category: Optional[str]) -> bool:
    # Exact, case-sensitive membership; "" and None are never valid
    return isinstance(category, str) and category in CATEGORIES
