"""
Text utilities for command and product-name matching.

All comparisons in the pipeline are case-insensitive; these helpers keep
the normalization in one place.
"""

from typing import Optional


def normalize_command(command: Optional[str]) -> str:
    """
    Normalize a command for pattern matching and cache keys.

    - "  Show All Products " → "show all products"

    Args:
        command: Raw command text

    Returns:
        Trimmed, lowercased text ("" for None)
    """
    if not command:
        return ""
    return command.strip().lower()


def normalize_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize a product name for grouping/comparison.

    - "  Laptop1 " → "laptop1"

    Args:
        name: Product name

    Returns:
        Lowercased, trimmed name, or None if input is empty
    """
    if not name:
        return None

    name = name.strip()

    if not name:
        return None

    return name.lower()


def contains_ci(text: Optional[str], fragment: str) -> bool:
    """Case-insensitive substring test. Missing text never matches."""
    if not text:
        return False
    return fragment.lower() in text.lower()


def equals_ci(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive equality. Missing values never match."""
    if not left or not right:
        return False
    return left.lower() == right.lower()
