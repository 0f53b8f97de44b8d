"""
Filter criteria extraction for bulk commands.

Turns "Set all MacBook to 2800" or "delete all products in Furniture
category" into a FilterCriteria plus an optional target price, and applies
criteria to a catalog.
"""

import re
from dataclasses import dataclass
from typing import Optional
import structlog

from models.command import FilterCriteria
from models.product import Product
from utils.text_utils import contains_ci, equals_ci

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NameKeyword:
    """A product-name token the pipeline recognizes in commands."""
    pattern: str                # substring matched against product names
    aliases: tuple[str, ...]    # spellings accepted in command text
    label: str                  # display form for messages


# Checked in order; first alias found in the command wins
NAME_KEYWORDS: tuple[NameKeyword, ...] = (
    NameKeyword("macbook", ("macbook", "mac book"), "MacBook"),
    NameKeyword("iphone", ("iphone",), "iPhone"),
    NameKeyword("laptop", ("laptop",), "Laptop"),
)

HOME_OFFICE_SEGMENT = "HomeOffice"

_SEGMENT_RE = re.compile(r"(\w+)\s+segment\b", re.IGNORECASE)
_CATEGORY_RE = re.compile(r"(\w+)\s+category\b", re.IGNORECASE)
# "2800", "2,800", "799.99"; a number running into ",<digit>" is not a price
PRICE_PATTERN = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?!,?\d)"
_TARGET_PRICE_RE = re.compile(rf"\b(?:to|price)\s+\$?({PRICE_PATTERN})", re.IGNORECASE)


def find_name_keyword(text: str) -> Optional[NameKeyword]:
    """
    Find the first recognized product-name keyword in a command.

    Args:
        text: Command text

    Returns:
        NameKeyword, or None
    """
    lowered = text.lower()
    for keyword in NAME_KEYWORDS:
        if any(alias in lowered for alias in keyword.aliases):
            return keyword
    return None


def filter_by_name_keyword(products: list[Product], keyword: NameKeyword) -> list[Product]:
    """Products whose name contains the keyword pattern."""
    return [p for p in products if contains_ci(p.name, keyword.pattern)]


def extract_filter_criteria(text: str) -> FilterCriteria:
    """
    Derive bulk filter criteria from command text.

    Rules, first match wins:
        1. "home office" / "homeoffice" → segment HomeOffice
        2. "<word> segment" → segment <word>
        3. "<word> category" → category <word>
        4. known product-name keyword → name pattern

    A rule whose trigger word is present but has no preceding word ends
    the search with empty criteria.

    Args:
        text: Command text

    Returns:
        FilterCriteria; empty when undetermined
    """
    lowered = text.lower()

    if "home office" in lowered or "homeoffice" in lowered:
        return FilterCriteria(segment=HOME_OFFICE_SEGMENT)

    if re.search(r"\bsegment\b", lowered):
        match = _SEGMENT_RE.search(text)
        return FilterCriteria(segment=match.group(1)) if match else FilterCriteria()

    if re.search(r"\bcategory\b", lowered):
        match = _CATEGORY_RE.search(text)
        return FilterCriteria(category=match.group(1)) if match else FilterCriteria()

    keyword = find_name_keyword(text)
    if keyword:
        return FilterCriteria(name_pattern=keyword.pattern)

    return FilterCriteria()


def extract_target_price(text: str) -> Optional[float]:
    """
    Extract the target price from "... to 500" / "... price 500".

    Args:
        text: Command text

    Returns:
        Price as float, or None if absent
    """
    match = _TARGET_PRICE_RE.search(text)
    if not match:
        return None
    return parse_price(match.group(1))


def parse_price(value: str) -> float:
    """"2,800" -> 2800.0"""
    return float(value.replace(",", ""))


def filter_by_criteria(products: list[Product], criteria: FilterCriteria) -> list[Product]:
    """
    Apply criteria to a catalog.

    Only the populated field is evaluated: segment and category by
    case-insensitive equality, name pattern by case-insensitive substring.
    Records without a value for that field never match. Empty criteria
    match nothing.

    Args:
        products: Catalog
        criteria: Criteria from extract_filter_criteria

    Returns:
        Matching products in catalog order
    """
    if criteria.segment:
        matched = [p for p in products if equals_ci(p.segment, criteria.segment)]
    elif criteria.category:
        matched = [p for p in products if equals_ci(p.category, criteria.category)]
    elif criteria.name_pattern:
        matched = [p for p in products if contains_ci(p.name, criteria.name_pattern)]
    else:
        matched = []

    logger.debug(
        "criteria_applied",
        criteria=criteria.describe(),
        catalog_size=len(products),
        matched=len(matched)
    )
    return matched
