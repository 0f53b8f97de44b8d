"""
Entity resolution: product name or id → canonical Product.

Commands name products loosely ("Delete HP Spectre", "update iphone 15"),
while the backend only accepts ids. These helpers bridge the two against a
freshly fetched catalog.
"""

from typing import Optional
import structlog

from models.product import Product
from utils.text_utils import contains_ci, equals_ci

logger = structlog.get_logger(__name__)

# Ids are UUID-shaped; anything hyphenated and this long is treated as one
IDENTIFIER_MIN_LENGTH = 31


def looks_like_identifier(reference: str) -> bool:
    """Check if a reference should be matched by id rather than by name."""
    return "-" in reference and len(reference) >= IDENTIFIER_MIN_LENGTH


def resolve(reference: str, candidates: list[Product]) -> Optional[Product]:
    """
    Resolve a name-or-id to a single product.

    Identifier-shaped references match by exact id only. Names try a
    case-insensitive exact match first, then a case-insensitive substring
    match. The first hit in list order wins in both cases.

    Args:
        reference: Product name, partial name, or id
        candidates: Catalog to search

    Returns:
        Matching Product, or None if nothing matches
    """
    reference = reference.strip()
    if not reference:
        return None

    if looks_like_identifier(reference):
        match = next((p for p in candidates if p.id == reference), None)
        logger.debug("resolve_by_id", reference=reference, found=match is not None)
        return match

    match = next((p for p in candidates if equals_ci(p.name, reference)), None)
    if match is None:
        match = next((p for p in candidates if contains_ci(p.name, reference)), None)

    logger.debug(
        "resolve_by_name",
        reference=reference,
        found=match is not None,
        product_id=match.id if match else None
    )
    return match


def resolve_all(reference: str, candidates: list[Product]) -> list[Product]:
    """
    Resolve a reference to every product it could mean.

    Used for "all X" operations: "iPhone" matches "iPhone 14" and
    "iPhone 15 Pro".

    Args:
        reference: Product name fragment, or id
        candidates: Catalog to search

    Returns:
        Matches in list order (possibly empty)
    """
    reference = reference.strip()
    if not reference:
        return []

    if looks_like_identifier(reference):
        return [p for p in candidates if p.id == reference]

    return [p for p in candidates if contains_ci(p.name, reference)]
