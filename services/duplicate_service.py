"""
Duplicate product detection and cleanup recommendations.

Two products are duplicates when their names match after lowercasing and
trimming. Within each group the most expensive product is kept (ties go to
the lexicographically smallest id); the rest are recommended for deletion.

Nothing here deletes anything. Callers dispatch the deletion using
DuplicateAnalysis.ids_to_delete.
"""

import structlog

from models.command import CleanupRecommendation, DuplicateAnalysis, DuplicateSummary
from models.product import Product
from utils.text_utils import normalize_name

logger = structlog.get_logger(__name__)


def identify_duplicates(products: list[Product]) -> dict[str, list[Product]]:
    """
    Group products by normalized name, keeping only groups of 2+.

    Args:
        products: Catalog

    Returns:
        normalized name → products in catalog order
    """
    groups: dict[str, list[Product]] = {}
    for product in products:
        key = normalize_name(product.name)
        if key is None:
            continue
        groups.setdefault(key, []).append(product)

    duplicates = {name: group for name, group in groups.items() if len(group) > 1}

    logger.info(
        "duplicates_identified",
        catalog_size=len(products),
        duplicate_groups=len(duplicates)
    )
    return duplicates


def _keep_order(product: Product) -> tuple[float, str]:
    # Price descending, then id ascending
    return (-product.price, product.id)


def recommend_cleanup(duplicates: dict[str, list[Product]]) -> DuplicateAnalysis:
    """
    Decide which product to keep in each duplicate group.

    Args:
        duplicates: Output of identify_duplicates

    Returns:
        DuplicateAnalysis with per-group recommendations and a summary
    """
    recommendations = []
    for name, group in duplicates.items():
        ordered = sorted(group, key=_keep_order)
        recommendations.append(
            CleanupRecommendation(
                product_name=name,
                duplicate_count=len(group),
                keep=ordered[0],
                delete=ordered[1:]
            )
        )

    summary = DuplicateSummary(
        duplicate_groups=len(duplicates),
        total_products=sum(len(group) for group in duplicates.values()),
        recommended_to_delete=sum(len(rec.delete) for rec in recommendations)
    )

    return DuplicateAnalysis(summary=summary, recommendations=recommendations)
