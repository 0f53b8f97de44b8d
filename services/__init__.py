"""
Business logic services.

Each service handles one stage of command resolution. The pipeline and
result processor depend on integrations and are imported from their modules.
"""

from services.entity_resolver import resolve, resolve_all, looks_like_identifier
from services.filter_criteria_service import (
    extract_filter_criteria,
    extract_target_price,
    filter_by_criteria,
)
from services.duplicate_service import identify_duplicates, recommend_cleanup
from services.pattern_matcher import match_pattern
from services.response_cache_service import ResponseCache
from services.intent_service import classify_intent, reconcile_intent

__all__ = [
    "resolve",
    "resolve_all",
    "looks_like_identifier",
    "extract_filter_criteria",
    "extract_target_price",
    "filter_by_criteria",
    "identify_duplicates",
    "recommend_cleanup",
    "match_pattern",
    "ResponseCache",
    "classify_intent",
    "reconcile_intent",
]
