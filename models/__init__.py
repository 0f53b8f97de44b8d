"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, ResponseSchema
from models.product import Product, canonicalize_category, parse_products
from models.command import (
    ToolName,
    MUTATION_TOOLS,
    is_mutation_tool,
    CommandIntent,
    ToolInvocation,
    IntentHint,
    FilterCriteria,
    CleanupRecommendation,
    DuplicateSummary,
    DuplicateAnalysis,
    BackendErrorDetail,
    BackendResponse,
    CommandRequest,
    CommandResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "ResponseSchema",

    # Product
    "Product",
    "canonicalize_category",
    "parse_products",

    # Command pipeline
    "ToolName",
    "MUTATION_TOOLS",
    "is_mutation_tool",
    "CommandIntent",
    "ToolInvocation",
    "IntentHint",
    "FilterCriteria",
    "CleanupRecommendation",
    "DuplicateSummary",
    "DuplicateAnalysis",
    "BackendErrorDetail",
    "BackendResponse",
    "CommandRequest",
    "CommandResponse",
]
