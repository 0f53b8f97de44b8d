"""
Command pipeline schemas.

Tool invocations, filter criteria, duplicate analysis results and the
HTTP request/response payloads.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from models.base import BaseSchema, ResponseSchema
from models.product import Product


class ToolName(str, Enum):
    """Operations the catalog backend knows."""
    LIST_PRODUCTS = "list_products"
    GET_PRODUCT = "get_product"
    GET_PRODUCTS_BY_CATEGORY = "get_products_by_category"
    GET_PRODUCTS_BY_SEGMENT = "get_products_by_segment"
    GET_PRODUCT_BY_NAME = "get_product_by_name"
    CREATE_PRODUCT = "create_product"
    CREATE_MULTIPLE_PRODUCTS = "create_multiple_products"
    UPDATE_PRODUCT = "update_product"
    UPDATE_PRODUCTS = "update_products"
    DELETE_PRODUCT = "delete_product"
    DELETE_PRODUCTS = "delete_products"
    LIST_TOOLS = "list_tools"


MUTATION_TOOLS = frozenset({
    ToolName.CREATE_PRODUCT.value,
    ToolName.CREATE_MULTIPLE_PRODUCTS.value,
    ToolName.UPDATE_PRODUCT.value,
    ToolName.UPDATE_PRODUCTS.value,
    ToolName.DELETE_PRODUCT.value,
    ToolName.DELETE_PRODUCTS.value,
})


def is_mutation_tool(tool: str) -> bool:
    """Check if a tool changes catalog data."""
    return tool in MUTATION_TOOLS


class CommandIntent(str, Enum):
    """What a command asks for, decided once per command."""
    DUPLICATE_CLEANUP = "duplicate_cleanup"
    DUPLICATE_ANALYSIS = "duplicate_analysis"
    COUNT = "count"
    GROUP_BY_CATEGORY = "group_by_category"
    BULK_DELETE = "bulk_delete"
    BULK_UPDATE = "bulk_update"
    SINGLE_DELETE = "single_delete"
    SINGLE_UPDATE = "single_update"
    CREATE = "create"
    LIST = "list"


class ToolInvocation(BaseModel):
    """
    A call to one backend tool.

    Produced by the pattern matcher or the classifier. The tool name is a
    plain string here so that unknown names reach the dispatcher and get
    rejected there with a proper error.
    """
    tool: str = Field(..., min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)

    @field_validator("parameters", mode="before")
    @classmethod
    def parameters_default(cls, v):
        return v or {}


# Classifier output is advisory: the pipeline's own extractors decide what runs
IntentHint = ToolInvocation


class FilterCriteria(BaseSchema):
    """
    Bulk filter derived from command text.

    At most one field is populated. Empty means "undetermined", never
    "match everything".
    """
    segment: Optional[str] = None
    category: Optional[str] = None
    name_pattern: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.segment or self.category or self.name_pattern)

    def describe(self) -> dict:
        """Populated fields only, for messages and logs."""
        return self.model_dump(exclude_none=True)


# ===================
# DUPLICATES
# ===================

class CleanupRecommendation(ResponseSchema):
    """Which member of a duplicate group to keep and which to delete."""
    product_name: str
    duplicate_count: int = Field(..., ge=2)
    keep: Product
    delete: list[Product]


class DuplicateSummary(ResponseSchema):
    duplicate_groups: int
    total_products: int
    recommended_to_delete: int


class DuplicateAnalysis(ResponseSchema):
    summary: DuplicateSummary
    recommendations: list[CleanupRecommendation]

    @property
    def ids_to_delete(self) -> list[str]:
        return [p.id for rec in self.recommendations for p in rec.delete]


# ===================
# BACKEND
# ===================

class BackendErrorDetail(BaseModel):
    """JSON-RPC error object."""
    code: Optional[int] = None
    message: str = "Unknown error"
    data: Any = None

    def describe(self) -> str:
        if self.data:
            return f"{self.message}: {self.data}"
        return self.message


class BackendResponse(BaseModel):
    """Unwrapped JSON-RPC response from the MCP server."""
    id: Any = None
    result: Any = None
    error: Optional[BackendErrorDetail] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_not_found(self) -> bool:
        """Error envelope that means "no such record"."""
        if self.error is None:
            return False
        text = f"{self.error.message} {self.error.data or ''}".lower()
        return "404" in text or "not found" in text


# ===================
# API
# ===================

class CommandRequest(BaseModel):
    """POST /api/command body."""
    command: Optional[str] = Field(
        None,
        description="Free-text command",
        examples=["Delete HP Spectre", "Set all MacBook to 2800"]
    )


class CommandResponse(BaseModel):
    """Successful command response."""
    result: Any
