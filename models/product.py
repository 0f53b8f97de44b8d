"""
Product schemas for validation and serialization.

Products arrive from the MCP backend on every resolution pass; nothing
here is persisted locally.
"""

from pydantic import ConfigDict, Field, field_validator, model_validator
from typing import Optional

from models.base import BaseSchema


def canonicalize_category(value: Optional[str]) -> Optional[str]:
    """
    Canonical category casing: leading capital, rest lowercase.

    "electronics" -> "Electronics", "OFFICE FURNITURE" -> "Office furniture".
    Blank values become None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    return value.capitalize()


class Product(BaseSchema):
    """
    A catalog record as returned by the backend.

    `id` is the only stable key. Names are display values and may repeat.
    Unknown backend fields are preserved. `category` is the canonical form
    used for matching and display; `source_category` keeps the backend's own
    casing and is what updates write back.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1, description="Backend-assigned product id")
    name: str = Field(..., description="Product display name")
    category: Optional[str] = Field(None, description="Product category")
    segment: Optional[str] = Field(None, description="Market segment (e.g. HomeOffice)")
    price: float = Field(..., description="Unit price")
    source_category: Optional[str] = Field(
        None,
        exclude=True,
        description="Category as stored by the backend"
    )

    @model_validator(mode="before")
    @classmethod
    def keep_source_category(cls, data):
        if isinstance(data, dict) and "source_category" not in data:
            return {**data, "source_category": data.get("category")}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        """Backends sometimes send numeric ids."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("category")
    @classmethod
    def category_canonical(cls, v: Optional[str]) -> Optional[str]:
        """Categories are canonicalized once, at the catalog boundary."""
        return canonicalize_category(v)

    @field_validator("segment", "source_category")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def to_response(self) -> dict:
        """Serialize for a response envelope."""
        return self.model_dump(mode="json", exclude_none=True)


def parse_products(rows: list) -> list[Product]:
    """
    Validate raw backend rows into Products.

    Rows that are not mappings are skipped.
    """
    return [Product.model_validate(row) for row in rows if isinstance(row, dict)]
