"""Common Pydantic models used across the API."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SecureMindBaseModel(BaseModel):
    """Base model with common configuration.

    Fields are snake_case in Python and camelCase on the wire; input is
    accepted in either form.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
    )


class TimestampMixin(SecureMindBaseModel):
    """Mixin for models with timestamps."""

    created_at: datetime
    updated_at: datetime


class PaginationParams(SecureMindBaseModel):
    """Pagination parameters for list endpoints."""

    cursor: str | None = Field(default=None, description="Cursor for pagination")
    limit: int = Field(default=50, ge=1, le=100, description="Number of items per page")


T = TypeVar("T")


class CursorPage(SecureMindBaseModel, Generic[T]):
    """Cursor-based pagination response."""

    items: list[T]
    next_cursor: str | None = Field(
        default=None, description="Cursor for next page, null if no more pages"
    )
    has_more: bool = Field(description="Whether there are more items")


class OkResponse(SecureMindBaseModel):
    """Generic acknowledgement."""

    ok: bool = True


class CountResponse(SecureMindBaseModel):
    """Number of records written by a fan-out."""

    count: int
