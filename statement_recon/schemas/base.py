"""Base schema classes and generic types."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ListResponse(BaseModel, Generic[T]):  # noqa: UP046
    """Generic list response with item count.

    For paginated responses, use query parameters (limit/offset) at the router level.
    """

    items: list[T]
    total: int  # Total count of items matching the query (may exceed len(items))
