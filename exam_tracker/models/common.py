"""
Common response models.

Generic page wrapper shared by history and saved-file listings.

Dependencies: pydantic
System role: Common pagination structure
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One backend page of items plus the continuation flag."""

    model_config = ConfigDict(frozen=True)

    items: list[T]
    page: int = Field(default=1, ge=1)
    has_more: bool = False
