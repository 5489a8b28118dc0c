"""
Shared Pydantic bases.

RULE: every schema built from an ORM row derives from BaseResponseSchema;
display-only extras (names, totals) are assigned after model_validate.
"""
from math import ceil
from typing import Sequence

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """Create bodies ignore unknown keys so older clients keep working."""
    model_config = ConfigDict(extra="ignore")


class BaseUpdateSchema(BaseModel):
    """
    Partial update bodies.

    Every field is optional; services apply only what the client sent
    (model_dump(exclude_unset=True)).
    """
    model_config = ConfigDict(extra="ignore")


class MessageResponse(BaseModel):
    message: str


def page_count(total: int, size: int) -> int:
    return ceil(total / size) if size else 1


class PaginatedResponse(BaseModel):
    """Envelope for list endpoints; subclasses add a typed `items` field."""
    total: int
    page: int = 1
    size: int = 25
    pages: int = 1

    @classmethod
    def build(cls, items: Sequence, total: int, page: int, size: int):
        return cls(items=list(items), total=total, page=page, size=size, pages=page_count(total, size))
