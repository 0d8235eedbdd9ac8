import math

from pydantic import BaseModel


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total_count: int) -> "Pagination":
        total_pages = math.ceil(total_count / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total_count=total_count,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


def reject_null(value):
    """Update payloads may omit a required column but never send it as null."""
    if value is None:
        raise ValueError("may not be null")
    return value


class UserBrief(BaseModel):
    id: int
    name: str | None = None
    email: str
    model_config = {"from_attributes": True}
