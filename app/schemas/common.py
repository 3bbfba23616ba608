from typing import List, Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


# Paginated response wrapper shared by list endpoints
class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


# Admin dashboard
class PostStats(BaseModel):
    total: int
    published: int
    draft: int
    archived: int
