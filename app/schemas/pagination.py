# app/schemas/pagination.py
import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel

DataType = TypeVar("DataType")


class PaginatedResponse(BaseModel, Generic[DataType]):
    """
    Generic schema for paginated responses.
    """
    total_items: int
    total_pages: int
    current_page: int
    size: int
    items: List[DataType]


def total_pages(total_items: int, size: int) -> int:
    return math.ceil(total_items / size) if total_items > 0 else 1
