from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")

class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes as camelCase."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

class PageMeta(CamelModel):
    total_count: int
    current_page: int
    page_size: int
    total_pages: int

class Page(CamelModel, Generic[T]):
    data: List[T]
    meta: PageMeta
