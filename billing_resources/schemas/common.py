"""Common Pydantic schemas used across the application"""

from typing import Generic, TypeVar, List
from pydantic import BaseModel, Field, field_validator


T = TypeVar('T')


class Pagination(BaseModel):
    """Schema for pagination parameters"""
    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    page_size: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Number of items per page"
    )

    @property
    def offset(self) -> int:
        """Calculate offset for database queries"""
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        """Get limit for database queries"""
        return self.page_size


class Page(BaseModel, Generic[T]):
    """Schema for paginated response"""
    items: List[T] = Field(..., description="List of items for current page")
    total: int = Field(..., ge=0, description="Total number of items")
    page: int = Field(..., ge=1, description="Current page number")
    page_size: int = Field(..., ge=1, description="Items per page")
    total_pages: int = Field(..., ge=0, description="Total number of pages")

    @field_validator('total_pages')
    @classmethod
    def validate_total_pages(cls, v: int, info) -> int:
        """Ensure total_pages is consistent with total and page_size"""
        if 'total' in info.data and 'page_size' in info.data:
            expected_pages = (info.data['total'] + info.data['page_size'] - 1) // info.data['page_size']
            if v != expected_pages:
                raise ValueError(f'total_pages should be {expected_pages} based on total and page_size')
        return v

    @classmethod
    def build(cls, items: List[T], total: int, pagination: Pagination) -> "Page[T]":
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
        )
