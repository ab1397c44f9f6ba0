"""
Book Schemas

Pydantic schemas for book-related API requests and responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BookCreate(BaseModel):
    """Schema for creating a book."""
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=255)
    isbn: str = Field(
        ...,
        pattern=r"^(?:\d{9}[\dX]|\d{13})$",
        description="ISBN-10 or ISBN-13 without separators",
    )
    description: Optional[str] = Field(None, max_length=2000)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    stock_quantity: int = Field(default=0, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    publisher: Optional[str] = Field(None, max_length=255)
    publication_year: Optional[int] = Field(None, ge=1000, le=9999)
    language: str = Field(default="English", max_length=50)
    pages: Optional[int] = Field(None, gt=0)


class BookUpdate(BaseModel):
    """Schema for updating a book. Only fields that are set are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    isbn: Optional[str] = Field(None, pattern=r"^(?:\d{9}[\dX]|\d{13})$")
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    publisher: Optional[str] = Field(None, max_length=255)
    publication_year: Optional[int] = Field(None, ge=1000, le=9999)
    language: Optional[str] = Field(None, max_length=50)
    pages: Optional[int] = Field(None, gt=0)
    active: Optional[bool] = None


class BookResponse(BaseModel):
    """Schema for book response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    author: str
    isbn: str
    description: Optional[str] = None
    price: Decimal
    stock_quantity: int
    category: Optional[str] = None
    publisher: Optional[str] = None
    publication_year: Optional[int] = None
    language: str
    pages: Optional[int] = None
    active: bool
    created_at: datetime
    updated_at: datetime
