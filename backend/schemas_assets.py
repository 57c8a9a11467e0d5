"""
backend/schemas_assets.py

Pydantic schemas for item (asset), note and catalog requests.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field, validator


def _strip(v):
    if isinstance(v, str):
        return v.strip()
    return v


class ItemCreateRequest(BaseModel):
    """Request schema for creating an item.

    qr_id links an existing, unclaimed QR code; otherwise one is generated.
    """
    title: str = Field(..., min_length=1, max_length=200, description="Item title (required)")
    description: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[str] = Field(None, description="Category to link")
    qr_id: Optional[str] = Field(None, description="Existing QR code to link")

    @validator("title", pre=True)
    def trim_title(cls, v):
        return _strip(v)

    @validator("title")
    def validate_title_non_empty(cls, v):
        if not v:
            raise ValueError("title must not be empty")
        return v


class ItemUpdateRequest(BaseModel):
    """Only provided (non-null) fields are written."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[str] = None
    location_id: Optional[str] = None

    @validator("title", pre=True)
    def trim_title(cls, v):
        return _strip(v)


class NoteCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)

    @validator("content", pre=True)
    def trim_content(cls, v):
        return _strip(v)


class CatalogCreateRequest(BaseModel):
    """Create a category, location, tag or team member (extra fields are per-resource)."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    address: Optional[str] = Field(None, max_length=300)

    @validator("name", pre=True)
    def trim_name(cls, v):
        return _strip(v)
