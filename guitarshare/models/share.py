from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OptimizedImage(BaseModel):
    """A resized, watermarked derivative stored under the share's scope."""
    original_id: str
    key: str
    url: str
    width: int
    height: int
    size: Optional[int] = None


class ViewEntry(BaseModel):
    """One anonymized public view. Never holds the raw user agent or IP."""
    viewed_at: datetime
    referrer: Optional[str] = None
    country: Optional[str] = None
    browser: Optional[str] = None


class Share(BaseModel):
    share_id: str
    owner_id: str
    guitar_id: str
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
    shared_fields: dict[str, bool] = Field(default_factory=dict)
    selected_image_ids: list[str] = Field(default_factory=list)
    optimized_images: list[OptimizedImage] = Field(default_factory=list)
    images_processed_at: Optional[datetime] = None
    view_count: int = 0
    views: list[ViewEntry] = Field(default_factory=list)
    last_viewed_at: Optional[datetime] = None
