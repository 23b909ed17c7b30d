from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, StrictBool

from guitarshare.models.share import OptimizedImage, ViewEntry


class ShareCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    guitar_id: str
    shared_fields: Optional[dict[str, StrictBool]] = None
    selected_image_ids: Optional[list[str]] = None


class ShareUpdate(BaseModel):
    """Partial update; only the fields present in the body are applied."""
    model_config = ConfigDict(extra="forbid")

    shared_fields: Optional[dict[str, StrictBool]] = None
    selected_image_ids: Optional[list[str]] = None
    is_active: Optional[StrictBool] = None


class ShareOut(BaseModel):
    share_id: str
    guitar_id: str
    created_at: datetime
    updated_at: datetime
    is_active: bool
    shared_fields: dict[str, bool]
    selected_image_ids: list[str]
    optimized_images: list[OptimizedImage]
    images_processed_at: Optional[datetime] = None
    view_count: int
    views: list[ViewEntry]
    last_viewed_at: Optional[datetime] = None
    share_url: str


class GuitarDetail(BaseModel):
    brand: Optional[Any] = None
    model: Optional[Any] = None
    year: Optional[Any] = None
    images: list[dict[str, Any]] = []


class ShareDetailOut(ShareOut):
    guitar: Optional[GuitarDetail] = None


class GuitarSummary(BaseModel):
    brand: Optional[Any] = None
    model: Optional[Any] = None
    year: Optional[Any] = None
    thumbnail: Optional[str] = None


class ShareSummaryOut(BaseModel):
    share_id: str
    guitar_id: str
    created_at: datetime
    updated_at: datetime
    is_active: bool
    view_count: int
    image_count: int
    share_url: str
    guitar: Optional[GuitarSummary] = None


class ShareListOut(BaseModel):
    shares: list[ShareSummaryOut]
    count: int


class PublicImage(BaseModel):
    id: str
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class PublicShareOut(BaseModel):
    """Everything an anonymous viewer gets. Nothing else leaves the service."""
    share_id: str
    created_at: datetime
    guitar: dict[str, Any]
    images: list[PublicImage]
