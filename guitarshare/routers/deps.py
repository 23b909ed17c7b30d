# guitarshare/routers/deps.py
# Dependency providers so handlers stay thin

from __future__ import annotations

import uuid
from functools import lru_cache
from typing import Optional

from fastapi import Header

from guitarshare.config import get_settings
from guitarshare.middleware.error_handler import UnauthorizedError, ValidationError
from guitarshare.repositories.guitar_repository import GuitarRepository
from guitarshare.repositories.share_repository import ShareRepository
from guitarshare.services.analytics import ViewAnalyticsRecorder
from guitarshare.services.image_pipeline import ImagePipeline
from guitarshare.services.share_service import ShareService
from guitarshare.storage.blob_store import S3BlobStore


def get_owner_id(x_owner_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity, set by the authenticating gateway in front of the API."""
    if not x_owner_id or not x_owner_id.strip():
        raise UnauthorizedError()
    return x_owner_id.strip()


def validate_share_id(share_id: str) -> str:
    try:
        uuid.UUID(share_id)
    except ValueError:
        raise ValidationError("Invalid share ID format")
    return share_id


@lru_cache
def get_share_service() -> ShareService:
    """One service per process; it owns the pending analytics tasks."""
    settings = get_settings()
    shares = ShareRepository()
    blobs = S3BlobStore.from_settings(settings)
    return ShareService(
        shares=shares,
        guitars=GuitarRepository(),
        blobs=blobs,
        pipeline=ImagePipeline(blobs, settings),
        recorder=ViewAnalyticsRecorder(shares, settings),
        settings=settings,
    )
