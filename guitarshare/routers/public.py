# guitarshare/routers/public.py
# Unauthenticated read of an active share

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from guitarshare.routers.deps import get_share_service
from guitarshare.schemas.share import PublicShareOut
from guitarshare.services.share_service import ShareService

router = APIRouter(prefix="/public", tags=["Public"])


@router.get("/shares/{share_id}", response_model=PublicShareOut)
async def get_public_share(
    share_id: str,
    request: Request,
    service: ShareService = Depends(get_share_service),
) -> PublicShareOut:
    """Projected guitar and watermarked images. No owner data is returned."""
    return await service.get_public(share_id, dict(request.headers))
