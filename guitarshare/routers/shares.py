# guitarshare/routers/shares.py
# Owner endpoints: create, list, read, update and delete shares

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from guitarshare.routers.deps import get_owner_id, get_share_service, validate_share_id
from guitarshare.schemas.share import ShareCreate, ShareDetailOut, ShareListOut, ShareOut, ShareUpdate
from guitarshare.services.share_service import ShareService

router = APIRouter(prefix="/shares", tags=["Shares"])


@router.post("", response_model=ShareOut, status_code=status.HTTP_201_CREATED)
async def create_share(
    payload: ShareCreate,
    owner_id: str = Depends(get_owner_id),
    service: ShareService = Depends(get_share_service),
) -> ShareOut:
    return await service.create(
        owner_id,
        payload.guitar_id,
        shared_fields=payload.shared_fields,
        selected_image_ids=payload.selected_image_ids,
    )


@router.get("", response_model=ShareListOut)
async def list_shares(
    owner_id: str = Depends(get_owner_id),
    service: ShareService = Depends(get_share_service),
) -> ShareListOut:
    return await service.list(owner_id)


@router.get("/{share_id}", response_model=ShareDetailOut)
async def get_share(
    share_id: str = Depends(validate_share_id),
    owner_id: str = Depends(get_owner_id),
    service: ShareService = Depends(get_share_service),
) -> ShareDetailOut:
    return await service.get(owner_id, share_id)


@router.patch("/{share_id}", response_model=ShareOut)
async def update_share(
    payload: ShareUpdate,
    share_id: str = Depends(validate_share_id),
    owner_id: str = Depends(get_owner_id),
    service: ShareService = Depends(get_share_service),
) -> ShareOut:
    # Absent fields stay untouched; explicit nulls are rejected by the service
    return await service.update(owner_id, share_id, payload.model_dump(exclude_unset=True))


@router.delete("/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_share(
    share_id: str = Depends(validate_share_id),
    owner_id: str = Depends(get_owner_id),
    service: ShareService = Depends(get_share_service),
) -> Response:
    await service.delete(owner_id, share_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
