# guitarshare/services/share_service.py

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from guitarshare.constants import DEFAULT_SHARED_FIELDS
from guitarshare.middleware.error_handler import GuitarGoneError, NotFoundError, ValidationError
from guitarshare.models.share import OptimizedImage, Share
from guitarshare.observability.metrics import (
    ANALYTICS_FAILURES,
    DERIVATIVE_DELETE_FAILURES,
    PUBLIC_VIEWS,
)
from guitarshare.schemas.share import (
    GuitarDetail,
    GuitarSummary,
    PublicImage,
    PublicShareOut,
    ShareDetailOut,
    ShareListOut,
    ShareOut,
    ShareSummaryOut,
)
from guitarshare.services.field_projector import project
from guitarshare.services.image_pipeline import derivative_key
from guitarshare.services.share_state import plan_update
from guitarshare.utils.logger import log_exception, log_info

UPDATABLE_FIELDS = frozenset({"shared_fields", "selected_image_ids", "is_active"})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _image_ids(guitar: Optional[Mapping[str, Any]]) -> list[str]:
    if not guitar:
        return []
    return [img["id"] for img in guitar.get("images") or [] if img.get("id")]


class ShareService:
    """Owner operations on shares plus the unauthenticated public view."""

    def __init__(self, shares, guitars, blobs, pipeline, recorder, settings):
        self._shares = shares
        self._guitars = guitars
        self._blobs = blobs
        self._pipeline = pipeline
        self._recorder = recorder
        self._frontend_url = settings.FRONTEND_URL
        self._max_images = settings.SHARE_MAX_IMAGES
        self._fallback_to_originals = settings.PUBLIC_FALLBACK_TO_ORIGINALS
        # Strong refs so detached analytics tasks are not garbage collected
        self._background: set[asyncio.Task] = set()

    def share_url(self, share_id: str) -> str:
        return f"{self._frontend_url}/s/{share_id}"

    # --- Validation ---

    @staticmethod
    def _validate_shared_fields(value: Any) -> dict[str, bool]:
        if not isinstance(value, Mapping):
            raise ValidationError("shared_fields must be an object")
        unknown = sorted(name for name in value if name not in DEFAULT_SHARED_FIELDS)
        if unknown:
            raise ValidationError("Unknown shared fields", details={"fields": unknown})
        for name, flag in value.items():
            if not isinstance(flag, bool):
                raise ValidationError(f"shared_fields.{name} must be a boolean")
        return dict(value)

    def _validate_selection(self, value: Any, guitar: Optional[Mapping[str, Any]]) -> list[str]:
        if not isinstance(value, (list, tuple)):
            raise ValidationError("selected_image_ids must be an array")
        if any(not isinstance(image_id, str) for image_id in value):
            raise ValidationError("selected_image_ids must contain image ids")
        if len(value) > self._max_images:
            raise ValidationError(f"Maximum {self._max_images} images can be shared")

        known = set(_image_ids(guitar))
        for image_id in value:
            if image_id not in known:
                raise ValidationError(f"Image ID {image_id} not found in guitar")
        # Ordered set: keep first occurrence
        return list(dict.fromkeys(value))

    @staticmethod
    def _validate_is_active(value: Any) -> bool:
        if not isinstance(value, bool):
            raise ValidationError("is_active must be a boolean")
        return value

    # --- Helpers ---

    async def _load_owned_share(self, owner_id: str, share_id: str) -> Share:
        share = await self._shares.get(owner_id, share_id)
        # Someone else's share and a missing one look the same to the caller
        if share is None or share.owner_id != owner_id:
            raise NotFoundError("Share not found")
        return share

    def _to_out(self, share: Share) -> ShareOut:
        return ShareOut(**share.model_dump(exclude={"owner_id"}), share_url=self.share_url(share.share_id))

    async def _process(self, share: Share, guitar: Mapping[str, Any]) -> Share:
        """Run the image pipeline and store whatever derivatives it produced."""
        try:
            optimized: list[OptimizedImage] = await self._pipeline.process_images(share, guitar)
        except Exception as e:
            # The share stays usable without derivatives
            log_exception(e, "process share images", share_id=share.share_id)
            return share

        if not optimized:
            return share

        fields = {"optimized_images": optimized, "images_processed_at": _now()}
        updated = await self._shares.update(share.owner_id, share.share_id, fields)
        return updated if updated is not None else share.model_copy(update=fields)

    async def _delete_blobs_quietly(self, share_id: str, keys: Iterable[str]) -> None:
        keys = sorted(set(keys))
        if not keys:
            return
        try:
            await self._blobs.delete_many(keys)
        except Exception as e:
            DERIVATIVE_DELETE_FAILURES.inc()
            log_exception(e, "delete share derivatives", share_id=share_id, key_count=len(keys))

    def _spawn_background(self, coro, share_id: str) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(lambda t: self._on_background_done(t, share_id))

    def _on_background_done(self, task: asyncio.Task, share_id: str) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            ANALYTICS_FAILURES.inc()
            log_exception(exc, "record share view", share_id=share_id)

    async def wait_for_background(self) -> None:
        """Wait for pending analytics writes (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # --- Owner operations ---

    async def create(
        self,
        owner_id: str,
        guitar_id: str,
        shared_fields: Optional[Mapping[str, bool]] = None,
        selected_image_ids: Optional[list[str]] = None,
    ) -> ShareOut:
        if not isinstance(guitar_id, str) or not guitar_id:
            raise ValidationError("guitar_id is required")

        guitar = await self._guitars.get(owner_id, guitar_id)
        if guitar is None:
            raise ValidationError("Guitar not found")

        overrides = self._validate_shared_fields(shared_fields) if shared_fields is not None else {}
        if selected_image_ids is not None:
            selected = self._validate_selection(selected_image_ids, guitar)
        else:
            selected = _image_ids(guitar)[:self._max_images]

        now = _now()
        share = Share(
            share_id=str(uuid.uuid4()),
            owner_id=owner_id,
            guitar_id=guitar_id,
            created_at=now,
            updated_at=now,
            is_active=True,
            shared_fields={**DEFAULT_SHARED_FIELDS, **overrides},
            selected_image_ids=selected,
        )
        await self._shares.put(share)
        log_info(
            "Share created",
            owner_id=owner_id,
            share_id=share.share_id,
            guitar_id=guitar_id,
            image_count=len(selected),
        )

        share = await self._process(share, guitar)
        return self._to_out(share)

    async def update(self, owner_id: str, share_id: str, patch: Mapping[str, Any]) -> ShareOut:
        share = await self._load_owned_share(owner_id, share_id)
        # The guitar may have been deleted since the share was made
        guitar = await self._guitars.get(owner_id, share.guitar_id)

        if not isinstance(patch, Mapping):
            raise ValidationError("Update body must be an object")
        unknown = sorted(set(patch) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError("Unknown update fields", details={"fields": unknown})

        validated: dict[str, Any] = {}
        if "shared_fields" in patch:
            validated["shared_fields"] = self._validate_shared_fields(patch["shared_fields"])
        if "selected_image_ids" in patch:
            validated["selected_image_ids"] = self._validate_selection(patch["selected_image_ids"], guitar)
        if "is_active" in patch:
            validated["is_active"] = self._validate_is_active(patch["is_active"])

        plan = plan_update(share, validated)
        plan.fields["updated_at"] = _now()

        updated = await self._shares.update(owner_id, share_id, plan.fields)
        if updated is None:
            raise NotFoundError("Share not found")
        log_info(
            "Share updated",
            owner_id=owner_id,
            share_id=share_id,
            images_changed=plan.images_changed,
            state=plan.state.value,
        )

        if plan.images_changed:
            previous_keys = {img.key for img in share.optimized_images}
            if guitar is not None:
                updated = await self._process(updated, guitar)
            # Derivatives of images dropped from the selection
            await self._delete_blobs_quietly(
                share_id, previous_keys - {img.key for img in updated.optimized_images}
            )

        return self._to_out(updated)

    async def delete(self, owner_id: str, share_id: str) -> None:
        share = await self._load_owned_share(owner_id, share_id)

        keys = {img.key for img in share.optimized_images}
        keys.update(derivative_key(share_id, image_id) for image_id in share.selected_image_ids)
        await self._delete_blobs_quietly(share_id, keys)

        await self._shares.delete(owner_id, share_id)
        log_info(
            "Share deleted",
            owner_id=owner_id,
            share_id=share_id,
            guitar_id=share.guitar_id,
            view_count=share.view_count,
        )

    async def list(self, owner_id: str) -> ShareListOut:
        shares = await self._shares.query_by_owner(owner_id)

        guitar_ids = list(dict.fromkeys(s.guitar_id for s in shares))
        results = await asyncio.gather(
            *(self._guitars.get(owner_id, gid) for gid in guitar_ids),
            return_exceptions=True,
        )
        guitars: dict[str, Optional[dict]] = {}
        for gid, result in zip(guitar_ids, results):
            if isinstance(result, Exception):
                # Listing still works without guitar details
                log_exception(result, "load guitar for share list", guitar_id=gid)
                result = None
            guitars[gid] = result

        summaries = []
        for share in sorted(shares, key=lambda s: s.created_at, reverse=True):
            guitar = guitars.get(share.guitar_id)
            summary = None
            if guitar is not None:
                images = guitar.get("images") or []
                summary = GuitarSummary(
                    brand=guitar.get("brand"),
                    model=guitar.get("model"),
                    year=guitar.get("year"),
                    thumbnail=images[0].get("url") if images else None,
                )
            summaries.append(ShareSummaryOut(
                share_id=share.share_id,
                guitar_id=share.guitar_id,
                created_at=share.created_at,
                updated_at=share.updated_at,
                is_active=share.is_active,
                view_count=share.view_count,
                image_count=len(share.selected_image_ids),
                share_url=self.share_url(share.share_id),
                guitar=summary,
            ))

        return ShareListOut(shares=summaries, count=len(summaries))

    async def get(self, owner_id: str, share_id: str) -> ShareDetailOut:
        share = await self._load_owned_share(owner_id, share_id)
        guitar = await self._guitars.get(owner_id, share.guitar_id)

        detail = None
        if guitar is not None:
            detail = GuitarDetail(
                brand=guitar.get("brand"),
                model=guitar.get("model"),
                year=guitar.get("year"),
                images=guitar.get("images") or [],
            )
        return ShareDetailOut(**self._to_out(share).model_dump(), guitar=detail)

    # --- Public view ---

    def _display_images(self, share: Share, guitar: Mapping[str, Any]) -> list[PublicImage]:
        if share.optimized_images:
            return [
                PublicImage(id=img.original_id, url=img.url, width=img.width, height=img.height)
                for img in share.optimized_images
            ]
        if share.selected_image_ids and not self._fallback_to_originals:
            raise NotFoundError("Share not found")
        # Unwatermarked originals: accepted degradation until derivatives exist
        selected = set(share.selected_image_ids)
        return [
            PublicImage(id=img["id"], url=img["url"])
            for img in guitar.get("images") or []
            if img.get("id") in selected
        ]

    async def get_public(self, share_id: str, headers: Mapping[str, str]) -> PublicShareOut:
        """Unauthenticated view. Missing and inactive shares are indistinguishable."""
        shares = await self._shares.query_by_public_id(share_id)
        share = shares[0] if shares else None
        if share is None or not share.is_active:
            PUBLIC_VIEWS.labels(outcome="not_found").inc()
            raise NotFoundError("Share not found")

        guitar = await self._guitars.get(share.owner_id, share.guitar_id)
        if guitar is None:
            PUBLIC_VIEWS.labels(outcome="guitar_gone").inc()
            raise GuitarGoneError()

        try:
            images = self._display_images(share, guitar)
        except NotFoundError:
            PUBLIC_VIEWS.labels(outcome="not_found").inc()
            raise

        self._spawn_background(self._recorder.record(share, headers), share_id)

        lowered = {k.lower(): v for k, v in headers.items()}
        log_info(
            "Public share viewed",
            share_id=share_id,
            guitar_id=share.guitar_id,
            referrer=lowered.get("referer"),
            country=lowered.get("cloudfront-viewer-country"),
        )
        PUBLIC_VIEWS.labels(outcome="ok").inc()

        return PublicShareOut(
            share_id=share.share_id,
            created_at=share.created_at,
            guitar=project(guitar, share.shared_fields),
            images=images,
        )
