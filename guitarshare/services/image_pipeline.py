# guitarshare/services/image_pipeline.py
"""
Derivative images for public shares.

Each selected original is downloaded, fitted inside IMAGE_MAX_WIDTH x
2*IMAGE_MAX_WIDTH (never upscaled), stamped with the brand mark in the
bottom-right corner, encoded as WebP and uploaded under ``shared/<share_id>/``.
The same inputs always produce the same keys and bytes, so reprocessing
overwrites earlier derivatives in place.
"""

from __future__ import annotations

import asyncio
import io
from functools import lru_cache
from typing import Any, Optional

from opentelemetry import trace
from PIL import Image, ImageDraw, ImageFont, ImageOps

from guitarshare.constants import (
    DERIVATIVE_CACHE_CONTROL,
    DERIVATIVE_CONTENT_TYPE,
    DERIVATIVE_KEY,
    WATERMARK_BASE_HEIGHT,
    WATERMARK_BASE_WIDTH,
    WATERMARK_MAX_WIDTH,
    WATERMARK_MIN_WIDTH,
    WATERMARK_PADDING,
    WATERMARK_WIDTH_RATIO,
)
from guitarshare.middleware.retry import with_timeout
from guitarshare.models.share import OptimizedImage, Share
from guitarshare.observability.metrics import IMAGES_PROCESSED
from guitarshare.storage.blob_store import key_from_url
from guitarshare.utils.logger import log_exception, log_info

tracer = trace.get_tracer(__name__)


def derivative_key(share_id: str, image_id: str) -> str:
    return DERIVATIVE_KEY.format(share_id=share_id, image_id=image_id)


def watermark_size(image_width: int, mark_size: tuple[int, int] = (WATERMARK_BASE_WIDTH, WATERMARK_BASE_HEIGHT)) -> tuple[int, int]:
    """Mark is 18% of the image width, clamped to [140, 220] px, aspect kept."""
    width = max(WATERMARK_MIN_WIDTH, min(WATERMARK_MAX_WIDTH, int(image_width * WATERMARK_WIDTH_RATIO)))
    mark_w, mark_h = mark_size
    return width, round(width / mark_w * mark_h)


def fit_inside(size: tuple[int, int], max_width: int, max_height: int) -> tuple[int, int]:
    """Largest size within the box keeping aspect ratio; never enlarges."""
    w, h = size
    scale = min(max_width / w, max_height / h)
    if scale >= 1:
        return w, h
    return max(1, round(w * scale)), max(1, round(h * scale))


@lru_cache(maxsize=4)
def load_brand_mark(path: Optional[str], text: str) -> Image.Image:
    """Brand mark as RGBA. Loaded from ``path`` or rendered from ``text``."""
    if path:
        with Image.open(path) as img:
            return img.convert("RGBA")

    mark = Image.new("RGBA", (WATERMARK_BASE_WIDTH, WATERMARK_BASE_HEIGHT), (0, 0, 0, 0))
    draw = ImageDraw.Draw(mark)
    font = ImageFont.load_default(size=34)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = (WATERMARK_BASE_WIDTH - (right - left)) // 2 - left
    y = (WATERMARK_BASE_HEIGHT - (bottom - top)) // 2 - top
    draw.text((x + 2, y + 2), text, font=font, fill=(0, 0, 0, 110))
    draw.text((x, y), text, font=font, fill=(255, 255, 255, 200))
    return mark


def transform_image(data: bytes, max_width: int, quality: int, mark: Image.Image) -> tuple[bytes, int, int]:
    """Resize, watermark and WebP-encode one image. Returns (bytes, width, height)."""
    with Image.open(io.BytesIO(data)) as src:
        img = ImageOps.exif_transpose(src)
        has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
        img = img.convert("RGBA")

    new_size = fit_inside(img.size, max_width, max_width * 2)
    if new_size != img.size:
        img = img.resize(new_size, resample=Image.LANCZOS)
    width, height = img.size

    mark_w, mark_h = watermark_size(width, mark.size)
    scaled_mark = mark.resize((mark_w, mark_h), resample=Image.LANCZOS)
    overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
    overlay.paste(scaled_mark, (width - mark_w - WATERMARK_PADDING, height - mark_h - WATERMARK_PADDING))
    img = Image.alpha_composite(img, overlay)

    if not has_alpha:
        img = img.convert("RGB")
    out = io.BytesIO()
    img.save(out, format="WEBP", quality=quality)
    return out.getvalue(), width, height


class ImagePipeline:
    """Produces and stores watermarked derivatives for a share's selected images."""

    def __init__(self, blob_store, settings):
        self._blobs = blob_store
        self._max_width = settings.IMAGE_MAX_WIDTH
        self._quality = settings.WEBP_QUALITY
        self._timeout = settings.IMAGE_PROCESS_TIMEOUT
        self._mark_path = settings.WATERMARK_PATH
        self._mark_text = settings.WATERMARK_TEXT

    async def process_images(self, share: Share, guitar: dict[str, Any]) -> list[OptimizedImage]:
        """Process every selected image still on the guitar, concurrently.

        Images no longer on the guitar are skipped. A failing image is logged
        and left out; it never stops the others.
        """
        if not share.selected_image_ids:
            log_info("No images to process for share", share_id=share.share_id)
            return []

        by_id = {img.get("id"): img for img in guitar.get("images") or []}
        to_process = [by_id[image_id] for image_id in share.selected_image_ids if image_id in by_id]
        if not to_process:
            log_info("No matching images found for share", share_id=share.share_id)
            return []

        log_info("Processing images for share", share_id=share.share_id, image_count=len(to_process))
        results = await asyncio.gather(
            *(self._process_safe(image, share.share_id) for image in to_process)
        )
        optimized = [r for r in results if r is not None]
        log_info(
            "Share images processed",
            share_id=share.share_id,
            processed_count=len(optimized),
            failed_count=len(to_process) - len(optimized),
        )
        return optimized

    async def _process_safe(self, image: dict[str, Any], share_id: str) -> Optional[OptimizedImage]:
        try:
            result = await with_timeout(self._timeout)(self.process_single)(image, share_id)
        except Exception as e:
            IMAGES_PROCESSED.labels(result="failed").inc()
            log_exception(e, "process share image", share_id=share_id, image_id=image.get("id"))
            return None
        IMAGES_PROCESSED.labels(result="ok").inc()
        return result

    async def process_single(self, image: dict[str, Any], share_id: str) -> OptimizedImage:
        """Download, transform and upload one image; raises on any failure."""
        image_id = image["id"]
        with tracer.start_as_current_span(
            "share.process_image", attributes={"share.id": share_id, "image.id": image_id}
        ):
            source_key = key_from_url(image.get("url", ""))
            output_key = derivative_key(share_id, image_id)

            original = await self._blobs.download(source_key)
            mark = load_brand_mark(self._mark_path, self._mark_text)
            data, width, height = await asyncio.to_thread(
                transform_image, original, self._max_width, self._quality, mark
            )
            await self._blobs.upload(output_key, data, DERIVATIVE_CONTENT_TYPE, DERIVATIVE_CACHE_CONTROL)

            return OptimizedImage(
                original_id=image_id,
                key=output_key,
                url=self._blobs.public_url(output_key),
                width=width,
                height=height,
                size=len(data),
            )
