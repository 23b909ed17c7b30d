# guitarshare/services/analytics.py
"""
View analytics for public shares.

Each view appends an anonymized entry to a capped list on the share and bumps
the counter. The write is a plain read-modify-write on the share snapshot the
caller loaded: concurrent views of the same share can drop an entry or
undercount slightly. That is accepted for analytics and must not be
"fixed" with locking.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Optional

from guitarshare.constants import BROWSER_FALLBACK, BROWSER_FAMILIES, COUNTRY_HEADERS
from guitarshare.models.share import Share, ViewEntry
from guitarshare.utils.logger import log_exception


def classify_browser(user_agent: Optional[str]) -> Optional[str]:
    """Coarse browser family from a user agent; the UA itself is never kept."""
    if not user_agent:
        return None
    ua = user_agent.lower()
    for family, required, forbidden in BROWSER_FAMILIES:
        if all(s in ua for s in required) and not any(s in ua for s in forbidden):
            return family
    return BROWSER_FALLBACK


def build_view_entry(headers: Mapping[str, str], now: datetime) -> ViewEntry:
    """Derive a view entry from request headers (keys compared case-insensitively)."""
    lowered = {k.lower(): v for k, v in headers.items()}
    country = next((lowered[h] for h in COUNTRY_HEADERS if lowered.get(h)), None)
    return ViewEntry(
        viewed_at=now,
        referrer=lowered.get("referer") or None,
        country=country,
        browser=classify_browser(lowered.get("user-agent")),
    )


def append_view(views: list[ViewEntry], entry: ViewEntry, max_entries: int) -> list[ViewEntry]:
    """Sliding window: drop the oldest entries so the result holds at most max_entries."""
    kept = views[-(max_entries - 1):] if max_entries > 1 else []
    return [*kept, entry]


class ViewAnalyticsRecorder:
    def __init__(self, shares, settings):
        self._shares = shares
        self._max_entries = settings.MAX_VIEW_ENTRIES

    async def record(self, share: Share, headers: Mapping[str, str]) -> None:
        """Append a view entry and bump counters on ``share``.

        Only view_count, views and last_viewed_at are written.
        """
        now = datetime.now(timezone.utc)
        views = list(share.views)
        try:
            entry = build_view_entry(headers, now)
            views = append_view(views, entry, self._max_entries)
        except Exception as e:
            # The counter still moves even when the entry cannot be built
            log_exception(e, "build view entry", share_id=share.share_id)
            views = views[-self._max_entries:]

        await self._shares.update(
            share.owner_id,
            share.share_id,
            {
                "view_count": share.view_count + 1,
                "views": [v.model_dump(mode="json") for v in views],
                "last_viewed_at": now.isoformat(),
            },
        )
