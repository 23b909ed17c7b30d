# guitarshare/services/share_state.py
# Share lifecycle state and update planning, kept free of storage

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from guitarshare.models.share import Share


class ShareState(Enum):
    """Derived from is_active and derivative coverage; only is_active is stored."""
    ACTIVE = "active"                      # every selected image has a derivative
    NEEDS_PROCESSING = "needs_processing"  # some or all derivatives missing
    INACTIVE = "inactive"                  # public path answers "not found"


def state_of(share: Share) -> ShareState:
    if not share.is_active:
        return ShareState.INACTIVE
    processed = {img.original_id for img in share.optimized_images}
    if set(share.selected_image_ids) - processed:
        return ShareState.NEEDS_PROCESSING
    return ShareState.ACTIVE


def selection_changed(old: Iterable[str], new: Iterable[str]) -> bool:
    """True when the id sets differ; reordering alone is not a change."""
    return bool(set(old) ^ set(new))


@dataclass
class UpdatePlan:
    fields: dict[str, Any] = field(default_factory=dict)
    images_changed: bool = False
    state: ShareState = ShareState.ACTIVE


def plan_update(share: Share, patch: Mapping[str, Any]) -> UpdatePlan:
    """Compute the stored fields for an already-validated patch.

    ``shared_fields`` merges onto the share's current map. A changed image
    selection clears the derivatives so they get regenerated.
    """
    plan = UpdatePlan()

    if patch.get("shared_fields") is not None:
        plan.fields["shared_fields"] = {**share.shared_fields, **patch["shared_fields"]}

    if patch.get("selected_image_ids") is not None:
        new_ids = list(patch["selected_image_ids"])
        plan.fields["selected_image_ids"] = new_ids
        plan.images_changed = selection_changed(share.selected_image_ids, new_ids)
        if plan.images_changed:
            plan.fields["optimized_images"] = []
            plan.fields["images_processed_at"] = None

    if patch.get("is_active") is not None:
        plan.fields["is_active"] = patch["is_active"]

    plan.state = state_of(share.model_copy(update=plan.fields))
    return plan
