# tests/unit/test_share_state.py
# Unit tests for share state derivation and update planning

from datetime import datetime, timezone

from guitarshare.models.share import OptimizedImage, Share
from guitarshare.services.share_state import ShareState, plan_update, selection_changed, state_of

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _share(**overrides) -> Share:
    data = dict(
        share_id="s1",
        owner_id="owner-1",
        guitar_id="guitar-1",
        created_at=NOW,
        updated_at=NOW,
        shared_fields={"brand": True, "model": True},
        selected_image_ids=["a", "b"],
        optimized_images=[
            OptimizedImage(original_id=i, key=f"shared/s1/{i}.webp", url=f"https://cdn.test/shared/s1/{i}.webp",
                           width=1200, height=800)
            for i in ("a", "b")
        ],
    )
    data.update(overrides)
    return Share(**data)


class TestStateOf:
    def test_fully_processed_active_share(self):
        assert state_of(_share()) == ShareState.ACTIVE

    def test_missing_derivative_needs_processing(self):
        share = _share(optimized_images=_share().optimized_images[:1])
        assert state_of(share) == ShareState.NEEDS_PROCESSING

    def test_inactive_wins(self):
        assert state_of(_share(is_active=False, optimized_images=[])) == ShareState.INACTIVE

    def test_empty_selection_is_active(self):
        assert state_of(_share(selected_image_ids=[], optimized_images=[])) == ShareState.ACTIVE


class TestSelectionChanged:
    def test_reordering_is_not_a_change(self):
        assert not selection_changed(["a", "b"], ["b", "a"])

    def test_added_or_removed_ids_are_changes(self):
        assert selection_changed(["a", "b"], ["a"])
        assert selection_changed(["a"], ["a", "c"])


class TestPlanUpdate:
    def test_shared_fields_merge_onto_current_map(self):
        plan = plan_update(_share(), {"shared_fields": {"model": False, "color": True}})

        assert plan.fields == {"shared_fields": {"brand": True, "model": False, "color": True}}
        assert not plan.images_changed

    def test_changed_selection_clears_derivatives(self):
        plan = plan_update(_share(), {"selected_image_ids": ["a", "c"]})

        assert plan.images_changed
        assert plan.fields["optimized_images"] == []
        assert plan.fields["images_processed_at"] is None
        assert plan.state == ShareState.NEEDS_PROCESSING

    def test_reordered_selection_keeps_derivatives(self):
        plan = plan_update(_share(), {"selected_image_ids": ["b", "a"]})

        assert not plan.images_changed
        assert plan.fields == {"selected_image_ids": ["b", "a"]}
        assert plan.state == ShareState.ACTIVE

    def test_deactivation(self):
        plan = plan_update(_share(), {"is_active": False})

        assert plan.fields == {"is_active": False}
        assert plan.state == ShareState.INACTIVE

    def test_plan_does_not_mutate_share(self):
        share = _share()
        plan_update(share, {"selected_image_ids": ["c"], "shared_fields": {"brand": False}})

        assert share.selected_image_ids == ["a", "b"]
        assert share.shared_fields == {"brand": True, "model": True}
        assert len(share.optimized_images) == 2
