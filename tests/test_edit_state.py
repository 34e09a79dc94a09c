"""Test the staged order edit state machine."""
import pytest

from verticals.recargo.edit_state import EditProgress, EditState


def test_happy_path_flags():
    progress = EditProgress(order_id="gid://shopify/Order/1")
    progress.transition(EditState.BEGUN, edit_id="edit-1")
    progress.transition(EditState.STALE_REMOVED)
    progress.transition(EditState.ITEM_ADDED)
    progress.transition(EditState.COMMITTED)

    assert progress.edit_id == "edit-1"
    assert progress.is_terminal
    assert not progress.has_remote_side_effects
    assert progress.phase_flags() == {
        "edit_created": True,
        "stale_removed": True,
        "item_added": True,
        "committed": True,
    }


def test_insert_path_skips_stale_removal():
    progress = EditProgress(order_id="o")
    progress.transition(EditState.BEGUN, edit_id="e")
    progress.transition(EditState.ITEM_ADDED)
    assert progress.phase_flags()["stale_removed"] is False


def test_illegal_transition_raises():
    progress = EditProgress(order_id="o")
    with pytest.raises(ValueError):
        progress.transition(EditState.COMMITTED)


def test_commit_failure_keeps_history():
    progress = EditProgress(order_id="o")
    progress.transition(EditState.BEGUN, edit_id="e")
    progress.transition(EditState.ITEM_ADDED)
    progress.fail("commit_edit", "Order is locked")

    assert progress.current_state == EditState.FAILED
    assert progress.failed_phase == "commit_edit"
    assert progress.last_completed_phase == "item_added"
    assert progress.has_remote_side_effects
    assert progress.phase_flags() == {
        "edit_created": True,
        "stale_removed": False,
        "item_added": True,
        "committed": False,
    }


def test_failure_before_begin_has_no_side_effects():
    progress = EditProgress(order_id="o")
    progress.fail("begin_edit", "timeout")
    assert not progress.has_remote_side_effects
    assert progress.last_completed_phase is None


def test_no_transition_after_failure():
    progress = EditProgress(order_id="o")
    progress.fail("begin_edit", "timeout")
    with pytest.raises(ValueError):
        progress.transition(EditState.BEGUN)


def test_to_dict_serializable():
    progress = EditProgress(order_id="o")
    progress.transition(EditState.BEGUN, edit_id="e")
    data = progress.to_dict()
    assert data["state"] == "begun"
    assert data["edit_id"] == "e"
    assert data["edit_created"] is True
    assert data["last_completed_phase"] == "begun"
