from kestrel.core import ChangeTracker


def test_reset_clears_dirty_state():
    tracker = ChangeTracker({"name": "Ada"})
    tracker.record_change("name", "Ada", "Grace")
    assert tracker.is_dirty()

    tracker.reset({"name": "Grace"})
    assert not tracker.is_dirty()
    assert tracker.baseline["name"] == "Grace"


def test_dirtiness_means_differs_from_baseline():
    tracker = ChangeTracker({"age": 30})
    tracker.record_change("age", 30, 31)
    tracker.record_change("age", 31, 32)
    assert tracker.dirty_fields() == {"age"}

    tracker.record_change("age", 32, 30)
    assert not tracker.is_field_dirty("age")


def test_unknown_field_uses_old_value_as_baseline():
    tracker = ChangeTracker()
    tracker.record_change("title", None, "Draft")
    assert tracker.baseline["title"] is None
    assert tracker.is_field_dirty("title")


def test_disabled_tracking_ignores_writes_and_restores_flag():
    tracker = ChangeTracker({"id": 0})
    with tracker.disable_change_tracking():
        tracker.record_change("id", 0, 7)
        with tracker.disable_change_tracking():
            pass
        assert tracker.enabled is False
    assert tracker.enabled is True
    assert not tracker.is_dirty()


def test_snapshot_and_restore():
    tracker = ChangeTracker({"name": "Ada"})
    tracker.record_change("name", "Ada", "Grace")
    snapshot = tracker.snapshot()

    tracker.reset({"name": "Grace"})
    tracker.restore(snapshot)
    assert tracker.dirty_fields() == {"name"}
    assert tracker.baseline["name"] == "Ada"
