"""Tests for lifecycle timeline event recording."""

import pytest

from guestenv.domain import LifecycleTimeline


def test_domain_timeline_records_ordered_events() -> None:
    """Record events in order with sequence numbers and optional details.

    Returns:
        None: Assertions validate event payloads.

    Raises:
        AssertionError: Raised when payloads differ.
    """

    timeline = LifecycleTimeline("database")

    timeline.timeline_record(stage="create", status="started")
    timeline.timeline_record(stage="create", status="completed", details={"service_id": "svc-1"})
    timeline.timeline_record(stage="health", status="started", details={})

    events = timeline.timeline_events()
    assert [(event["sequence"], event["stage"], event["status"]) for event in events] == [
        (0, "create", "started"),
        (1, "create", "completed"),
        (2, "health", "started"),
    ]
    assert events[1]["details"] == {"service_id": "svc-1"}
    assert "details" not in events[2]
    assert all(event["instance"] == "database" for event in events)
    assert str(events[0]["at_utc"]).endswith("+00:00")


def test_domain_timeline_events_are_copied() -> None:
    timeline = LifecycleTimeline("backend")
    timeline.timeline_record(stage="dispose", status="skipped")

    timeline.timeline_events().clear()

    assert len(timeline.timeline_events()) == 1
    with pytest.raises(ValueError, match="instance_name must not be blank"):
        LifecycleTimeline(" ")
