"""Append-only lifecycle timeline kept by every service and network instance."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

LifecycleStage = Literal["build", "create", "health", "resources", "connect", "dispose"]
LifecycleStageStatus = Literal["started", "completed", "skipped", "failed"]


class LifecycleTimeline:
    """Ordered stage events of one instance.

    Each event is a plain mapping with `instance`, `sequence`, `stage`,
    `status` and `at_utc` keys, plus `details` when any were supplied.
    """

    def __init__(self, instance_name: str):
        if not instance_name.strip():
            raise ValueError("instance_name must not be blank")
        self._instance_name = instance_name
        self._events: list[dict[str, object]] = []

    def timeline_record(
        self,
        stage: LifecycleStage,
        status: LifecycleStageStatus,
        details: dict[str, Any] | None = None,
    ) -> dict[str, object]:
        """Append one stage event.

        Args:
            stage: Lifecycle stage the event belongs to.
            status: Stage status marker.
            details: Optional structured details, omitted when empty.

        Returns:
            dict[str, object]: Recorded event.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        event_payload: dict[str, object] = {
            "instance": self._instance_name,
            "sequence": len(self._events),
            "stage": stage,
            "status": status,
            "at_utc": datetime.now(timezone.utc).isoformat(),
        }
        if details:
            event_payload["details"] = dict(details)
        self._events.append(event_payload)
        return event_payload

    def timeline_events(self) -> list[dict[str, object]]:
        return list(self._events)
