"""Domain event handlers, wired up at application startup."""

from __future__ import annotations

import logging

from class_schedules.domain.bus import EventBus
from class_schedules.domain.events import (
    ScheduleClashRejected,
    ScheduleCreated,
    ScheduleRemoved,
    ScheduleUpdated,
)
from class_schedules.domain.models import TimelineEntry, TimelineEntryType
from class_schedules.repos.memory import ClassScheduleRepository, TimelineRepository
from class_schedules.services.recurrence import compile_rrule

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires schedule lifecycle handlers to the bus."""

    def __init__(
        self,
        bus: EventBus,
        schedule_repo: ClassScheduleRepository,
        timeline_repo: TimelineRepository,
    ) -> None:
        self.bus = bus
        self.schedule_repo = schedule_repo
        self.timeline_repo = timeline_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe_all(
            {
                ScheduleCreated: self.on_schedule_created,
                ScheduleUpdated: self.on_schedule_updated,
                ScheduleRemoved: self.on_schedule_removed,
                ScheduleClashRejected: self.on_clash_rejected,
            }
        )

    def _record(self, entry: TimelineEntry) -> None:
        self.timeline_repo.add(entry)
        logger.debug(
            "Recorded %s timeline entry for schedule %s", entry.type.value, entry.schedule_id
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_schedule_created(self, event: ScheduleCreated) -> None:
        stored = self.schedule_repo.get(event.schedule_id)
        if stored is None:
            return

        slot = stored.time_slot
        self._record(
            TimelineEntry(
                schedule_id=event.schedule_id,
                branch_id=event.branch_id,
                type=TimelineEntryType.CREATED,
                payload={
                    "title": stored.title,
                    "day_of_week": slot.day_of_week.value,
                    "start_time": slot.start_time.isoformat(timespec="minutes"),
                    "end_time": slot.end_time.isoformat(timespec="minutes"),
                    "rrule": compile_rrule(stored),
                },
            )
        )

    def on_schedule_updated(self, event: ScheduleUpdated) -> None:
        if self.schedule_repo.get(event.schedule_id) is None:
            return

        self._record(
            TimelineEntry(
                schedule_id=event.schedule_id,
                branch_id=event.branch_id,
                type=TimelineEntryType.UPDATED,
                payload={"changed_fields": event.changed_fields},
            )
        )

    def on_schedule_removed(self, event: ScheduleRemoved) -> None:
        self._record(
            TimelineEntry(
                schedule_id=event.schedule_id,
                branch_id=event.branch_id,
                type=TimelineEntryType.REMOVED,
                payload={"title": event.title},
            )
        )

    def on_clash_rejected(self, event: ScheduleClashRejected) -> None:
        # A rejected create has no schedule to attach the entry to
        if event.schedule_id is None:
            logger.info(
                "New schedule in branch %s rejected; clashes with %s",
                event.branch_id,
                sorted(
                    set(event.classroom_clash_ids)
                    | set(event.teacher_clash_ids)
                    | set(event.staff_clash_ids)
                ),
            )
            return

        self._record(
            TimelineEntry(
                schedule_id=event.schedule_id,
                branch_id=event.branch_id,
                type=TimelineEntryType.CLASH_REJECTED,
                payload={
                    "classroom": event.classroom_clash_ids,
                    "teacher_profiles": event.teacher_clash_ids,
                    "staff_assignments": event.staff_clash_ids,
                },
            )
        )
