"""Domain events emitted during the class schedule lifecycle."""

from __future__ import annotations

from pydantic import BaseModel


class ScheduleCreated(BaseModel):
    """Fired when a new class schedule is persisted."""

    schedule_id: str
    branch_id: str


class ScheduleUpdated(BaseModel):
    """Fired after an edit to a class schedule is persisted."""

    schedule_id: str
    branch_id: str
    changed_fields: list[str]


class ScheduleRemoved(BaseModel):
    """Fired when a class schedule is deleted (the class is cancelled)."""

    schedule_id: str
    branch_id: str
    title: str


class ScheduleClashRejected(BaseModel):
    """Fired when a create or update is refused because of a clash.

    ``schedule_id`` is ``None`` for a rejected create.
    """

    branch_id: str
    schedule_id: str | None = None
    classroom_clash_ids: list[str]
    teacher_clash_ids: list[str]
    staff_clash_ids: list[str]
