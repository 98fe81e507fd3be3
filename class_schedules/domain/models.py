"""Domain models for branch class schedules."""

from __future__ import annotations

import uuid
from datetime import datetime, time, timezone
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints, field_validator, model_validator

try:
    from enum import StrEnum
except ImportError:  # pragma: no cover - fallback for older Python runtimes

    class StrEnum(str, Enum):
        pass


class DayOfWeek(StrEnum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class StaffAssignmentRole(StrEnum):
    LEAD_TEACHER = "LEAD_TEACHER"
    ASSISTANT = "ASSISTANT"
    SUPPORT = "SUPPORT"
    SUBSTITUTE = "SUBSTITUTE"


class TimelineEntryType(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"
    CLASH_REJECTED = "clash_rejected"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _coerce_time_of_day(value):
    """Accept ``HH:MM`` strings, ``time`` objects, or full ISO datetimes.

    Datetimes are reduced to their UTC time of day; the date part carries no
    meaning for a weekly slot.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, str) and "T" in value:
        return _coerce_time_of_day(datetime.fromisoformat(value.replace("Z", "+00:00")))
    return value


def _minute_precision(value):
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    return value


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


# Optional references must name something when present
ReferenceId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# ---------------------------------------------------------------------------
# Conflict-check models
# ---------------------------------------------------------------------------


class TimeSlot(BaseModel):
    day_of_week: DayOfWeek
    start_time: time
    end_time: time

    @field_validator("start_time", "end_time", mode="wrap")
    @classmethod
    def _coerce_times(cls, value, handler):
        return _minute_precision(handler(_coerce_time_of_day(value)))

    @model_validator(mode="after")
    def _end_after_start(self) -> TimeSlot:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def start_minutes(self) -> int:
        return self.start_time.hour * 60 + self.start_time.minute

    @property
    def end_minutes(self) -> int:
        return self.end_time.hour * 60 + self.end_time.minute


class ScheduleSlot(BaseModel):
    """One weekly recurring occurrence as seen by the conflict checker."""

    id: str = Field(default_factory=_new_id)
    branch_id: str
    time_slot: TimeSlot
    classroom_id: ReferenceId | None = None
    teacher_profile_id: ReferenceId | None = None
    staff_user_ids: list[str] = Field(default_factory=list)

    @field_validator("staff_user_ids")
    @classmethod
    def _unique_staff(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


class StaffConflict(BaseModel):
    slot: ScheduleSlot
    user_ids: list[str]


class ConflictReport(BaseModel):
    classroom_conflicts: list[ScheduleSlot] = Field(default_factory=list)
    teacher_conflicts: list[ScheduleSlot] = Field(default_factory=list)
    staff_conflicts: list[StaffConflict] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(
            self.classroom_conflicts or self.teacher_conflicts or self.staff_conflicts
        )


# ---------------------------------------------------------------------------
# Branch entities
# ---------------------------------------------------------------------------


class Branch(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1, max_length=120)


class Classroom(BaseModel):
    id: str = Field(default_factory=_new_id)
    branch_id: str
    name: str = Field(min_length=1, max_length=120)
    capacity: int | None = Field(default=None, gt=0)


class TeacherProfile(BaseModel):
    id: str = Field(default_factory=_new_id)
    branch_id: str
    user_id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class StaffAssignment(BaseModel):
    user_id: str
    role: StaffAssignmentRole = StaffAssignmentRole.ASSISTANT
    assigned_at: datetime = Field(default_factory=_utcnow)


class ClassSchedule(BaseModel):
    id: str = Field(default_factory=_new_id)
    branch_id: str
    title: str = Field(min_length=3, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    time_slot: TimeSlot
    is_recurring: bool = True
    classroom_id: ReferenceId | None = None
    teacher_profile_id: ReferenceId | None = None
    assignments: list[StaffAssignment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_slot(self) -> ScheduleSlot:
        return ScheduleSlot(
            id=self.id,
            branch_id=self.branch_id,
            time_slot=self.time_slot,
            classroom_id=self.classroom_id,
            teacher_profile_id=self.teacher_profile_id,
            staff_user_ids=[a.user_id for a in self.assignments],
        )


class SessionOccurrence(BaseModel):
    """A dated instance of a recurring class schedule."""

    schedule_id: str
    branch_id: str
    title: str
    start_time: datetime
    end_time: datetime


class TimelineEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    schedule_id: str
    branch_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    type: TimelineEntryType
    payload: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class CreateBranchRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class CreateClassroomRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    capacity: int | None = Field(default=None, gt=0)


class CreateTeacherProfileRequest(BaseModel):
    user_id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class StaffAssignmentInput(BaseModel):
    user_id: str
    role: StaffAssignmentRole | None = None
    assigned_at: datetime | None = None


class CreateClassScheduleRequest(BaseModel):
    title: str = Field(min_length=3, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    is_recurring: bool = True
    classroom_id: ReferenceId | None = None
    teacher_profile_id: ReferenceId | None = None
    primary_instructor: StaffAssignmentInput | None = None
    additional_staff: list[StaffAssignmentInput] | None = None

    @field_validator("start_time", "end_time", mode="wrap")
    @classmethod
    def _coerce_times(cls, value, handler):
        return _minute_precision(handler(_coerce_time_of_day(value)))


class UpdateClassScheduleRequest(BaseModel):
    """Partial update; only fields present in the payload are applied.

    ``classroom_id`` and ``teacher_profile_id`` sent as ``null`` clear the
    reference, which is why callers check ``model_fields_set``.
    """

    title: str | None = Field(default=None, min_length=3, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    day_of_week: DayOfWeek | None = None
    start_time: time | None = None
    end_time: time | None = None
    is_recurring: bool | None = None
    classroom_id: ReferenceId | None = None
    teacher_profile_id: ReferenceId | None = None
    primary_instructor: StaffAssignmentInput | None = None
    additional_staff: list[StaffAssignmentInput] | None = None

    @field_validator("start_time", "end_time", mode="wrap")
    @classmethod
    def _coerce_times(cls, value, handler):
        return _minute_precision(handler(_coerce_time_of_day(value)))

    @property
    def touches_staff(self) -> bool:
        return bool({"primary_instructor", "additional_staff"} & self.model_fields_set)


class ClassroomSummary(BaseModel):
    id: str
    name: str


class TeacherProfileSummary(BaseModel):
    id: str
    user_id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class ScheduleSummary(BaseModel):
    id: str
    title: str
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    classroom: ClassroomSummary | None = None
    teacher_profile: TeacherProfileSummary | None = None


class StaffAssignmentClash(BaseModel):
    schedule: ScheduleSummary
    user_ids: list[str]


class ClashDetails(BaseModel):
    classroom: list[ScheduleSummary] = Field(default_factory=list)
    teacher_profiles: list[ScheduleSummary] = Field(default_factory=list)
    staff_assignments: list[StaffAssignmentClash] = Field(default_factory=list)


class ClashResponse(BaseModel):
    message: str
    clashes: ClashDetails


class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    message: str | None = None
    clashes: ClashDetails
