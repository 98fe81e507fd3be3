"""Branch-scoped class schedule management with clash protection."""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone

from class_schedules.domain.bus import EventBus
from class_schedules.domain.errors import (
    BranchMismatchError,
    InvalidScheduleError,
    NotFoundError,
    ScheduleClashError,
)
from class_schedules.domain.events import (
    ScheduleClashRejected,
    ScheduleCreated,
    ScheduleRemoved,
    ScheduleUpdated,
)
from class_schedules.domain.models import (
    ClashDetails,
    ClassSchedule,
    ClassroomSummary,
    ConflictReport,
    CreateClassScheduleRequest,
    ScheduleSlot,
    ScheduleSummary,
    SessionOccurrence,
    StaffAssignment,
    StaffAssignmentClash,
    StaffAssignmentInput,
    StaffAssignmentRole,
    TeacherProfile,
    TeacherProfileSummary,
    TimeSlot,
    UpdateClassScheduleRequest,
)
from class_schedules.repos.memory import (
    BranchRepository,
    ClassScheduleRepository,
    ClassroomRepository,
    TeacherProfileRepository,
)
from class_schedules.services.conflicts import check_conflicts
from class_schedules.services.recurrence import expand_schedules, generation_window

logger = logging.getLogger(__name__)

CLASSROOM_CLASH_MESSAGE = "Selected classroom is already booked for this time."
TEACHER_CLASH_MESSAGE = "Lead teacher already has a class scheduled during this time."
STAFF_CLASH_MESSAGE = "One or more assigned staff members have another class at this time."

_UPDATABLE_FIELDS = (
    "title",
    "description",
    "day_of_week",
    "start_time",
    "end_time",
    "is_recurring",
    "classroom_id",
    "teacher_profile_id",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clash_message(report: ConflictReport) -> str:
    """Build the human-readable summary for a non-empty conflict report."""
    messages: list[str] = []
    if report.classroom_conflicts:
        messages.append(CLASSROOM_CLASH_MESSAGE)
    if report.teacher_conflicts:
        messages.append(TEACHER_CLASH_MESSAGE)
    if report.staff_conflicts:
        messages.append(STAFF_CLASH_MESSAGE)
    return " ".join(messages)


def resolve_staff_user_ids(
    primary_instructor: StaffAssignmentInput | None,
    additional_staff: list[StaffAssignmentInput] | None,
    teacher_user_id: str | None,
) -> list[str]:
    """Collect the staff ids a proposed slot occupies, lead teacher first."""
    ids: list[str] = []
    if teacher_user_id:
        ids.append(teacher_user_id)
    if primary_instructor:
        ids.append(primary_instructor.user_id)
    for member in additional_staff or []:
        ids.append(member.user_id)
    return list(dict.fromkeys(ids))


def build_assignments(
    primary_instructor: StaffAssignmentInput | None,
    additional_staff: list[StaffAssignmentInput] | None,
) -> list[StaffAssignment]:
    """Map staff inputs to assignments; the primary instructor defaults to lead."""
    inputs = []
    if primary_instructor:
        inputs.append((primary_instructor, StaffAssignmentRole.LEAD_TEACHER))
    for member in additional_staff or []:
        inputs.append((member, StaffAssignmentRole.ASSISTANT))

    assignments: list[StaffAssignment] = []
    for member, default_role in inputs:
        assignments.append(
            StaffAssignment(
                user_id=member.user_id,
                role=member.role or default_role,
                assigned_at=member.assigned_at or _utcnow(),
            )
        )
    return assignments


def ensure_valid_time_range(start: time, end: time) -> None:
    if end <= start:
        raise InvalidScheduleError("Class end time must be greater than start time.")


class ClassScheduleService:
    """Create, edit and cancel weekly classes without double-booking.

    Every write loads the branch's other schedules, runs the conflict check
    and persists only when the report is empty, all under the branch lock.
    """

    def __init__(
        self,
        bus: EventBus,
        branch_repo: BranchRepository,
        classroom_repo: ClassroomRepository,
        teacher_repo: TeacherProfileRepository,
        schedule_repo: ClassScheduleRepository,
    ) -> None:
        self.bus = bus
        self.branch_repo = branch_repo
        self.classroom_repo = classroom_repo
        self.teacher_repo = teacher_repo
        self.schedule_repo = schedule_repo

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_by_branch(self, branch_id: str) -> list[ClassSchedule]:
        self.ensure_branch(branch_id)
        return self.schedule_repo.list_for_branch(branch_id)

    def get(self, branch_id: str, schedule_id: str) -> ClassSchedule:
        self.ensure_branch(branch_id)
        schedule = self.schedule_repo.get_in_branch(branch_id, schedule_id)
        if schedule is None:
            raise NotFoundError(
                f"Class schedule {schedule_id} not found in branch {branch_id}"
            )
        return schedule

    def upcoming_sessions(
        self,
        branch_id: str,
        reference: datetime,
        lookback_days: int,
        horizon_days: int,
    ) -> list[SessionOccurrence]:
        self.ensure_branch(branch_id)
        window_start, window_end = generation_window(reference, lookback_days, horizon_days)
        schedules = self.schedule_repo.list_recurring(branch_id)
        sessions = expand_schedules(schedules, window_start, window_end)
        logger.debug(
            "Expanded %d schedule(s) into %d session(s) for branch %s",
            len(schedules),
            len(sessions),
            branch_id,
        )
        return sessions

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def check(self, branch_id: str, request: CreateClassScheduleRequest) -> ConflictReport:
        """Run the clash check for a prospective schedule without saving it."""
        self.ensure_branch(branch_id)
        proposed = self._proposed_slot_for_create(branch_id, request)
        existing = [s.to_slot() for s in self.schedule_repo.list_for_branch(branch_id)]
        return check_conflicts(proposed, existing)

    def create(self, branch_id: str, request: CreateClassScheduleRequest) -> ClassSchedule:
        self.ensure_branch(branch_id)
        proposed = self._proposed_slot_for_create(branch_id, request)

        schedule = ClassSchedule(
            id=proposed.id,
            branch_id=branch_id,
            title=request.title,
            description=request.description,
            time_slot=proposed.time_slot,
            is_recurring=request.is_recurring,
            classroom_id=request.classroom_id,
            teacher_profile_id=request.teacher_profile_id,
            assignments=build_assignments(
                request.primary_instructor, request.additional_staff
            ),
        )

        with self.schedule_repo.branch_lock(branch_id):
            self._raise_if_clashing(proposed)
            self.schedule_repo.add(schedule)

        logger.info(
            "Created class schedule %s (%s) in branch %s", schedule.id, schedule.title, branch_id
        )
        self.bus.publish(ScheduleCreated(schedule_id=schedule.id, branch_id=branch_id))
        return schedule

    def update(
        self, branch_id: str, schedule_id: str, request: UpdateClassScheduleRequest
    ) -> ClassSchedule:
        self.ensure_branch(branch_id)
        fields = request.model_fields_set

        # Read, merge, check and write happen as one step per branch
        with self.schedule_repo.branch_lock(branch_id):
            existing = self.get(branch_id, schedule_id)

            current = existing.time_slot
            day_of_week = (
                request.day_of_week if request.day_of_week is not None else current.day_of_week
            )
            start_time = request.start_time if request.start_time is not None else current.start_time
            end_time = request.end_time if request.end_time is not None else current.end_time
            ensure_valid_time_range(start_time, end_time)
            time_slot = TimeSlot(day_of_week=day_of_week, start_time=start_time, end_time=end_time)

            classroom_id = (
                request.classroom_id if "classroom_id" in fields else existing.classroom_id
            )
            self.ensure_classroom_in_branch(branch_id, classroom_id)

            teacher_profile_id = (
                request.teacher_profile_id
                if "teacher_profile_id" in fields
                else existing.teacher_profile_id
            )
            teacher = self.resolve_teacher_profile(branch_id, teacher_profile_id)
            teacher_user_id = teacher.user_id if teacher else None

            if request.touches_staff:
                staff_user_ids = resolve_staff_user_ids(
                    request.primary_instructor, request.additional_staff, teacher_user_id
                )
                assignments = build_assignments(
                    request.primary_instructor, request.additional_staff
                )
            else:
                staff_user_ids = resolve_staff_user_ids(
                    None,
                    [StaffAssignmentInput(user_id=a.user_id) for a in existing.assignments],
                    teacher_user_id,
                )
                assignments = existing.assignments

            proposed = ScheduleSlot(
                id=schedule_id,
                branch_id=branch_id,
                time_slot=time_slot,
                classroom_id=classroom_id,
                teacher_profile_id=teacher_profile_id,
                staff_user_ids=staff_user_ids,
            )

            changes = {
                name: getattr(request, name)
                for name in _UPDATABLE_FIELDS
                if name in fields and name not in ("day_of_week", "start_time", "end_time")
            }
            if "title" in changes and changes["title"] is None:
                raise InvalidScheduleError("Class title cannot be cleared.")
            if "is_recurring" in changes and changes["is_recurring"] is None:
                del changes["is_recurring"]
            changes.update(
                time_slot=time_slot,
                classroom_id=classroom_id,
                teacher_profile_id=teacher_profile_id,
                assignments=assignments,
                updated_at=_utcnow(),
            )

            self._raise_if_clashing(proposed, exclude_id=schedule_id)
            updated = existing.model_copy(update=changes)
            self.schedule_repo.add(updated)

        changed_fields = sorted(
            name for name in fields if name in _UPDATABLE_FIELDS
        ) + (["assignments"] if request.touches_staff else [])
        logger.info("Updated class schedule %s in branch %s: %s", schedule_id, branch_id, changed_fields)
        self.bus.publish(
            ScheduleUpdated(
                schedule_id=schedule_id, branch_id=branch_id, changed_fields=changed_fields
            )
        )
        return updated

    def remove(self, branch_id: str, schedule_id: str) -> ClassSchedule:
        self.ensure_branch(branch_id)
        with self.schedule_repo.branch_lock(branch_id):
            schedule = self.get(branch_id, schedule_id)
            self.schedule_repo.delete(schedule_id)

        logger.info("Removed class schedule %s from branch %s", schedule_id, branch_id)
        self.bus.publish(
            ScheduleRemoved(schedule_id=schedule_id, branch_id=branch_id, title=schedule.title)
        )
        return schedule

    # ------------------------------------------------------------------
    # Lookups and guards
    # ------------------------------------------------------------------

    def ensure_branch(self, branch_id: str) -> None:
        if self.branch_repo.get(branch_id) is None:
            raise NotFoundError(f"Branch {branch_id} not found")

    def ensure_classroom_in_branch(self, branch_id: str, classroom_id: str | None) -> None:
        if classroom_id is None:
            return
        classroom = self.classroom_repo.get(classroom_id)
        if classroom is None:
            raise NotFoundError(f"Classroom {classroom_id} not found.")
        if classroom.branch_id != branch_id:
            raise BranchMismatchError("Selected classroom belongs to a different branch.")

    def resolve_teacher_profile(
        self, branch_id: str, teacher_profile_id: str | None
    ) -> TeacherProfile | None:
        if teacher_profile_id is None:
            return None
        profile = self.teacher_repo.get(teacher_profile_id)
        if profile is None:
            raise NotFoundError(f"Teacher profile {teacher_profile_id} not found.")
        if profile.branch_id != branch_id:
            raise BranchMismatchError(
                "Selected teacher profile belongs to a different branch."
            )
        return profile

    def summarize(self, slot: ScheduleSlot) -> ScheduleSummary:
        """Describe a clashing slot with the names a person can act on."""
        schedule = self.schedule_repo.get(slot.id)
        title = schedule.title if schedule else slot.id

        classroom = None
        if slot.classroom_id:
            room = self.classroom_repo.get(slot.classroom_id)
            if room is not None:
                classroom = ClassroomSummary(id=room.id, name=room.name)

        teacher_profile = None
        if slot.teacher_profile_id:
            profile = self.teacher_repo.get(slot.teacher_profile_id)
            if profile is not None:
                teacher_profile = TeacherProfileSummary(
                    id=profile.id,
                    user_id=profile.user_id,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    email=profile.email,
                )

        return ScheduleSummary(
            id=slot.id,
            title=title,
            day_of_week=slot.time_slot.day_of_week,
            start_time=slot.time_slot.start_time,
            end_time=slot.time_slot.end_time,
            classroom=classroom,
            teacher_profile=teacher_profile,
        )

    def clash_details(self, report: ConflictReport) -> ClashDetails:
        return ClashDetails(
            classroom=[self.summarize(s) for s in report.classroom_conflicts],
            teacher_profiles=[self.summarize(s) for s in report.teacher_conflicts],
            staff_assignments=[
                StaffAssignmentClash(schedule=self.summarize(c.slot), user_ids=c.user_ids)
                for c in report.staff_conflicts
            ],
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _proposed_slot_for_create(
        self, branch_id: str, request: CreateClassScheduleRequest
    ) -> ScheduleSlot:
        ensure_valid_time_range(request.start_time, request.end_time)
        self.ensure_classroom_in_branch(branch_id, request.classroom_id)
        teacher = self.resolve_teacher_profile(branch_id, request.teacher_profile_id)

        return ScheduleSlot(
            branch_id=branch_id,
            time_slot=TimeSlot(
                day_of_week=request.day_of_week,
                start_time=request.start_time,
                end_time=request.end_time,
            ),
            classroom_id=request.classroom_id,
            teacher_profile_id=request.teacher_profile_id,
            staff_user_ids=resolve_staff_user_ids(
                request.primary_instructor,
                request.additional_staff,
                teacher.user_id if teacher else None,
            ),
        )

    def _raise_if_clashing(self, proposed: ScheduleSlot, exclude_id: str | None = None) -> None:
        existing = [
            s.to_slot()
            for s in self.schedule_repo.list_for_branch(
                proposed.branch_id, exclude_id=exclude_id
            )
        ]
        report = check_conflicts(proposed, existing)
        if not report.has_conflicts:
            return

        message = clash_message(report)
        logger.warning(
            "Rejected schedule in branch %s: %d classroom, %d teacher, %d staff clash(es)",
            proposed.branch_id,
            len(report.classroom_conflicts),
            len(report.teacher_conflicts),
            len(report.staff_conflicts),
        )
        self.bus.publish(
            ScheduleClashRejected(
                branch_id=proposed.branch_id,
                schedule_id=exclude_id,
                classroom_clash_ids=[s.id for s in report.classroom_conflicts],
                teacher_clash_ids=[s.id for s in report.teacher_conflicts],
                staff_clash_ids=[c.slot.id for c in report.staff_conflicts],
            )
        )
        raise ScheduleClashError(message, report, self.clash_details(report))
