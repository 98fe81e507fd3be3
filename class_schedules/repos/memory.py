"""In-memory repositories for branches, rooms, teachers and schedules."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import time

from class_schedules.domain.models import (
    Branch,
    ClassSchedule,
    Classroom,
    DayOfWeek,
    StaffAssignment,
    StaffAssignmentRole,
    TeacherProfile,
    TimelineEntry,
    TimeSlot,
)

_DAY_ORDER = {day: index for index, day in enumerate(DayOfWeek)}


class BranchRepository:
    """Dict-backed store for Branch instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Branch] = {}

    def add(self, branch: Branch) -> None:
        self._store[branch.id] = branch

    def get(self, branch_id: str) -> Branch | None:
        return self._store.get(branch_id)

    def list_all(self) -> list[Branch]:
        return list(self._store.values())


class ClassroomRepository:
    """Dict-backed store for Classroom instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Classroom] = {}

    def add(self, classroom: Classroom) -> None:
        self._store[classroom.id] = classroom

    def get(self, classroom_id: str) -> Classroom | None:
        return self._store.get(classroom_id)

    def list_for_branch(self, branch_id: str) -> list[Classroom]:
        return [c for c in self._store.values() if c.branch_id == branch_id]


class TeacherProfileRepository:
    """Dict-backed store for TeacherProfile instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, TeacherProfile] = {}

    def add(self, profile: TeacherProfile) -> None:
        self._store[profile.id] = profile

    def get(self, profile_id: str) -> TeacherProfile | None:
        return self._store.get(profile_id)

    def list_for_branch(self, branch_id: str) -> list[TeacherProfile]:
        return [p for p in self._store.values() if p.branch_id == branch_id]


class ClassScheduleRepository:
    """Dict-backed store for ClassSchedule instances, keyed by id.

    Writers hold ``branch_lock(branch_id)`` across the conflict check and the
    write so two requests for one branch cannot both pass the check.
    """

    def __init__(self) -> None:
        self._store: dict[str, ClassSchedule] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def branch_lock(self, branch_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(branch_id, threading.Lock())
        with lock:
            yield

    def add(self, schedule: ClassSchedule) -> None:
        self._store[schedule.id] = schedule

    def get(self, schedule_id: str) -> ClassSchedule | None:
        return self._store.get(schedule_id)

    def get_in_branch(self, branch_id: str, schedule_id: str) -> ClassSchedule | None:
        schedule = self._store.get(schedule_id)
        if schedule is None or schedule.branch_id != branch_id:
            return None
        return schedule

    def list_for_branch(
        self, branch_id: str, exclude_id: str | None = None
    ) -> list[ClassSchedule]:
        """Return the branch's schedules in day, then start-time order."""
        schedules = [
            s
            for s in self._store.values()
            if s.branch_id == branch_id and s.id != exclude_id
        ]
        return sorted(
            schedules,
            key=lambda s: (_DAY_ORDER[s.time_slot.day_of_week], s.time_slot.start_time),
        )

    def list_recurring(self, branch_id: str) -> list[ClassSchedule]:
        return [s for s in self.list_for_branch(branch_id) if s.is_recurring]

    def delete(self, schedule_id: str) -> ClassSchedule | None:
        return self._store.pop(schedule_id, None)


class TimelineRepository:
    """List-backed store for TimelineEntry instances."""

    def __init__(self) -> None:
        self._entries: list[TimelineEntry] = []

    def add(self, entry: TimelineEntry) -> None:
        self._entries.append(entry)

    def list_for_schedule(self, schedule_id: str) -> list[TimelineEntry]:
        return sorted(
            [e for e in self._entries if e.schedule_id == schedule_id],
            key=lambda e: e.timestamp,
        )

    def list_for_branch(self, branch_id: str) -> list[TimelineEntry]:
        return [e for e in self._entries if e.branch_id == branch_id]


# ---------------------------------------------------------------------------
# Seed data: one branch with a small weekly timetable
# ---------------------------------------------------------------------------


def seed_demo_branch(
    branch_repo: BranchRepository,
    classroom_repo: ClassroomRepository,
    teacher_repo: TeacherProfileRepository,
    schedule_repo: ClassScheduleRepository,
) -> Branch:
    """Load a demo branch with two rooms, two teachers and three classes."""
    branch = Branch(name="Riverside Campus")
    branch_repo.add(branch)

    room_a = Classroom(branch_id=branch.id, name="Room A", capacity=24)
    room_b = Classroom(branch_id=branch.id, name="Room B", capacity=18)
    classroom_repo.add(room_a)
    classroom_repo.add(room_b)

    jane = TeacherProfile(
        branch_id=branch.id,
        user_id="user-jane",
        first_name="Jane",
        last_name="Doe",
        email="jane@example.com",
    )
    omar = TeacherProfile(
        branch_id=branch.id,
        user_id="user-omar",
        first_name="Omar",
        last_name="Haddad",
        email="omar@example.com",
    )
    teacher_repo.add(jane)
    teacher_repo.add(omar)

    schedule_repo.add(
        ClassSchedule(
            branch_id=branch.id,
            title="Maths",
            time_slot=TimeSlot(
                day_of_week=DayOfWeek.MONDAY, start_time=time(9, 0), end_time=time(10, 0)
            ),
            classroom_id=room_a.id,
            teacher_profile_id=jane.id,
            assignments=[
                StaffAssignment(user_id=jane.user_id, role=StaffAssignmentRole.LEAD_TEACHER),
                StaffAssignment(user_id="user-assistant-1"),
            ],
        )
    )
    schedule_repo.add(
        ClassSchedule(
            branch_id=branch.id,
            title="Science",
            time_slot=TimeSlot(
                day_of_week=DayOfWeek.MONDAY, start_time=time(10, 0), end_time=time(11, 0)
            ),
            classroom_id=room_a.id,
            teacher_profile_id=omar.id,
            assignments=[
                StaffAssignment(user_id=omar.user_id, role=StaffAssignmentRole.LEAD_TEACHER),
            ],
        )
    )
    schedule_repo.add(
        ClassSchedule(
            branch_id=branch.id,
            title="Art club",
            time_slot=TimeSlot(
                day_of_week=DayOfWeek.WEDNESDAY, start_time=time(15, 30), end_time=time(17, 0)
            ),
            classroom_id=room_b.id,
            assignments=[StaffAssignment(user_id="user-support-1", role=StaffAssignmentRole.SUPPORT)],
        )
    )
    return branch
