"""Service for detecting double-booking between weekly class slots."""

from __future__ import annotations

from collections.abc import Iterable

from class_schedules.domain.models import (
    ConflictReport,
    ScheduleSlot,
    StaffConflict,
    TimeSlot,
)


def slots_overlap(a: TimeSlot, b: TimeSlot) -> bool:
    """Return True when two weekly time slots overlap.

    Overlap rule: same day AND a.start < b.end AND b.start < a.end.
    Exact boundary touches (end == start) are NOT considered conflicts.
    """
    return (
        a.day_of_week == b.day_of_week
        and a.start_time < b.end_time
        and b.start_time < a.end_time
    )


def check_conflicts(
    proposed: ScheduleSlot,
    existing: Iterable[ScheduleSlot],
) -> ConflictReport:
    """Return every existing slot that double-books the proposed one.

    ``existing`` must already be limited to the proposed slot's branch. A slot
    sharing the proposed slot's id is its own prior version and is skipped.
    Each category keeps the iteration order of ``existing``; a slot appears
    at most once per category. Never raises for well-formed input.
    """
    report = ConflictReport()
    proposed_staff = set(proposed.staff_user_ids)
    seen: dict[str, set[str]] = {"classroom": set(), "teacher": set(), "staff": set()}

    for slot in existing:
        if slot.id == proposed.id:
            continue
        if not slots_overlap(proposed.time_slot, slot.time_slot):
            continue

        if (
            proposed.classroom_id is not None
            and slot.classroom_id == proposed.classroom_id
            and slot.id not in seen["classroom"]
        ):
            seen["classroom"].add(slot.id)
            report.classroom_conflicts.append(slot)

        if (
            proposed.teacher_profile_id is not None
            and slot.teacher_profile_id == proposed.teacher_profile_id
            and slot.id not in seen["teacher"]
        ):
            seen["teacher"].add(slot.id)
            report.teacher_conflicts.append(slot)

        shared = [uid for uid in slot.staff_user_ids if uid in proposed_staff]
        if shared and slot.id not in seen["staff"]:
            seen["staff"].add(slot.id)
            report.staff_conflicts.append(StaffConflict(slot=slot, user_ids=shared))

    return report
