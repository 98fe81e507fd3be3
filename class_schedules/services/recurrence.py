"""Service for expanding weekly class schedules into dated sessions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from class_schedules.domain.models import ClassSchedule, DayOfWeek, SessionOccurrence

_DAY_MAP = {
    DayOfWeek.MONDAY: MO,
    DayOfWeek.TUESDAY: TU,
    DayOfWeek.WEDNESDAY: WE,
    DayOfWeek.THURSDAY: TH,
    DayOfWeek.FRIDAY: FR,
    DayOfWeek.SATURDAY: SA,
    DayOfWeek.SUNDAY: SU,
}


def compile_rrule(schedule: ClassSchedule) -> str | None:
    """Return the RRULE string for a schedule, or ``None`` if it is one-off."""
    if not schedule.is_recurring:
        return None
    weekday = _DAY_MAP[schedule.time_slot.day_of_week]
    return f"FREQ=WEEKLY;BYDAY={weekday}"


def generation_window(
    reference: datetime, lookback_days: int, horizon_days: int
) -> tuple[datetime, datetime]:
    """Return the half-open UTC window ``[start, end)`` around *reference*.

    The window opens at midnight of the reference day minus *lookback_days*
    and closes at midnight after the reference day plus *horizon_days*.
    """
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    today = reference.astimezone(timezone.utc).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    start = today - timedelta(days=max(0, lookback_days))
    end = today + timedelta(days=max(0, horizon_days) + 1)
    return start, end


def expand_schedule(
    schedule: ClassSchedule, window_start: datetime, window_end: datetime
) -> list[SessionOccurrence]:
    """Expand a recurring schedule into its sessions starting inside the window.

    Non-recurring schedules produce no sessions. Times are interpreted as UTC.
    """
    if not schedule.is_recurring:
        return []

    slot = schedule.time_slot
    duration = timedelta(minutes=slot.end_minutes - slot.start_minutes)
    rule = rrule(
        WEEKLY,
        byweekday=_DAY_MAP[slot.day_of_week],
        byhour=slot.start_time.hour,
        byminute=slot.start_time.minute,
        bysecond=0,
        dtstart=window_start,
    )

    sessions: list[SessionOccurrence] = []
    for dt in rule.between(window_start, window_end, inc=True):
        # between() is inclusive at both ends; the window is half-open
        if dt >= window_end:
            continue
        sessions.append(
            SessionOccurrence(
                schedule_id=schedule.id,
                branch_id=schedule.branch_id,
                title=schedule.title,
                start_time=dt,
                end_time=dt + duration,
            )
        )
    return sessions


def expand_schedules(
    schedules: list[ClassSchedule], window_start: datetime, window_end: datetime
) -> list[SessionOccurrence]:
    """Expand every schedule and return all sessions ordered by start time."""
    sessions = [
        session
        for schedule in schedules
        for session in expand_schedule(schedule, window_start, window_end)
    ]
    return sorted(sessions, key=lambda s: (s.start_time, s.title))
