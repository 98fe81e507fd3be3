"""FastAPI application for the class schedule service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from class_schedules.config import get_settings
from class_schedules.domain.bus import EventBus
from class_schedules.domain.errors import ScheduleClashError, ScheduleServiceError
from class_schedules.domain.handlers import HandlerRegistry
from class_schedules.domain.models import (
    Branch,
    ClashDetails,
    ClashResponse,
    ClassSchedule,
    Classroom,
    ConflictCheckResponse,
    CreateBranchRequest,
    CreateClassroomRequest,
    CreateClassScheduleRequest,
    CreateTeacherProfileRequest,
    SessionOccurrence,
    TeacherProfile,
    TimelineEntry,
    UpdateClassScheduleRequest,
)
from class_schedules.logging_config import configure_logging
from class_schedules.repos.memory import (
    BranchRepository,
    ClassScheduleRepository,
    ClassroomRepository,
    TeacherProfileRepository,
    TimelineRepository,
    seed_demo_branch,
)
from class_schedules.services.schedules import ClassScheduleService, clash_message

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_title)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
branch_repo = BranchRepository()
classroom_repo = ClassroomRepository()
teacher_repo = TeacherProfileRepository()
schedule_repo = ClassScheduleRepository()
timeline_repo = TimelineRepository()

handler_registry = HandlerRegistry(
    bus=event_bus,
    schedule_repo=schedule_repo,
    timeline_repo=timeline_repo,
)

schedule_service = ClassScheduleService(
    bus=event_bus,
    branch_repo=branch_repo,
    classroom_repo=classroom_repo,
    teacher_repo=teacher_repo,
    schedule_repo=schedule_repo,
)

if settings.seed_demo_data:
    demo = seed_demo_branch(branch_repo, classroom_repo, teacher_repo, schedule_repo)
    logger.info("Seeded demo branch %s", demo.id)


# ── Error translation ─────────────────────────────────────────────────


@app.exception_handler(ScheduleClashError)
async def _clash_handler(request: Request, exc: ScheduleClashError) -> JSONResponse:
    body = ClashResponse(message=exc.message, clashes=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


@app.exception_handler(ScheduleServiceError)
async def _service_error_handler(request: Request, exc: ScheduleServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ── Routes: branches and resources ────────────────────────────────────


@app.post("/branches", response_model=Branch, status_code=201)
def create_branch(payload: CreateBranchRequest) -> Branch:
    branch = Branch(name=payload.name)
    branch_repo.add(branch)
    logger.info("Created branch %s (%s)", branch.id, branch.name)
    return branch


@app.get("/branches", response_model=list[Branch])
def list_branches() -> list[Branch]:
    return branch_repo.list_all()


@app.get("/branches/{branch_id}", response_model=Branch)
def get_branch(branch_id: str) -> Branch:
    schedule_service.ensure_branch(branch_id)
    return branch_repo.get(branch_id)


@app.post("/branches/{branch_id}/classrooms", response_model=Classroom, status_code=201)
def create_classroom(branch_id: str, payload: CreateClassroomRequest) -> Classroom:
    schedule_service.ensure_branch(branch_id)
    classroom = Classroom(branch_id=branch_id, **payload.model_dump())
    classroom_repo.add(classroom)
    return classroom


@app.get("/branches/{branch_id}/classrooms", response_model=list[Classroom])
def list_classrooms(branch_id: str) -> list[Classroom]:
    schedule_service.ensure_branch(branch_id)
    return classroom_repo.list_for_branch(branch_id)


@app.post(
    "/branches/{branch_id}/teacher-profiles",
    response_model=TeacherProfile,
    status_code=201,
)
def create_teacher_profile(
    branch_id: str, payload: CreateTeacherProfileRequest
) -> TeacherProfile:
    schedule_service.ensure_branch(branch_id)
    profile = TeacherProfile(branch_id=branch_id, **payload.model_dump())
    teacher_repo.add(profile)
    return profile


@app.get("/branches/{branch_id}/teacher-profiles", response_model=list[TeacherProfile])
def list_teacher_profiles(branch_id: str) -> list[TeacherProfile]:
    schedule_service.ensure_branch(branch_id)
    return teacher_repo.list_for_branch(branch_id)


# ── Routes: class schedules ───────────────────────────────────────────


@app.get("/branches/{branch_id}/schedules", response_model=list[ClassSchedule])
def list_schedules(branch_id: str) -> list[ClassSchedule]:
    """Return the branch's weekly timetable in day/time order."""
    return schedule_service.list_by_branch(branch_id)


@app.post("/branches/{branch_id}/schedules", response_model=ClassSchedule, status_code=201)
def create_schedule(branch_id: str, payload: CreateClassScheduleRequest) -> ClassSchedule:
    """Create a weekly class; responds 409 with clash details on double-booking."""
    return schedule_service.create(branch_id, payload)


@app.post("/branches/{branch_id}/schedules/check", response_model=ConflictCheckResponse)
def check_schedule(branch_id: str, payload: CreateClassScheduleRequest) -> ConflictCheckResponse:
    """Dry-run the clash check so a form can warn before submitting."""
    report = schedule_service.check(branch_id, payload)
    if not report.has_conflicts:
        return ConflictCheckResponse(has_conflicts=False, clashes=ClashDetails())
    return ConflictCheckResponse(
        has_conflicts=True,
        message=clash_message(report),
        clashes=schedule_service.clash_details(report),
    )


@app.get("/branches/{branch_id}/schedules/{schedule_id}", response_model=ClassSchedule)
def get_schedule(branch_id: str, schedule_id: str) -> ClassSchedule:
    return schedule_service.get(branch_id, schedule_id)


@app.patch("/branches/{branch_id}/schedules/{schedule_id}", response_model=ClassSchedule)
def update_schedule(
    branch_id: str, schedule_id: str, payload: UpdateClassScheduleRequest
) -> ClassSchedule:
    return schedule_service.update(branch_id, schedule_id, payload)


@app.delete("/branches/{branch_id}/schedules/{schedule_id}", response_model=ClassSchedule)
def remove_schedule(branch_id: str, schedule_id: str) -> ClassSchedule:
    return schedule_service.remove(branch_id, schedule_id)


@app.get(
    "/branches/{branch_id}/schedules/{schedule_id}/timeline",
    response_model=list[TimelineEntry],
)
def get_schedule_timeline(branch_id: str, schedule_id: str) -> list[TimelineEntry]:
    """Return the activity history of a schedule, including after removal."""
    schedule_service.ensure_branch(branch_id)
    entries = [
        e for e in timeline_repo.list_for_schedule(schedule_id) if e.branch_id == branch_id
    ]
    if not entries:
        schedule_service.get(branch_id, schedule_id)
    return entries


@app.get("/branches/{branch_id}/sessions", response_model=list[SessionOccurrence])
def list_sessions(branch_id: str, reference: datetime | None = None) -> list[SessionOccurrence]:
    """Expand recurring schedules into dated sessions around *reference*.

    Defaults to ``datetime.now(timezone.utc)`` when omitted.
    """
    current = reference or datetime.now(timezone.utc)
    return schedule_service.upcoming_sessions(
        branch_id,
        current,
        lookback_days=settings.session_lookback_days,
        horizon_days=settings.session_horizon_days,
    )
