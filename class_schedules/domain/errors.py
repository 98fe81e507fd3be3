"""Exceptions raised by the class schedule service layer."""

from __future__ import annotations

from class_schedules.domain.models import ClashDetails, ConflictReport


class ScheduleServiceError(Exception):
    """Base class for errors the HTTP layer translates into responses."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ScheduleServiceError):
    status_code = 404


class InvalidScheduleError(ScheduleServiceError):
    """The request violates a precondition of the conflict check."""

    status_code = 400


class BranchMismatchError(ScheduleServiceError):
    """A referenced classroom or teacher profile belongs to another branch."""

    status_code = 409


class ScheduleClashError(ScheduleServiceError):
    status_code = 409

    def __init__(
        self, message: str, report: ConflictReport, details: ClashDetails
    ) -> None:
        super().__init__(message)
        self.report = report
        self.details = details
