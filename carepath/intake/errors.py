# carepath/intake/errors.py
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from carepath.intake.stages import Stage


class IntakeError(Exception):
    """Base class for every error raised by the intake workflow."""


class ValidationError(IntakeError):
    """
    Submitted stage data is missing or malformed.

    `fields` maps every offending field to a short reason, so the caller can
    fix all of them in one re-submission.
    """

    def __init__(self, fields: Dict[str, str], stage: Optional[Stage] = None):
        self.fields = dict(fields)
        self.stage = stage
        names = ", ".join(sorted(self.fields))
        super().__init__(f"Invalid or missing fields: {names}")


class IllegalTransitionError(IntakeError):
    def __init__(self, current: Stage, requested: Stage):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Stage {requested.value!r} is not reachable from {current.value!r}"
        )


class PendingOperationError(IntakeError):
    def __init__(self, stage: Stage):
        self.stage = stage
        super().__init__(
            f"An operation for stage {stage.value!r} is still outstanding"
        )


class NoHistoryError(IntakeError):
    def __init__(self):
        super().__init__("There is no previous stage to return to")


class ServiceErrorKind(str, Enum):
    SCAN_FAILED = "scan_failed"
    DECLINED = "declined"
    PROVIDER_UNREACHABLE = "provider_unreachable"


class ServiceError(IntakeError):
    """Raised by external collaborators (scanner, verifier, processor...)."""

    def __init__(self, kind: ServiceErrorKind, message: str = ""):
        self.kind = kind
        self.message = message or kind.value.replace("_", " ")
        super().__init__(self.message)
