# carepath/intake/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List

from carepath.intake.stages import Stage
from carepath.intake.schema import PatientRecord


@dataclass
class IntakeTurn:
    role: str  # "patient" or "assistant"
    content: str
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AssistantState(str, Enum):
    NO_SYMPTOM_CAPTURED = "no_symptom_captured"
    AWAITING_SEVERITY = "awaiting_severity"


@dataclass
class IntakeSession:
    """
    In-memory state of one intake session: where the patient is in the
    workflow and everything they have committed so far.

    Nothing here is persisted; abandoning the session simply drops it.
    """

    stage: Stage = Stage.HOME
    record: PatientRecord = field(default_factory=PatientRecord)

    @property
    def history(self) -> List[Stage]:
        return self.record.stage_history
