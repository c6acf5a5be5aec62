# carepath/api/schemas.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from carepath.intake.schema import BookingConfirmation, PatientRecord, Severity, Symptom
from carepath.intake.stages import PendingChoice, Stage
from carepath.intake.state import AssistantState


class StartSessionResponse(BaseModel):
    session_id: str
    stage: Stage


class AdvanceRequest(BaseModel):
    stage: Stage
    data: Dict[str, Any] = Field(default_factory=dict)


class SessionSnapshot(BaseModel):
    session_id: str
    stage: Stage
    history: List[Stage]
    record: PatientRecord
    pending_stage: Optional[Stage] = None
    pending_options: List[PendingChoice] = Field(default_factory=list)
    consent_completion: float
    can_check_in: bool
    confirmation: Optional[BookingConfirmation] = None
    notice: Optional[str] = None


class ScanRequest(BaseModel):
    document_type: str


class ScanResponse(BaseModel):
    document_type: str
    fields: Dict[str, str]


class SymptomMessageRequest(BaseModel):
    message: str


class SymptomMessageResponse(BaseModel):
    reply: Optional[str]
    assistant_state: AssistantState
    draft: Optional[Symptom] = None


class AddSymptomRequest(BaseModel):
    name: Optional[str] = None
    severity: Optional[Severity] = None
    duration: Optional[str] = None
    notes: Optional[str] = None


class SymptomListResponse(BaseModel):
    added: bool
    symptoms: List[Symptom]


class CompleteAssessmentRequest(BaseModel):
    chief_complaint: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    detail: str
    fields: Dict[str, str] = Field(default_factory=dict)
