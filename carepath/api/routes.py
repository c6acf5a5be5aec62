# carepath/api/routes.py
from __future__ import annotations

import uuid
from typing import Dict, List

from fastapi import APIRouter, HTTPException

from carepath.config import get_settings
from carepath.intake.schema import Location
from carepath.intake.stages import Stage
from carepath.providers import build_fixture_services
from carepath.services import WorkflowController
from .schemas import (
    AddSymptomRequest,
    AdvanceRequest,
    CompleteAssessmentRequest,
    ScanRequest,
    ScanResponse,
    SessionSnapshot,
    StartSessionResponse,
    SymptomListResponse,
    SymptomMessageRequest,
    SymptomMessageResponse,
)

router = APIRouter()

# Sessions live only as long as the process.
_sessions: Dict[str, WorkflowController] = {}

_services = build_fixture_services(get_settings())


def _get_controller(session_id: str) -> WorkflowController:
    controller = _sessions.get(session_id)
    if controller is None:
        raise HTTPException(
            status_code=404,
            detail="Intake session not found. Start a new session.",
        )
    return controller


def _require_symptom_stage(controller: WorkflowController) -> None:
    if controller.stage != Stage.SYMPTOM_INTAKE:
        raise HTTPException(
            status_code=409,
            detail=f"Symptoms can only be collected during {Stage.SYMPTOM_INTAKE.value!r}",
        )


def _snapshot(session_id: str, controller: WorkflowController) -> SessionSnapshot:
    gate = controller.consent_gate
    error = controller.last_service_error
    return SessionSnapshot(
        session_id=session_id,
        stage=controller.stage,
        history=list(controller.record.stage_history),
        record=controller.record,
        pending_stage=controller.pending_stage,
        pending_options=controller.pending_options,
        consent_completion=gate.completion_percentage,
        can_check_in=gate.can_check_in(),
        confirmation=controller.confirmation,
        notice=error.message if error else None,
    )


@router.post("/sessions", response_model=StartSessionResponse)
def start_session() -> StartSessionResponse:
    """Start a new, empty intake session at the Home stage."""
    session_id = str(uuid.uuid4())
    controller = WorkflowController(_services)
    _sessions[session_id] = controller
    return StartSessionResponse(session_id=session_id, stage=controller.stage)


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
def get_session(session_id: str) -> SessionSnapshot:
    return _snapshot(session_id, _get_controller(session_id))


@router.delete("/sessions/{session_id}")
def abandon_session(session_id: str) -> Dict[str, str]:
    controller = _get_controller(session_id)
    controller.cancel_pending()
    del _sessions[session_id]
    return {"status": "abandoned"}


@router.post("/sessions/{session_id}/advance", response_model=SessionSnapshot)
async def advance(session_id: str, payload: AdvanceRequest) -> SessionSnapshot:
    controller = _get_controller(session_id)
    await controller.advance(payload.stage, payload.data)
    return _snapshot(session_id, controller)


@router.post("/sessions/{session_id}/retreat", response_model=SessionSnapshot)
def retreat(session_id: str) -> SessionSnapshot:
    controller = _get_controller(session_id)
    controller.retreat()
    return _snapshot(session_id, controller)


@router.post("/sessions/{session_id}/reset", response_model=SessionSnapshot)
def reset(session_id: str) -> SessionSnapshot:
    controller = _get_controller(session_id)
    controller.reset()
    return _snapshot(session_id, controller)


@router.post("/sessions/{session_id}/scan", response_model=ScanResponse)
async def scan_document(session_id: str, payload: ScanRequest) -> ScanResponse:
    controller = _get_controller(session_id)
    fields = await controller.scan_document(payload.document_type)
    return ScanResponse(document_type=payload.document_type, fields=fields)


@router.post("/sessions/{session_id}/symptoms/messages", response_model=SymptomMessageResponse)
def symptom_message(session_id: str, payload: SymptomMessageRequest) -> SymptomMessageResponse:
    controller = _get_controller(session_id)
    _require_symptom_stage(controller)

    assistant = controller.assistant
    reply = assistant.respond(payload.message)
    return SymptomMessageResponse(
        reply=reply,
        assistant_state=assistant.state,
        draft=assistant.draft,
    )


@router.post("/sessions/{session_id}/symptoms", response_model=SymptomListResponse)
def add_symptom(session_id: str, payload: AddSymptomRequest) -> SymptomListResponse:
    """Apply any edits to the draft symptom, then add it to the list."""
    controller = _get_controller(session_id)
    _require_symptom_stage(controller)

    assistant = controller.assistant
    changes = payload.model_dump(exclude_none=True)
    if changes:
        assistant.update_draft(**changes)
    added = assistant.add_symptom()
    return SymptomListResponse(added=added is not None, symptoms=assistant.symptoms)


@router.post("/sessions/{session_id}/symptoms/complete", response_model=SessionSnapshot)
async def complete_assessment(
    session_id: str, payload: CompleteAssessmentRequest
) -> SessionSnapshot:
    controller = _get_controller(session_id)
    await controller.assistant.complete_assessment(payload.chief_complaint)
    return _snapshot(session_id, controller)


@router.get("/locations", response_model=List[Location])
async def list_locations() -> List[Location]:
    return await _services.scheduling.list_locations()
