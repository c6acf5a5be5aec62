# carepath/intake/assistant.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from carepath.intake.schema import Severity, Symptom
from carepath.intake.stages import Stage
from carepath.intake.state import AssistantState, IntakeTurn

logger = logging.getLogger("carepath.assistant")

CompletionHandler = Callable[[Dict[str, Any]], Awaitable[Stage]]


def _new_symptom_id() -> str:
    return uuid.uuid4().hex


class SymptomAssistant:
    """
    SymptomAssistant drives the symptom-collection chat.

    It is a two-state policy with no language understanding:
      - NO_SYMPTOM_CAPTURED: the next patient message becomes the name of a
        draft symptom and we ask how severe it is.
      - AWAITING_SEVERITY: any further message only gets an acknowledgment;
        severity, duration and notes are filled through update_draft().

    Adding the draft returns the policy to NO_SYMPTOM_CAPTURED, so the cycle
    restarts for the next symptom.
    """

    GREETING = (
        "Hello! I'm your virtual medical assistant. I'll help collect information "
        "about your symptoms before your visit. What brings you in today?"
    )
    SEVERITY_PROMPT = (
        "I understand you're experiencing some discomfort. Let's add this as a "
        "symptom to track. Could you tell me how severe this is on a scale from "
        "mild to severe?"
    )
    ACKNOWLEDGMENT = (
        "Thank you for providing that information. Is there anything else you'd "
        "like to add about your symptoms or medical history?"
    )

    def __init__(self, on_complete: Optional[CompletionHandler] = None):
        self._on_complete = on_complete

        self.state = AssistantState.NO_SYMPTOM_CAPTURED
        self.turns: List[IntakeTurn] = []
        self.symptoms: List[Symptom] = []
        self.draft: Optional[Symptom] = None

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def start(self) -> str:
        """Record and return the opening message."""
        if not self.turns:
            self._record_assistant_turn(self.GREETING)
        return self.GREETING

    def respond(self, utterance: str) -> Optional[str]:
        """
        Take a patient message and return the assistant's reply.

        Blank messages are ignored and get no reply.
        """
        text = (utterance or "").strip()
        if not text:
            return None

        self._record_patient_turn(text)

        if self.state == AssistantState.NO_SYMPTOM_CAPTURED:
            self.draft = Symptom(id=_new_symptom_id(), name=text)
            self.state = AssistantState.AWAITING_SEVERITY
            reply = self.SEVERITY_PROMPT
        else:
            reply = self.ACKNOWLEDGMENT

        self._record_assistant_turn(reply)
        return reply

    # ------------------------------------------------------------------
    # Symptom list
    # ------------------------------------------------------------------

    def update_draft(self, **changes: Any) -> Symptom:
        """Edit the draft symptom (name, severity, duration, notes)."""
        current = self.draft or Symptom(id=_new_symptom_id(), name="")
        if "severity" in changes and changes["severity"] is not None:
            changes["severity"] = Severity(changes["severity"])
        allowed = {
            k: v for k, v in changes.items() if k in ("name", "severity", "duration", "notes")
        }
        self.draft = current.model_copy(update=allowed)
        return self.draft

    def add_symptom(
        self, draft: Optional[Union[Symptom, Dict[str, Any]]] = None
    ) -> Optional[Symptom]:
        """
        Append a symptom to the list.

        Uses the current draft when none is passed. A symptom without a name
        is ignored: nothing is added and no error is raised.
        """
        if draft is None:
            draft = self.draft
        if draft is None:
            return None
        if isinstance(draft, dict):
            fields = {k: v for k, v in draft.items() if k != "id"}
            fields.setdefault("name", "")
            draft = Symptom(id=draft.get("id") or _new_symptom_id(), **fields)

        if not draft.name.strip():
            return None

        symptom = draft.model_copy(update={"id": draft.id or _new_symptom_id()})
        self.symptoms.append(symptom)
        self.draft = None
        self.state = AssistantState.NO_SYMPTOM_CAPTURED
        logger.debug("Added symptom %s (%s)", symptom.name, symptom.severity)
        return symptom

    def remove_symptom(self, symptom_id: str) -> bool:
        before = len(self.symptoms)
        self.symptoms = [s for s in self.symptoms if s.id != symptom_id]
        return len(self.symptoms) != before

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def submission(self, chief_complaint: Optional[str] = None) -> Dict[str, Any]:
        """
        Build the SymptomIntake payload.

        When no chief complaint is given, the first thing the patient said
        is used instead.
        """
        complaint = (chief_complaint or "").strip() or self._first_patient_message() or ""
        return {
            "symptoms": [s.model_dump() for s in self.symptoms],
            "chief_complaint": complaint,
        }

    async def complete_assessment(self, chief_complaint: Optional[str] = None) -> Stage:
        """Commit the symptoms and chief complaint and advance the workflow."""
        if self._on_complete is None:
            raise RuntimeError("SymptomAssistant has no completion handler attached")
        return await self._on_complete(self.submission(chief_complaint))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _first_patient_message(self) -> Optional[str]:
        for turn in self.turns:
            if turn.role == "patient":
                return turn.content
        return None

    def _record_patient_turn(self, content: str) -> None:
        self.turns.append(IntakeTurn(role="patient", content=content))

    def _record_assistant_turn(self, content: str) -> None:
        self.turns.append(IntakeTurn(role="assistant", content=content))
