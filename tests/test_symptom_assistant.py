"""
Tests for the SymptomAssistant dialogue policy.

Covers:
  - first message becomes a draft symptom and triggers the severity prompt
  - later messages only get an acknowledgment
  - empty-name symptoms are silently ignored
  - the cycle restarts after a symptom is added
  - completion hands the payload to the workflow
"""

import pytest

from carepath.intake.assistant import SymptomAssistant
from carepath.intake.schema import Severity, Symptom
from carepath.intake.stages import Stage
from carepath.intake.state import AssistantState


@pytest.fixture
def assistant():
    return SymptomAssistant()


class TestConversation:
    def test_start_records_greeting_once(self, assistant):
        assistant.start()
        assistant.start()
        assert [turn.role for turn in assistant.turns] == ["assistant"]

    def test_first_message_creates_draft(self, assistant):
        reply = assistant.respond("Sore throat")

        assert reply == SymptomAssistant.SEVERITY_PROMPT
        assert assistant.state == AssistantState.AWAITING_SEVERITY
        assert assistant.draft.name == "Sore throat"
        assert assistant.draft.severity is None

    def test_follow_up_is_acknowledged_without_touching_draft(self, assistant):
        assistant.respond("Sore throat")
        draft = assistant.draft

        reply = assistant.respond("It's pretty bad, severe really")

        assert reply == SymptomAssistant.ACKNOWLEDGMENT
        assert assistant.draft == draft
        assert assistant.state == AssistantState.AWAITING_SEVERITY

    def test_blank_message_is_ignored(self, assistant):
        assert assistant.respond("   ") is None
        assert assistant.turns == []
        assert assistant.state == AssistantState.NO_SYMPTOM_CAPTURED

    def test_transcript_alternates(self, assistant):
        assistant.start()
        assistant.respond("Headache")
        assert [turn.role for turn in assistant.turns] == ["assistant", "patient", "assistant"]


class TestSymptomList:
    def test_add_draft_resets_cycle(self, assistant):
        assistant.respond("Cough")
        assistant.update_draft(severity="mild", duration="1 week")

        added = assistant.add_symptom()

        assert added.name == "Cough"
        assert added.severity == Severity.MILD
        assert assistant.draft is None
        assert assistant.state == AssistantState.NO_SYMPTOM_CAPTURED

        # Next message starts a new symptom
        assert assistant.respond("Fever") == SymptomAssistant.SEVERITY_PROMPT
        assert assistant.draft.name == "Fever"

    def test_empty_name_is_a_no_op(self, assistant):
        assert assistant.add_symptom({"name": ""}) is None
        assert assistant.symptoms == []

    def test_whitespace_name_is_a_no_op(self, assistant):
        assistant.add_symptom(Symptom(id="x", name="   "))
        assert assistant.symptoms == []

    def test_add_without_draft(self, assistant):
        assert assistant.add_symptom() is None

    def test_symptoms_keep_order(self, assistant):
        for name in ("Cough", "Fever", "Fatigue"):
            assistant.add_symptom({"name": name})
        assert [s.name for s in assistant.symptoms] == ["Cough", "Fever", "Fatigue"]
        assert len({s.id for s in assistant.symptoms}) == 3

    def test_remove_symptom(self, assistant):
        symptom = assistant.add_symptom({"name": "Cough"})
        assert assistant.remove_symptom(symptom.id) is True
        assert assistant.remove_symptom(symptom.id) is False

    def test_invalid_severity(self, assistant):
        with pytest.raises(ValueError):
            assistant.update_draft(severity="unbearable")


class TestCompletion:
    def test_chief_complaint_defaults_to_first_message(self, assistant):
        assistant.respond("Sore throat since Monday")
        assistant.add_symptom()
        payload = assistant.submission()
        assert payload["chief_complaint"] == "Sore throat since Monday"
        assert payload["symptoms"][0]["name"] == "Sore throat since Monday"

    def test_explicit_chief_complaint_wins(self, assistant):
        assistant.respond("Cough")
        assert assistant.submission("Persistent cough")["chief_complaint"] == "Persistent cough"

    @pytest.mark.asyncio
    async def test_complete_assessment_calls_handler(self):
        received = []

        async def on_complete(payload):
            received.append(payload)
            return Stage.LOCATION_DATE_SELECTION

        assistant = SymptomAssistant(on_complete=on_complete)
        assistant.add_symptom({"name": "Rash", "severity": "mild"})

        stage = await assistant.complete_assessment("Itchy rash")

        assert stage == Stage.LOCATION_DATE_SELECTION
        assert received[0]["chief_complaint"] == "Itchy rash"
        assert received[0]["symptoms"][0]["severity"] == Severity.MILD

    @pytest.mark.asyncio
    async def test_complete_without_handler(self, assistant):
        with pytest.raises(RuntimeError):
            await assistant.complete_assessment("Cough")
