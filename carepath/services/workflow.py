# carepath/services/workflow.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from carepath.config import Settings, get_settings
from carepath.intake.assistant import SymptomAssistant
from carepath.intake.errors import (
    IllegalTransitionError,
    NoHistoryError,
    PendingOperationError,
    ServiceError,
    ServiceErrorKind,
    ValidationError,
)
from carepath.intake.schema import (
    Appointment,
    BookingConfirmation,
    ConsentForm,
    CoverageStatus,
    Identity,
    Location,
    PatientRecord,
    PaymentSelection,
    SymptomReport,
    VerificationResult,
)
from carepath.intake.stages import PendingChoice, Stage, can_transition
from carepath.intake.state import IntakeSession
from carepath.intake.submissions import (
    CardSubmission,
    CheckInSubmission,
    HomeSubmission,
    InsuranceSubmission,
    LocationSubmission,
    PaymentSubmission,
    PendingChoiceSubmission,
    RegistrationSubmission,
    SymptomSubmission,
    parse_submission,
)
from carepath.intake.validators import (
    ConsentFormGate,
    InsuranceVerificationRouter,
    LocationDateValidator,
    PaymentSelectionRouter,
)
from carepath.providers.base import FieldSet, Services
from carepath.providers.fixtures import default_consent_forms

logger = logging.getLogger("carepath.workflow")

T = TypeVar("T")

StageData = Dict[str, Any]


@dataclass
class Transition:
    next_stage: Stage
    updates: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PendingCoverage:
    """Verification came back 'pending' and we are waiting for the patient."""

    submitted: InsuranceSubmission
    options: List[PendingChoice]
    since: float
    retries_used: int = 0


class WorkflowController:
    """
    Drives one patient through the intake stages.

    The controller is the only writer of the PatientRecord. Every change goes
    through advance(), which:
      - checks the caller is acting on the current stage
      - validates the submitted data (all missing fields reported at once)
      - runs the stage's router, calling collaborators where needed
      - applies the resulting field groups in one step and moves on

    An advance() holds the stage pending until its result is applied; a
    second advance() or a retreat() meanwhile raises PendingOperationError.
    reset() cancels the outstanding call and any late result is dropped.
    """

    def __init__(
        self,
        services: Services,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
        clock: Callable[[], float] = time.monotonic,
        consent_forms: Callable[[], List[ConsentForm]] = default_consent_forms,
    ):
        self.services = services
        self.settings = settings or get_settings()
        self._today = today
        self._clock = clock
        self._consent_forms = consent_forms

        self.insurance_router = InsuranceVerificationRouter()
        self.payment_router = PaymentSelectionRouter()

        self._handlers: Dict[Stage, Callable[[StageData], Awaitable[Transition]]] = {
            Stage.HOME: self._commit_home,
            Stage.REGISTRATION: self._commit_registration,
            Stage.INSURANCE_VERIFICATION: self._commit_insurance,
            Stage.PAYMENT_OPTIONS: self._commit_payment,
            Stage.CREDIT_CARD_AUTHORIZATION: self._commit_card,
            Stage.SYMPTOM_INTAKE: self._commit_symptoms,
            Stage.LOCATION_DATE_SELECTION: self._commit_location,
            Stage.CHECK_IN_CONFIRMATION: self._commit_check_in,
        }

        self._locations: Optional[List[Location]] = None
        self._start_session()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def stage(self) -> Stage:
        return self.session.stage

    @property
    def record(self) -> PatientRecord:
        return self.session.record

    @property
    def pending_stage(self) -> Optional[Stage]:
        """Stage whose advance() or collaborator call is still outstanding, if any."""
        if self._call_outstanding():
            return self._pending_stage
        return self._advancing

    @property
    def pending_options(self) -> List[PendingChoice]:
        if self._pending_coverage is None:
            return []
        return list(self._pending_coverage.options)

    @property
    def consent_gate(self) -> ConsentFormGate:
        return ConsentFormGate(self.record.consent_forms)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def advance(self, stage: Stage, data: Optional[StageData] = None) -> Stage:
        """
        Commit `data` for `stage` and move to the next stage.

        Returns the new current stage. Raises ValidationError,
        IllegalTransitionError, PendingOperationError or ServiceError.
        """
        stage = Stage(stage)
        current = self.session.stage
        if stage != current or current == Stage.COMPLETE:
            raise IllegalTransitionError(current, stage)
        self._ensure_idle()

        session = self.session
        self._advancing = stage
        try:
            transition = await self._handlers[stage](data or {})
            # reset() may have replaced the session while the handler ran
            self._ensure_session(session, stage)
            self._apply(current, transition)
        finally:
            if self.session is session:
                self._advancing = None
        return self.session.stage

    def retreat(self) -> Stage:
        """Go back to the previously visited stage, keeping committed data."""
        history = self.session.history
        if self.session.stage == Stage.COMPLETE:
            raise IllegalTransitionError(Stage.COMPLETE, history[-1] if history else Stage.HOME)
        self._ensure_idle()
        if not history:
            raise NoHistoryError()

        previous = history.pop()
        logger.info("Retreat %s -> %s", self.session.stage.value, previous.value)
        self._pending_coverage = None
        self.session.stage = previous
        return previous

    def reset(self) -> None:
        """Throw away the whole record and history and start over at Home."""
        self.cancel_pending()
        logger.info("Session reset at stage %s", self.session.stage.value)
        self._start_session()

    def cancel_pending(self) -> bool:
        task = self._pending_task
        if task is not None and not task.done():
            task.cancel()
            return True
        return False

    async def scan_document(self, document_type: str) -> FieldSet:
        """
        Prefill fields from a scanned document.

        Nothing is committed; the caller submits the fields through advance().
        Scan failures are raised to the caller.
        """
        if self.session.stage == Stage.COMPLETE:
            raise IllegalTransitionError(Stage.COMPLETE, Stage.REGISTRATION)
        self._ensure_idle()
        return await self._call(self.session.stage, self.services.scanner.scan(document_type))

    async def list_locations(self) -> List[Location]:
        """
        Fetch the clinic catalog, falling back to the last good copy when
        the scheduling service is down.
        """
        self._ensure_idle()
        return await self._fetch_locations()

    async def _fetch_locations(self) -> List[Location]:
        try:
            locations = await self._call(
                self.session.stage, self.services.scheduling.list_locations()
            )
        except ServiceError as exc:
            if self._locations is None:
                raise
            logger.warning("Scheduling unavailable (%s); using cached locations", exc)
            return list(self._locations)

        self._locations = list(locations)
        return list(locations)

    # ------------------------------------------------------------------
    # Stage handlers
    # ------------------------------------------------------------------

    async def _commit_home(self, data: StageData) -> Transition:
        submitted = parse_submission(HomeSubmission, data, Stage.HOME)
        if submitted.patient_type == "returning":
            return Transition(Stage.SYMPTOM_INTAKE)
        return Transition(Stage.REGISTRATION)

    async def _commit_registration(self, data: StageData) -> Transition:
        submitted = parse_submission(
            RegistrationSubmission, data, Stage.REGISTRATION, context={"today": self._today()}
        )
        identity = Identity(**submitted.model_dump())
        return Transition(Stage.INSURANCE_VERIFICATION, {"identity": identity})

    async def _commit_insurance(self, data: StageData) -> Transition:
        if self._pending_coverage is not None:
            return await self._resolve_pending_coverage(data)

        submitted = parse_submission(InsuranceSubmission, data, Stage.INSURANCE_VERIFICATION)
        return await self._verify_insurance(submitted, retries_used=0)

    async def _verify_insurance(
        self, submitted: InsuranceSubmission, retries_used: int
    ) -> Transition:
        try:
            result = await self._call(
                Stage.INSURANCE_VERIFICATION, self.services.verifier.verify(submitted)
            )
        except ServiceError as exc:
            # No hard failure here: the patient can still pay another way.
            logger.warning("Insurance verification failed: %s", exc)
            result = VerificationResult(
                coverage_status=CoverageStatus.ISSUES,
                issues=[exc.message],
            )

        retries_left = self.settings.max_verification_retries - retries_used
        decision = self.insurance_router.route(submitted, result, retries_left)
        logger.info(
            "Insurance %s for member %s -> %s",
            result.coverage_status.value,
            submitted.member_id,
            decision.next_stage.value,
        )

        if decision.awaiting_choice:
            self._pending_coverage = PendingCoverage(
                submitted=submitted,
                options=decision.options,
                since=self._clock(),
                retries_used=retries_used,
            )
            return Transition(Stage.INSURANCE_VERIFICATION)

        self._pending_coverage = None
        return Transition(decision.next_stage, {"insurance": decision.insurance})

    async def _resolve_pending_coverage(self, data: StageData) -> Transition:
        pending = self._pending_coverage
        submitted = parse_submission(PendingChoiceSubmission, data, Stage.INSURANCE_VERIFICATION)
        choice = submitted.pending_choice

        if choice is None:
            waited = self._clock() - pending.since
            if waited < self.settings.pending_choice_timeout_seconds:
                options = ", ".join(option.value for option in pending.options)
                raise ValidationError(
                    {"pending_choice": f"coverage is pending; choose one of: {options}"},
                    stage=Stage.INSURANCE_VERIFICATION,
                )
            choice = self.settings.pending_default_choice
            logger.info("No pending-coverage choice after %.0fs; using %s", waited, choice.value)

        if choice not in pending.options:
            raise ValidationError(
                {"pending_choice": f"{choice.value!r} is no longer available"},
                stage=Stage.INSURANCE_VERIFICATION,
            )

        if choice == PendingChoice.WAIT_RETRY:
            return await self._verify_insurance(pending.submitted, pending.retries_used + 1)

        decision = self.insurance_router.resolve_pending(pending.submitted, choice)
        self._pending_coverage = None
        updates = {"insurance": decision.insurance} if decision.insurance else {}
        return Transition(decision.next_stage, updates)

    async def _commit_payment(self, data: StageData) -> Transition:
        submitted = parse_submission(PaymentSubmission, data, Stage.PAYMENT_OPTIONS)
        selection = PaymentSelection(method=submitted.method)
        return Transition(
            self.payment_router.route(submitted.method),
            {"payment_selection": selection},
        )

    async def _commit_card(self, data: StageData) -> Transition:
        submitted = parse_submission(CardSubmission, data, Stage.CREDIT_CARD_AUTHORIZATION)
        try:
            authorization = await self._call(
                Stage.CREDIT_CARD_AUTHORIZATION,
                self.services.payments.authorize(submitted),
            )
        except ServiceError as exc:
            logger.info("Card ending %s not authorized: %s", submitted.last_four, exc)
            self.last_service_error = exc
            return Transition(self.payment_router.route_authorization(False))

        selection = self.record.payment_selection.model_copy(
            update={
                "card_authorized": True,
                "authorization_id": authorization.authorization_id,
            }
        )
        self.last_service_error = None
        return Transition(
            self.payment_router.route_authorization(True),
            {"payment_selection": selection},
        )

    async def _commit_symptoms(self, data: StageData) -> Transition:
        submitted = parse_submission(SymptomSubmission, data, Stage.SYMPTOM_INTAKE)
        if self.settings.require_severity:
            missing = {
                f"symptoms.{index}.severity": "severity is required"
                for index, symptom in enumerate(submitted.symptoms)
                if symptom.severity is None
            }
            if missing:
                raise ValidationError(missing, stage=Stage.SYMPTOM_INTAKE)

        report = SymptomReport(
            symptoms=submitted.symptoms,
            chief_complaint=submitted.chief_complaint,
        )
        return Transition(Stage.LOCATION_DATE_SELECTION, {"symptom_report": report})

    async def _commit_location(self, data: StageData) -> Transition:
        submitted = parse_submission(LocationSubmission, data, Stage.LOCATION_DATE_SELECTION)
        locations = await self._fetch_locations()
        LocationDateValidator(locations).validate(submitted, self._today())

        updates: Dict[str, Any] = {
            "appointment": Appointment(
                location_id=submitted.location_id,
                date=submitted.date,
                time=submitted.time,
            )
        }
        if not self.record.consent_forms:
            updates["consent_forms"] = self._consent_forms()
        return Transition(Stage.CHECK_IN_CONFIRMATION, updates)

    async def _commit_check_in(self, data: StageData) -> Transition:
        submitted = parse_submission(CheckInSubmission, data, Stage.CHECK_IN_CONFIRMATION)
        gate = ConsentFormGate(self.record.consent_forms)

        unknown = []
        for form_id in submitted.signed_forms:
            try:
                gate.mark_completed(form_id)
            except KeyError:
                unknown.append(form_id)
        if unknown:
            raise ValidationError(
                {"signed_forms": f"unknown consent forms: {', '.join(unknown)}"},
                stage=Stage.CHECK_IN_CONFIRMATION,
            )

        if not gate.can_check_in():
            raise ValidationError(
                {
                    f"consent_forms.{form.id}": f"{form.name!r} must be completed"
                    for form in gate.incomplete()
                },
                stage=Stage.CHECK_IN_CONFIRMATION,
            )

        handoff = self.record.model_copy(
            deep=True,
            update={"consent_forms": [form.model_copy() for form in gate.forms]},
        )
        confirmation = await self._call(
            Stage.CHECK_IN_CONFIRMATION, self.services.check_in.finalize(handoff)
        )
        self.confirmation = confirmation
        return Transition(Stage.COMPLETE, {"consent_forms": gate.forms})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _start_session(self) -> None:
        self.session = IntakeSession()
        self.assistant = SymptomAssistant(on_complete=self._complete_assessment)
        self.confirmation: Optional[BookingConfirmation] = None
        self.last_service_error: Optional[ServiceError] = None
        self._pending_task: Optional[asyncio.Future] = None
        self._pending_stage: Optional[Stage] = None
        self._pending_coverage: Optional[PendingCoverage] = None
        self._advancing: Optional[Stage] = None

    async def _complete_assessment(self, payload: StageData) -> Stage:
        return await self.advance(Stage.SYMPTOM_INTAKE, payload)

    def _call_outstanding(self) -> bool:
        return self._pending_task is not None and not self._pending_task.done()

    def _ensure_idle(self) -> None:
        if self.pending_stage is not None:
            raise PendingOperationError(self.pending_stage)

    def _ensure_session(self, session: IntakeSession, stage: Stage) -> None:
        """Refuse to act on results that belong to a discarded session."""
        if self.session is not session:
            logger.info("Dropping %s result from a session that was reset", stage.value)
            raise IllegalTransitionError(self.session.stage, stage)

    def _apply(self, current: Stage, transition: Transition) -> None:
        target = transition.next_stage
        if target != current and not can_transition(current, target):
            raise IllegalTransitionError(current, target)

        record = self.session.record
        for name, value in transition.updates.items():
            setattr(record, name, value)

        if target == current:
            return

        history = record.stage_history
        if not history or history[-1] != current:
            history.append(current)
        self.session.stage = target
        if target == Stage.SYMPTOM_INTAKE:
            self.assistant.start()
        logger.info("Stage %s -> %s", current.value, target.value)

    async def _call(self, stage: Stage, operation: Awaitable[T]) -> T:
        """
        Run a collaborator call as the stage's single outstanding operation.

        A timeout is reported as PROVIDER_UNREACHABLE. cancel_pending()
        cancels the call and the CancelledError propagates to the caller. If
        the session is reset while the call is out, its result is dropped.
        """
        if self._call_outstanding():
            if asyncio.iscoroutine(operation):
                operation.close()
            raise PendingOperationError(self._pending_stage)

        session = self.session
        task = asyncio.ensure_future(operation)
        self._pending_task = task
        self._pending_stage = stage
        try:
            result = await asyncio.wait_for(task, timeout=self.settings.service_timeout_seconds)
        except asyncio.TimeoutError:
            self._ensure_session(session, stage)
            logger.warning("Call for stage %s timed out", stage.value)
            raise ServiceError(
                ServiceErrorKind.PROVIDER_UNREACHABLE,
                f"No response within {self.settings.service_timeout_seconds:g}s",
            ) from None
        except ServiceError:
            self._ensure_session(session, stage)
            raise
        finally:
            if self._pending_task is task:
                self._pending_task = None
                self._pending_stage = None

        self._ensure_session(session, stage)
        return result
