# carepath/intake/validators.py
"""
Stage guards and routers.

Each router takes data that has already passed its submission model and
decides which stage follows. None of them touch the PatientRecord; the
controller merges their output.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from carepath.intake.errors import ValidationError
from carepath.intake.schema import (
    ConsentForm,
    CoverageStatus,
    InsuranceInfo,
    Location,
    PaymentMethod,
    VerificationResult,
)
from carepath.intake.stages import PendingChoice, Stage
from carepath.intake.submissions import InsuranceSubmission, LocationSubmission

logger = logging.getLogger("carepath.validators")


@dataclass
class InsuranceDecision:
    next_stage: Stage
    insurance: Optional[InsuranceInfo] = None
    options: List[PendingChoice] = field(default_factory=list)

    @property
    def awaiting_choice(self) -> bool:
        return bool(self.options)


class InsuranceVerificationRouter:
    """
    verified -> SymptomIntake (record coverage details)
    issues   -> PaymentOptions (record issues)
    pending  -> caller picks: wait and retry, proceed without insurance,
                or go back and edit the insurance details
    """

    PENDING_TARGETS: Dict[PendingChoice, Stage] = {
        PendingChoice.WAIT_RETRY: Stage.INSURANCE_VERIFICATION,
        PendingChoice.PROCEED_WITHOUT_INSURANCE: Stage.PAYMENT_OPTIONS,
        PendingChoice.EDIT_INSURANCE: Stage.REGISTRATION,
    }

    def route(
        self,
        submitted: InsuranceSubmission,
        result: VerificationResult,
        retries_left: int = 0,
    ) -> InsuranceDecision:
        status = result.coverage_status

        if status == CoverageStatus.VERIFIED:
            insurance = InsuranceInfo(
                **submitted.model_dump(),
                coverage_status=status,
                plan_type=result.plan_type,
                coverage_details=result.coverage_details,
                estimated_costs=result.estimated_costs,
            )
            return InsuranceDecision(Stage.SYMPTOM_INTAKE, insurance=insurance)

        if status == CoverageStatus.ISSUES:
            insurance = InsuranceInfo(
                **submitted.model_dump(),
                coverage_status=status,
                plan_type=result.plan_type,
                issues=list(result.issues) or ["Coverage could not be verified"],
            )
            return InsuranceDecision(Stage.PAYMENT_OPTIONS, insurance=insurance)

        return InsuranceDecision(
            Stage.INSURANCE_VERIFICATION,
            options=self.pending_options(retries_left),
        )

    def pending_options(self, retries_left: int) -> List[PendingChoice]:
        options = [PendingChoice.PROCEED_WITHOUT_INSURANCE, PendingChoice.EDIT_INSURANCE]
        if retries_left > 0:
            options.insert(0, PendingChoice.WAIT_RETRY)
        return options

    def resolve_pending(
        self, submitted: InsuranceSubmission, choice: PendingChoice
    ) -> InsuranceDecision:
        """Turn the caller's choice for pending coverage into a decision."""
        next_stage = self.PENDING_TARGETS[choice]
        insurance = None
        if choice == PendingChoice.PROCEED_WITHOUT_INSURANCE:
            insurance = InsuranceInfo(
                **submitted.model_dump(),
                coverage_status=CoverageStatus.PENDING,
            )
        return InsuranceDecision(next_stage, insurance=insurance)


class PaymentSelectionRouter:
    def route(self, method: PaymentMethod) -> Stage:
        if method == PaymentMethod.SELF_PAY:
            return Stage.CREDIT_CARD_AUTHORIZATION
        return Stage.SYMPTOM_INTAKE

    def route_authorization(self, authorized: bool) -> Stage:
        # A declined card sends the patient back to choose again.
        return Stage.SYMPTOM_INTAKE if authorized else Stage.PAYMENT_OPTIONS


class ConsentFormGate:
    def __init__(self, forms: Iterable[ConsentForm]):
        self.forms: List[ConsentForm] = [form.model_copy() for form in forms]

    @property
    def completed_count(self) -> int:
        return sum(1 for form in self.forms if form.completed)

    @property
    def completion_percentage(self) -> float:
        if not self.forms:
            return 100.0
        return self.completed_count / len(self.forms) * 100

    def incomplete(self) -> List[ConsentForm]:
        return [form for form in self.forms if not form.completed]

    def can_check_in(self) -> bool:
        return all(form.completed for form in self.forms)

    def mark_completed(self, form_id: str, completed: bool = True) -> None:
        for form in self.forms:
            if form.id == form_id:
                form.completed = completed
                return
        raise KeyError(form_id)


class LocationDateValidator:
    def __init__(self, locations: Sequence[Location]):
        self.locations: Dict[str, Location] = {loc.id: loc for loc in locations}

    def validate(self, submitted: LocationSubmission, today: dt.date) -> Location:
        """
        Check a location/date/time selection.

        Rules:
          - location must exist in the catalog
          - date must be today or later, and not a Sunday
          - time must be one of the location's available times

        Every broken rule is reported in a single ValidationError.
        """
        errors: Dict[str, str] = {}

        location = self.locations.get(submitted.location_id)
        if location is None:
            errors["location_id"] = f"unknown location {submitted.location_id!r}"

        if submitted.date < today:
            errors["date"] = "date cannot be in the past"
        elif submitted.date.weekday() == 6:
            errors["date"] = "clinics are closed on Sundays"

        if location is not None and submitted.time not in location.available_times:
            errors["time"] = f"{submitted.time!r} is not available at {location.name}"

        if errors:
            logger.info("Rejected location selection: %s", errors)
            raise ValidationError(errors, stage=Stage.LOCATION_DATE_SELECTION)

        return location
