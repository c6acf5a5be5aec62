# carepath/intake/stages.py
from enum import Enum
from typing import Dict, FrozenSet


class Stage(str, Enum):
    HOME = "home"
    REGISTRATION = "registration"
    INSURANCE_VERIFICATION = "insurance_verification"
    PAYMENT_OPTIONS = "payment_options"
    CREDIT_CARD_AUTHORIZATION = "credit_card_authorization"
    SYMPTOM_INTAKE = "symptom_intake"
    LOCATION_DATE_SELECTION = "location_date_selection"
    CHECK_IN_CONFIRMATION = "check_in_confirmation"
    COMPLETE = "complete"


class PendingChoice(str, Enum):
    WAIT_RETRY = "wait_retry"
    PROCEED_WITHOUT_INSURANCE = "proceed_without_insurance"
    EDIT_INSURANCE = "edit_insurance"


# Legal successors of every stage. Routers may only pick from this table.
TRANSITIONS: Dict[Stage, FrozenSet[Stage]] = {
    Stage.HOME: frozenset({Stage.REGISTRATION, Stage.SYMPTOM_INTAKE}),
    Stage.REGISTRATION: frozenset({Stage.INSURANCE_VERIFICATION}),
    Stage.INSURANCE_VERIFICATION: frozenset(
        {
            Stage.INSURANCE_VERIFICATION,  # pending coverage, wait and retry
            Stage.SYMPTOM_INTAKE,
            Stage.PAYMENT_OPTIONS,
            Stage.REGISTRATION,
        }
    ),
    Stage.PAYMENT_OPTIONS: frozenset(
        {Stage.CREDIT_CARD_AUTHORIZATION, Stage.SYMPTOM_INTAKE}
    ),
    Stage.CREDIT_CARD_AUTHORIZATION: frozenset(
        {Stage.SYMPTOM_INTAKE, Stage.PAYMENT_OPTIONS}
    ),
    Stage.SYMPTOM_INTAKE: frozenset({Stage.LOCATION_DATE_SELECTION}),
    Stage.LOCATION_DATE_SELECTION: frozenset({Stage.CHECK_IN_CONFIRMATION}),
    Stage.CHECK_IN_CONFIRMATION: frozenset({Stage.COMPLETE}),
    Stage.COMPLETE: frozenset(),
}


def can_transition(current: Stage, target: Stage) -> bool:
    return target in TRANSITIONS.get(current, frozenset())
