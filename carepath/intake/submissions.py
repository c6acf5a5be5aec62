# carepath/intake/submissions.py
"""
Required-field sets for each stage.

Every stage handler parses its raw payload into one of these models. Pydantic
reports all failing fields at once, which is what lets the controller list
every missing field instead of only the first one.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, Field, StringConstraints, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from carepath.intake.errors import ValidationError
from carepath.intake.schema import PaymentMethod, Symptom
from carepath.intake.stages import PendingChoice, Stage

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class HomeSubmission(BaseModel):
    patient_type: Literal["new", "returning"] = "new"


class RegistrationSubmission(BaseModel):
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    date_of_birth: dt.date
    address: NonEmptyStr
    id_number: NonEmptyStr
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None

    @field_validator("date_of_birth")
    @classmethod
    def _dob_in_past(cls, value: dt.date, info: ValidationInfo) -> dt.date:
        # Past, and within 120 years of today
        today = (info.context or {}).get("today") or dt.date.today()
        if value >= today:
            raise ValueError("date of birth must be in the past")
        if (today - value).days / 365.25 > 120:
            raise ValueError("date of birth is too far in the past")
        return value


class InsuranceSubmission(BaseModel):
    provider: NonEmptyStr
    member_id: NonEmptyStr
    group_number: NonEmptyStr


class PendingChoiceSubmission(BaseModel):
    pending_choice: Optional[PendingChoice] = None


class PaymentSubmission(BaseModel):
    method: PaymentMethod


class CardSubmission(BaseModel):
    card_number: NonEmptyStr
    cardholder_name: NonEmptyStr
    expiry: NonEmptyStr
    cvv: NonEmptyStr

    @field_validator("card_number")
    @classmethod
    def _card_digits(cls, value: str) -> str:
        digits = value.replace(" ", "").replace("-", "")
        if not digits.isdigit() or not 12 <= len(digits) <= 19:
            raise ValueError("card number must be 12-19 digits")
        return digits

    @field_validator("expiry")
    @classmethod
    def _expiry_format(cls, value: str) -> str:
        if not re.fullmatch(r"(0[1-9]|1[0-2])/\d{2}", value):
            raise ValueError("expiry must look like MM/YY")
        return value

    @field_validator("cvv")
    @classmethod
    def _cvv_digits(cls, value: str) -> str:
        if not value.isdigit() or len(value) not in (3, 4):
            raise ValueError("cvv must be 3 or 4 digits")
        return value

    @property
    def last_four(self) -> str:
        return self.card_number[-4:]


class SymptomSubmission(BaseModel):
    symptoms: List[Symptom] = Field(default_factory=list)
    chief_complaint: NonEmptyStr


class LocationSubmission(BaseModel):
    location_id: NonEmptyStr
    date: dt.date
    time: NonEmptyStr


class CheckInSubmission(BaseModel):
    signed_forms: List[str] = Field(default_factory=list)


def parse_submission(
    model: Type[BaseModel],
    data: Dict[str, Any],
    stage: Stage,
    context: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Validate `data` against `model`, raising our ValidationError on failure.

    `context` is handed to the model validators (e.g. the session's "today").
    """
    try:
        return model.model_validate(data or {}, context=context)
    except PydanticValidationError as exc:
        fields: Dict[str, str] = {}
        for error in exc.errors():
            name = ".".join(str(part) for part in error["loc"]) or "__root__"
            fields.setdefault(name, error["msg"])
        raise ValidationError(fields, stage=stage) from exc
