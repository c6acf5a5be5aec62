# carepath/intake/schema.py
from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from carepath.intake.stages import Stage


class CoverageStatus(str, Enum):
    VERIFIED = "verified"
    PENDING = "pending"
    ISSUES = "issues"


class PaymentMethod(str, Enum):
    SELF_PAY = "self-pay"
    PAYMENT_PLAN = "payment-plan"
    CASH_DISCOUNT = "cash-discount"


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class Identity(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: dt.date
    address: str
    id_number: str
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Deductible(BaseModel):
    individual: float
    family: float
    met: float
    remaining: float


class CoverageDetails(BaseModel):
    in_network: bool
    deductible: Deductible
    copay: float
    coinsurance: float = Field(..., description="Percentage, e.g. 20 for 20%")


class EstimatedCosts(BaseModel):
    visit_fee: float
    additional_services: float = 0
    total: float


class InsuranceInfo(BaseModel):
    provider: str
    member_id: str
    group_number: str
    coverage_status: CoverageStatus
    plan_type: Optional[str] = None
    coverage_details: Optional[CoverageDetails] = None
    estimated_costs: Optional[EstimatedCosts] = None
    issues: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _outcomes_are_disjoint(self) -> "InsuranceInfo":
        if self.coverage_details is not None and self.issues:
            raise ValueError("coverage_details and issues cannot both be set")
        if self.coverage_details is not None and self.coverage_status != CoverageStatus.VERIFIED:
            raise ValueError("coverage_details requires coverage_status 'verified'")
        return self


class PaymentSelection(BaseModel):
    method: PaymentMethod
    card_authorized: bool = False
    authorization_id: Optional[str] = None


class Symptom(BaseModel):
    id: str
    name: str = Field(..., description="Symptom name, e.g. 'sore throat'")
    severity: Optional[Severity] = None
    duration: str = ""
    notes: str = ""


class SymptomReport(BaseModel):
    symptoms: List[Symptom] = Field(default_factory=list)
    chief_complaint: str


class Appointment(BaseModel):
    location_id: str
    date: dt.date
    time: str


class ConsentForm(BaseModel):
    id: str
    name: str
    completed: bool = False
    content: str = ""


class PatientRecord(BaseModel):
    """
    Everything collected about the patient during one intake session.

    Each group stays None until its owning stage has been committed.
    """

    identity: Optional[Identity] = None
    insurance: Optional[InsuranceInfo] = None
    payment_selection: Optional[PaymentSelection] = None
    symptom_report: Optional[SymptomReport] = None
    appointment: Optional[Appointment] = None
    consent_forms: List[ConsentForm] = Field(default_factory=list)
    stage_history: List[Stage] = Field(default_factory=list)


# ----------------------------------------------------------------------
# Collaborator payloads
# ----------------------------------------------------------------------


class VerificationResult(BaseModel):
    coverage_status: CoverageStatus
    plan_type: Optional[str] = None
    coverage_details: Optional[CoverageDetails] = None
    estimated_costs: Optional[EstimatedCosts] = None
    issues: List[str] = Field(default_factory=list)


class Location(BaseModel):
    id: str
    name: str
    address: str = ""
    distance: str = ""
    rating: Optional[float] = None
    phone: str = ""
    wait_time: str = ""
    available_times: List[str] = Field(default_factory=list)


class Authorization(BaseModel):
    authorization_id: str


class BookingConfirmation(BaseModel):
    confirmation_id: str
    patient_name: Optional[str] = None
    location_id: str
    date: dt.date
    time: str
    estimated_wait_minutes: int
    qr_code_data: str
