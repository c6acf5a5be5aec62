# carepath/providers/fixtures.py
"""
In-memory collaborators backed by sample data.

These stand in for OCR, insurance networks, card processing and the clinic
scheduling system during development and tests. Outcomes can be steered with
magic values:

  - member ids starting with "PEND" verify as pending, "ISSUE" as issues
  - card number 4000000000000002 is declined
  - document types other than "id" and "insurance" fail to scan
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Dict, List, Optional

from carepath.config import Settings, get_settings
from carepath.intake.errors import ServiceError, ServiceErrorKind
from carepath.intake.schema import (
    Authorization,
    BookingConfirmation,
    ConsentForm,
    CoverageDetails,
    CoverageStatus,
    Deductible,
    EstimatedCosts,
    Location,
    PatientRecord,
    VerificationResult,
)
from carepath.intake.submissions import CardSubmission, InsuranceSubmission
from carepath.providers.base import (
    CheckInService,
    DocumentScanService,
    FieldSet,
    InsuranceVerificationService,
    PaymentProcessor,
    SchedulingService,
    Services,
)

logger = logging.getLogger("carepath.providers.fixtures")

SAMPLE_DOCUMENTS: Dict[str, FieldSet] = {
    "id": {
        "first_name": "Ima",
        "last_name": "Cardholder",
        "date_of_birth": "1985-06-15",
        "address": "123 Main Street",
        "city": "Anytown",
        "state": "CA",
        "zip_code": "90210",
        "id_number": "DL12345678",
    },
    "insurance": {
        "provider": "HealthPlus Insurance",
        "member_id": "MEM987654321",
        "group_number": "GRP123456",
        "policy_holder_name": "Ima Cardholder",
    },
}

SAMPLE_LOCATIONS: List[Location] = [
    Location(
        id="loc1",
        name="Downtown Urgent Care",
        address="123 Main Street, Suite 100",
        distance="0.8 miles",
        rating=4.7,
        phone="(555) 123-4567",
        wait_time="15-25 min",
        available_times=["9:00 AM", "10:30 AM", "11:45 AM", "1:15 PM", "2:30 PM", "4:00 PM"],
    ),
    Location(
        id="loc2",
        name="Westside Medical Center",
        address="456 Park Avenue",
        distance="2.3 miles",
        rating=4.5,
        phone="(555) 987-6543",
        wait_time="5-10 min",
        available_times=["9:30 AM", "11:00 AM", "12:15 PM", "2:00 PM", "3:45 PM", "5:15 PM"],
    ),
    Location(
        id="loc3",
        name="Eastside Urgent Care",
        address="789 Oak Street, Building B",
        distance="3.5 miles",
        rating=4.8,
        phone="(555) 456-7890",
        wait_time="30-40 min",
        available_times=["8:45 AM", "10:15 AM", "12:30 PM", "1:45 PM", "3:15 PM", "4:45 PM"],
    ),
]

# "form1" is signed as part of registration, so it starts completed.
DEFAULT_CONSENT_FORMS: List[ConsentForm] = [
    ConsentForm(
        id="form1",
        name="General Consent for Treatment",
        completed=True,
        content=(
            "I hereby consent to evaluation, testing, and treatment as directed by my "
            "physician or his/her designee at Urgent Care Clinic."
        ),
    ),
    ConsentForm(
        id="form2",
        name="HIPAA Privacy Acknowledgment",
        content=(
            "I acknowledge that I have received a copy of the Urgent Care Clinic "
            "Notice of Privacy Practices."
        ),
    ),
    ConsentForm(
        id="form3",
        name="Financial Responsibility",
        content=(
            "I understand that I am financially responsible for all charges whether "
            "or not paid by my insurance."
        ),
    ),
    ConsentForm(
        id="form4",
        name="Medical History Form",
        content=(
            "Please provide accurate information about your medical history, including "
            "current medications, allergies, past surgeries, and chronic conditions."
        ),
    ),
]

DECLINED_CARD = "4000000000000002"


def default_consent_forms() -> List[ConsentForm]:
    return [form.model_copy() for form in DEFAULT_CONSENT_FORMS]


class _Latency:
    def __init__(self, settings: Optional[Settings] = None):
        self.delay = (settings or get_settings()).simulated_latency_seconds

    async def wait(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)


class FixtureDocumentScanner(DocumentScanService, _Latency):
    async def scan(self, document_type: str) -> FieldSet:
        await self.wait()
        fields = SAMPLE_DOCUMENTS.get(document_type)
        if fields is None:
            raise ServiceError(
                ServiceErrorKind.SCAN_FAILED,
                f"Could not read a document of type {document_type!r}",
            )
        return dict(fields)


class FixtureInsuranceVerifier(InsuranceVerificationService, _Latency):
    async def verify(self, insurance: InsuranceSubmission) -> VerificationResult:
        await self.wait()
        member_id = insurance.member_id.upper()

        if member_id.startswith("PEND"):
            return VerificationResult(coverage_status=CoverageStatus.PENDING)

        if member_id.startswith("ISSUE"):
            return VerificationResult(
                coverage_status=CoverageStatus.ISSUES,
                issues=["ID not found"],
            )

        return VerificationResult(
            coverage_status=CoverageStatus.VERIFIED,
            plan_type="PPO",
            coverage_details=CoverageDetails(
                in_network=True,
                deductible=Deductible(individual=1500, family=3000, met=500, remaining=1000),
                copay=25,
                coinsurance=20,
            ),
            estimated_costs=EstimatedCosts(visit_fee=25, additional_services=0, total=25),
        )


class FixturePaymentProcessor(PaymentProcessor, _Latency):
    async def authorize(self, card: CardSubmission) -> Authorization:
        await self.wait()
        if card.card_number == DECLINED_CARD:
            raise ServiceError(ServiceErrorKind.DECLINED, "Card was declined")
        return Authorization(authorization_id=f"auth_{uuid.uuid4().hex[:12]}")


class FixtureSchedulingService(SchedulingService, _Latency):
    def __init__(self, locations: Optional[List[Location]] = None, settings: Optional[Settings] = None):
        _Latency.__init__(self, settings)
        self.locations = list(locations if locations is not None else SAMPLE_LOCATIONS)

    async def list_locations(self) -> List[Location]:
        await self.wait()
        return [loc.model_copy() for loc in self.locations]


class FixtureCheckInService(CheckInService, _Latency):
    ESTIMATED_WAIT_MINUTES = 25

    def __init__(self, settings: Optional[Settings] = None):
        _Latency.__init__(self, settings)
        self.finalized: List[PatientRecord] = []

    async def finalize(self, record: PatientRecord) -> BookingConfirmation:
        await self.wait()
        if record.appointment is None:
            raise ValueError("Cannot finalize a check-in without an appointment")

        self.finalized.append(record)
        confirmation_id = uuid.uuid4().hex[:10].upper()
        logger.info("Check-in finalized: %s", confirmation_id)
        return BookingConfirmation(
            confirmation_id=confirmation_id,
            patient_name=record.identity.full_name if record.identity else None,
            location_id=record.appointment.location_id,
            date=record.appointment.date,
            time=record.appointment.time,
            estimated_wait_minutes=self.ESTIMATED_WAIT_MINUTES,
            qr_code_data=f"https://example.com/qr/{confirmation_id}",
        )


def build_fixture_services(settings: Optional[Settings] = None) -> Services:
    return Services(
        scanner=FixtureDocumentScanner(settings),
        verifier=FixtureInsuranceVerifier(settings),
        payments=FixturePaymentProcessor(settings),
        scheduling=FixtureSchedulingService(settings=settings),
        check_in=FixtureCheckInService(settings),
    )
