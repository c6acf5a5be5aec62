"""
Shared fixtures for the intake workflow tests.

Collaborators are the in-memory fixture services (no latency), plus a few
fakes that block, fail or stall so the pending/timeout paths can be driven.
The controller gets a fixed "today" and a manual clock.
"""

import asyncio
from datetime import date, timedelta

import pytest

from carepath.config import Settings
from carepath.intake.errors import ServiceError, ServiceErrorKind
from carepath.intake.schema import CoverageStatus, VerificationResult
from carepath.intake.stages import Stage
from carepath.providers.base import InsuranceVerificationService, SchedulingService
from carepath.providers.fixtures import build_fixture_services
from carepath.services.workflow import WorkflowController

TODAY = date(2026, 10, 19)


def next_open_day(start: date = TODAY) -> date:
    """First day after `start` that is not a Sunday."""
    day = start + timedelta(days=1)
    while day.weekday() == 6:
        day += timedelta(days=1)
    return day


def next_sunday(start: date = TODAY) -> date:
    return start + timedelta(days=(6 - start.weekday()) % 7 or 7)


REGISTRATION_DATA = {
    "first_name": "Ima",
    "last_name": "Cardholder",
    "date_of_birth": "1985-06-15",
    "address": "123 Main Street",
    "id_number": "DL12345678",
    "city": "Anytown",
    "state": "CA",
    "zip_code": "90210",
}

INSURANCE_DATA = {
    "provider": "Blue Shield California",
    "member_id": "XYZ123456789",
    "group_number": "G9876543",
}

CARD_DATA = {
    "card_number": "4242 4242 4242 4242",
    "cardholder_name": "Ima Cardholder",
    "expiry": "12/29",
    "cvv": "123",
}

SYMPTOM_DATA = {
    "symptoms": [
        {"id": "s1", "name": "Sore throat", "severity": "moderate", "duration": "3 days", "notes": ""},
    ],
    "chief_complaint": "Sore throat and fever",
}


def location_data(day: date = None, time: str = "2:30 PM", location_id: str = "loc1") -> dict:
    return {
        "location_id": location_id,
        "date": (day or next_open_day()).isoformat(),
        "time": time,
    }


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now += seconds


class BlockingVerifier(InsuranceVerificationService):
    """Holds every verification until `release` is set."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def verify(self, insurance):
        self.started.set()
        await self.release.wait()
        return VerificationResult(coverage_status=CoverageStatus.VERIFIED)


class AnsweringVerifier(InsuranceVerificationService):
    """Answers with coverage issues at once and flags when it has answered."""

    def __init__(self):
        self.finished = asyncio.Event()

    async def verify(self, insurance):
        self.finished.set()
        return VerificationResult(coverage_status=CoverageStatus.ISSUES, issues=["ID not found"])


class StalledVerifier(InsuranceVerificationService):
    async def verify(self, insurance):
        await asyncio.sleep(10)


class UnreachableScheduling(SchedulingService):
    def __init__(self, locations=None):
        self.locations = locations
        self.calls = 0

    async def list_locations(self):
        self.calls += 1
        if self.locations is not None and self.calls == 1:
            return list(self.locations)
        raise ServiceError(ServiceErrorKind.PROVIDER_UNREACHABLE, "Scheduling is down")


@pytest.fixture
def settings():
    return Settings(
        service_timeout_seconds=2.0,
        simulated_latency_seconds=0.0,
        max_verification_retries=2,
        pending_choice_timeout_seconds=120.0,
        pending_default_choice="proceed_without_insurance",
        require_severity=False,
    )


@pytest.fixture
def services(settings):
    return build_fixture_services(settings)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_controller(services, settings, clock):
    """Factory so tests can swap settings or collaborators."""

    def _make(services=services, settings=settings):
        return WorkflowController(
            services,
            settings=settings,
            today=lambda: TODAY,
            clock=clock,
        )

    return _make


@pytest.fixture
def controller(make_controller):
    return make_controller()


async def drive_to(controller: WorkflowController, target: Stage) -> None:
    """Walk the verified-insurance path until `target` is the current stage."""
    steps = [
        (Stage.HOME, {"patient_type": "new"}),
        (Stage.REGISTRATION, REGISTRATION_DATA),
        (Stage.INSURANCE_VERIFICATION, INSURANCE_DATA),
        (Stage.SYMPTOM_INTAKE, SYMPTOM_DATA),
        (Stage.LOCATION_DATE_SELECTION, location_data()),
        (Stage.CHECK_IN_CONFIRMATION, {"signed_forms": ["form2", "form3", "form4"]}),
    ]
    for stage, data in steps:
        if controller.stage == target:
            return
        await controller.advance(stage, data)
    assert controller.stage == target
