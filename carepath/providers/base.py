# carepath/providers/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from carepath.intake.schema import (
    Authorization,
    BookingConfirmation,
    Location,
    PatientRecord,
    VerificationResult,
)
from carepath.intake.submissions import CardSubmission, InsuranceSubmission

FieldSet = Dict[str, str]


class DocumentScanService(ABC):
    """Reads fields off a photographed document ("id" or "insurance")."""

    @abstractmethod
    async def scan(self, document_type: str) -> FieldSet:
        """
        returns: field name -> extracted value
        raises: ServiceError(SCAN_FAILED) when nothing could be read
        """
        ...


class InsuranceVerificationService(ABC):
    @abstractmethod
    async def verify(self, insurance: InsuranceSubmission) -> VerificationResult:
        ...


class PaymentProcessor(ABC):
    @abstractmethod
    async def authorize(self, card: CardSubmission) -> Authorization:
        """
        raises: ServiceError(DECLINED) when the card is refused
        """
        ...


class SchedulingService(ABC):
    @abstractmethod
    async def list_locations(self) -> List[Location]:
        ...


class CheckInService(ABC):
    @abstractmethod
    async def finalize(self, record: PatientRecord) -> BookingConfirmation:
        """
        Called exactly once, when the patient completes check-in.
        `record` is a copy; implementations must not expect later updates.
        """
        ...


class Services:
    """Bundle of collaborators handed to a WorkflowController."""

    def __init__(
        self,
        scanner: DocumentScanService,
        verifier: InsuranceVerificationService,
        payments: PaymentProcessor,
        scheduling: SchedulingService,
        check_in: CheckInService,
    ):
        self.scanner = scanner
        self.verifier = verifier
        self.payments = payments
        self.scheduling = scheduling
        self.check_in = check_in


__all__ = [
    "FieldSet",
    "DocumentScanService",
    "InsuranceVerificationService",
    "PaymentProcessor",
    "SchedulingService",
    "CheckInService",
    "Services",
]
