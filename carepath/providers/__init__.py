# carepath/providers/__init__.py
from .base import (
    CheckInService,
    DocumentScanService,
    InsuranceVerificationService,
    PaymentProcessor,
    SchedulingService,
    Services,
)
from .fixtures import build_fixture_services

__all__ = [
    "CheckInService",
    "DocumentScanService",
    "InsuranceVerificationService",
    "PaymentProcessor",
    "SchedulingService",
    "Services",
    "build_fixture_services",
]
