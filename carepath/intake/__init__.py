# carepath/intake/__init__.py
from .schema import PatientRecord, Symptom, ConsentForm, InsuranceInfo
from .stages import Stage, PendingChoice

__all__ = ["PatientRecord", "Symptom", "ConsentForm", "InsuranceInfo", "Stage", "PendingChoice"]
