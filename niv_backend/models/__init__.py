"""Domain models for NIV onboarding.

The onboarding aggregate lives in ``niv_backend.models.onboarding`` and is
imported from there directly; it depends on the eligibility rules package.
"""
from .enums import (
    CodeSystem,
    ErrorAction,
    ErrorCode,
    MatchMode,
    OnboardingStatus,
    QualificationType,
)
from .errors import OnboardingError
from .patient import DiagnosisCode, Patient, PatientDemographics, dedupe_diagnosis_codes
from .qualifications import ClinicalQualifications, QualificationCriterion

__all__ = [
    "CodeSystem",
    "ErrorAction",
    "ErrorCode",
    "MatchMode",
    "OnboardingStatus",
    "QualificationType",
    "OnboardingError",
    "DiagnosisCode",
    "Patient",
    "PatientDemographics",
    "dedupe_diagnosis_codes",
    "ClinicalQualifications",
    "QualificationCriterion",
]
