"""Service layer for business logic."""
from .onboarding_service import OnboardingService, PatientWithQualifications
from .qualification_service import AssessmentResult, QualificationService

__all__ = [
    "OnboardingService",
    "PatientWithQualifications",
    "AssessmentResult",
    "QualificationService",
]
