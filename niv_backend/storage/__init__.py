"""Storage layer: ORM models, database session and onboarding repository."""
from .models import Base, DiagnosisCodeQualificationModel, OnboardingModel
from .onboarding_repository import (
    InMemoryOnboardingRepository,
    OnboardingRepository,
    SqlOnboardingRepository,
)

__all__ = [
    "Base",
    "DiagnosisCodeQualificationModel",
    "OnboardingModel",
    "InMemoryOnboardingRepository",
    "OnboardingRepository",
    "SqlOnboardingRepository",
]
