"""Enumeration types for the NIV onboarding domain."""
from enum import Enum
from typing import FrozenSet


class OnboardingStatus(str, Enum):
    """Lifecycle status of a patient's NIV onboarding."""
    NEW = "NEW"
    WATCHLIST = "WATCHLIST"  # Awaiting respiratory therapist review
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REVIEWED = "REVIEWED"
    CHANGED = "CHANGED"

    def can_transition_to(self, target: "OnboardingStatus") -> bool:
        """Check whether the lifecycle allows moving to ``target``."""
        from niv_backend.orchestrator.transitions import can_transition
        return can_transition(self, target)

    def is_active(self) -> bool:
        return self is OnboardingStatus.ACTIVE

    def is_in_progress(self) -> bool:
        return self in (OnboardingStatus.PENDING, OnboardingStatus.WATCHLIST)


class QualificationType(str, Enum):
    """NIV clinical programs a diagnosis can qualify a patient for."""
    COPD = "COPD"  # Chronic obstructive pulmonary disease
    ARF = "ARF"  # Acute/chronic respiratory failure
    NMD = "NMD"  # Neuromuscular disease
    TRD = "TRD"  # Thoracic restrictive disease


class CodeSystem(str, Enum):
    """ICD-10 code libraries reported by the EHR."""
    ICD10_CM = "ICD-10-CM"
    ICD10_CA = "ICD-10-CA"


class MatchMode(str, Enum):
    """How a rule entry compares against a diagnosis code."""
    EXACT = "exact"
    PREFIX = "prefix"


class ErrorAction(str, Enum):
    """Recovery directive carried by every domain error."""
    STOP = "stop"
    RETRY = "retry"
    USER_INPUT = "user-input"


class ErrorCode(str, Enum):
    """Business-meaningful error codes for the onboarding workflow."""
    # Patient lookup (EHR integration)
    PATIENT_NOT_FOUND = "PATIENT_NOT_FOUND"
    PCC_UNAVAILABLE = "PCC_UNAVAILABLE"
    PCC_UNAUTHORIZED = "PCC_UNAUTHORIZED"

    # Qualification
    MISSING_CLINICAL_DATA = "MISSING_CLINICAL_DATA"

    # Workflow state
    INVALID_TRANSITION = "INVALID_TRANSITION"
    RT_ASSIGNMENT_FAILED = "RT_ASSIGNMENT_FAILED"
    ONBOARDING_ALREADY_EXISTS = "ONBOARDING_ALREADY_EXISTS"
    ONBOARDING_NOT_FOUND = "ONBOARDING_NOT_FOUND"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"


ALL_QUALIFICATION_TYPES: FrozenSet[QualificationType] = frozenset(QualificationType)
