"""Domain error for the NIV onboarding workflow.

Every failure that leaves the core carries a business code and a recovery
action, so callers branch on ``error.action`` rather than on exception type.
"""
from typing import Any, Dict, Optional

from niv_backend.models.enums import ErrorAction, ErrorCode

PCC_SERVICE = "pointclickcare"


class OnboardingError(Exception):
    """Error with a business-meaningful code and a recovery directive."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        action: ErrorAction,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.action = action
        self.context: Dict[str, Any] = dict(context or {})

    def __repr__(self) -> str:
        return f"OnboardingError(code={self.code.value!r}, action={self.action.value!r}, message={self.message!r})"

    # --- factories -------------------------------------------------------

    @classmethod
    def patient_not_found(
        cls,
        patient_id: str,
        org_uuid: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> "OnboardingError":
        where = f" in organization {org_uuid}" if org_uuid else ""
        return cls(
            ErrorCode.PATIENT_NOT_FOUND,
            f"Patient {patient_id} not found{where}",
            ErrorAction.STOP,
            {"patient_id": patient_id, "org_uuid": org_uuid, "operation": "patient_lookup", **(context or {})},
        )

    @classmethod
    def pcc_unavailable(cls, operation: str, context: Optional[Dict[str, Any]] = None) -> "OnboardingError":
        return cls(
            ErrorCode.PCC_UNAVAILABLE,
            f"PointClickCare service unavailable during {operation}",
            ErrorAction.RETRY,
            {"operation": operation, "service": PCC_SERVICE, **(context or {})},
        )

    @classmethod
    def pcc_unauthorized(cls, operation: str, context: Optional[Dict[str, Any]] = None) -> "OnboardingError":
        return cls(
            ErrorCode.PCC_UNAUTHORIZED,
            f"PointClickCare authentication failed during {operation}",
            ErrorAction.STOP,
            {
                "operation": operation,
                "service": PCC_SERVICE,
                "requires_admin_action": True,
                **(context or {}),
            },
        )

    @classmethod
    def invalid_transition(cls, from_status: str, to_status: str, onboarding_id: Optional[str] = None) -> "OnboardingError":
        return cls(
            ErrorCode.INVALID_TRANSITION,
            f"Cannot transition from {from_status} to {to_status}",
            ErrorAction.STOP,
            {"from_status": from_status, "to_status": to_status, "onboarding_id": onboarding_id},
        )

    @classmethod
    def rt_assignment_failed(cls, onboarding_id: str, status: str) -> "OnboardingError":
        return cls(
            ErrorCode.RT_ASSIGNMENT_FAILED,
            f"Cannot assign a specialist to onboarding {onboarding_id} in status {status}",
            ErrorAction.USER_INPUT,
            {"onboarding_id": onboarding_id, "status": status},
        )

    @classmethod
    def onboarding_already_exists(cls, patient_id: str) -> "OnboardingError":
        return cls(
            ErrorCode.ONBOARDING_ALREADY_EXISTS,
            f"Onboarding already exists for patient {patient_id}",
            ErrorAction.USER_INPUT,
            {"patient_id": patient_id},
        )

    @classmethod
    def onboarding_not_found(cls, onboarding_id: str) -> "OnboardingError":
        return cls(
            ErrorCode.ONBOARDING_NOT_FOUND,
            f"Onboarding {onboarding_id} not found",
            ErrorAction.STOP,
            {"onboarding_id": onboarding_id},
        )

    @classmethod
    def concurrent_modification(cls, onboarding_id: str, expected: int, found: int) -> "OnboardingError":
        return cls(
            ErrorCode.CONCURRENT_MODIFICATION,
            f"Onboarding {onboarding_id} was modified concurrently: expected version {expected}, found {found}",
            ErrorAction.RETRY,
            {"onboarding_id": onboarding_id, "expected_version": expected, "found_version": found},
        )

    @classmethod
    def missing_clinical_data(cls, message: str, context: Optional[Dict[str, Any]] = None) -> "OnboardingError":
        return cls(ErrorCode.MISSING_CLINICAL_DATA, message, ErrorAction.USER_INPUT, context)

    # --- recovery predicates ---------------------------------------------

    def is_recoverable(self) -> bool:
        """Temporary condition; the same request may be re-issued later."""
        return self.action is ErrorAction.RETRY

    def requires_user_action(self) -> bool:
        return self.action is ErrorAction.USER_INPUT

    def is_fatal(self) -> bool:
        return self.action is ErrorAction.STOP

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view for API responses (context is omitted)."""
        return {
            "code": self.code.value,
            "message": self.message,
            "action": self.action.value,
        }
