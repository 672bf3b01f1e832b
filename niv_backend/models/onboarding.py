"""NIV onboarding aggregate."""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from uuid import uuid4

from niv_backend.orchestrator.transitions import INITIAL_STATUS, log_transition
from niv_backend.rules.assessor import EligibilityAssessor
from niv_backend.rules.rule_table import RuleTable
from .enums import OnboardingStatus
from .errors import OnboardingError
from .patient import Patient
from .qualifications import ClinicalQualifications, QualificationCriterion


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=False)
class NIVOnboarding:
    """
    Consistency boundary for one patient's onboarding.

    Holds a reference to the patient, never a copy of patient data.
    ``version`` is advanced by the repository on every successful save.
    """
    patient_id: str
    facility_id: str
    id: str = field(default_factory=lambda: str(uuid4()))
    status: OnboardingStatus = INITIAL_STATUS
    assigned_specialist_id: Optional[str] = None
    qualifications: ClinicalQualifications = field(default_factory=ClinicalQualifications)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    version: int = 1

    @classmethod
    def create(
        cls,
        patient_id: str,
        facility_id: str,
        assigned_specialist_id: Optional[str] = None,
    ) -> "NIVOnboarding":
        now = _utcnow()
        return cls(
            patient_id=patient_id,
            facility_id=facility_id,
            assigned_specialist_id=assigned_specialist_id,
            created_at=now,
            updated_at=now,
        )

    def assess_clinical_qualifications(
        self,
        patient: Patient,
        criteria: Optional[Iterable[QualificationCriterion]] = None,
        rule_table: Optional[RuleTable] = None,
    ) -> ClinicalQualifications:
        """
        Recompute qualifications from the patient's diagnosis codes.

        Args:
            patient: Patient this onboarding refers to
            criteria: Reference-store criteria; takes precedence over rule_table
            rule_table: Rule table to use when no criteria are given

        Returns:
            The new qualifications (also stored on the aggregate)

        Raises:
            OnboardingError: MISSING_CLINICAL_DATA if the patient does not match
        """
        if patient.id != self.patient_id:
            raise OnboardingError.missing_clinical_data(
                f"Patient {patient.id} does not belong to onboarding {self.id}",
                {"onboarding_id": self.id, "expected_patient_id": self.patient_id, "patient_id": patient.id},
            )
        if criteria is not None:
            rule_table = RuleTable.from_criteria(criteria)
        assessor = EligibilityAssessor(rule_table)
        self.qualifications = assessor.assess(patient.diagnosis_codes)
        self.updated_at = _utcnow()
        return self.qualifications

    def update_status(self, new_status: OnboardingStatus) -> None:
        """
        Move to ``new_status`` if the lifecycle allows it.

        Raises:
            OnboardingError: INVALID_TRANSITION; the aggregate is left unchanged
        """
        new_status = OnboardingStatus(new_status)
        if not self.status.can_transition_to(new_status):
            raise OnboardingError.invalid_transition(self.status.value, new_status.value, self.id)
        previous = self.status
        self.status = new_status
        self.updated_at = _utcnow()
        log_transition(self.id, previous, new_status)

    def assign_specialist(self, specialist_id: str) -> None:
        if not self.can_assign_specialist():
            raise OnboardingError.rt_assignment_failed(self.id, self.status.value)
        self.assigned_specialist_id = specialist_id
        self.updated_at = _utcnow()

    def is_eligible_for_niv(self) -> bool:
        return self.qualifications.has_any_qualification()

    def is_active(self) -> bool:
        return self.status.is_active()

    def is_in_progress(self) -> bool:
        return self.status.is_in_progress()

    def can_assign_specialist(self) -> bool:
        return self.status in (OnboardingStatus.NEW, OnboardingStatus.WATCHLIST)

    def requires_rt_review(self) -> bool:
        """Watchlisted onboardings wait on a respiratory therapist."""
        return self.status is OnboardingStatus.WATCHLIST

    def copy(self) -> "NIVOnboarding":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "facility_id": self.facility_id,
            "status": self.status.value,
            "assigned_specialist_id": self.assigned_specialist_id,
            "qualifications": self.qualifications.to_dict(),
            "is_eligible_for_niv": self.is_eligible_for_niv(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
        }
