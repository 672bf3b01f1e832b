"""Response models for API endpoints."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from niv_backend.models.onboarding import NIVOnboarding


class QualificationsBody(BaseModel):
    copd: bool
    arf: bool
    nmd: bool
    trd: bool


class OnboardingResponse(BaseModel):
    """Response containing onboarding data."""
    id: str
    patient_id: str
    facility_id: str
    status: str
    assigned_specialist_id: Optional[str] = None
    qualifications: QualificationsBody
    is_eligible_for_niv: bool
    created_at: str
    updated_at: str
    version: int

    @classmethod
    def from_onboarding(cls, onboarding: NIVOnboarding) -> "OnboardingResponse":
        return cls(**onboarding.to_dict())


class PatientQualificationsResponse(BaseModel):
    """A patient with their assessed onboarding."""
    patient: Dict[str, Any]
    diagnoses: List[Dict[str, Any]] = Field(default_factory=list)
    onboarding: OnboardingResponse
    has_qualifications: bool
    qualification_types: List[str] = Field(default_factory=list)
    qualification_reasons: Dict[str, List[str]] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: Any) -> "PatientQualificationsResponse":
        """Build from a service-level PatientWithQualifications."""
        return cls(
            patient=result.patient.to_dict(),
            diagnoses=[code.to_dict() for code in result.patient.diagnosis_codes],
            onboarding=OnboardingResponse.from_onboarding(result.onboarding),
            has_qualifications=result.has_qualifications,
            qualification_types=result.qualification_types,
            qualification_reasons=result.qualification_reasons,
        )


class FacilityPatientsResponse(BaseModel):
    """Assessed patients for one facility."""
    facility_id: str
    total: int
    eligible: int
    patients: List[PatientQualificationsResponse]


class AssessmentResponse(BaseModel):
    """Qualification assessment straight from the EHR."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    timestamp: str


class RuleTableSummary(BaseModel):
    version: str
    description: str
    codes_per_category: Dict[str, int]


class RuleTablesResponse(BaseModel):
    """Active rule table and its discrepancies with the other tables."""
    active_version: str
    tables: List[RuleTableSummary]
    discrepancies: Dict[str, Dict[str, Dict[str, List[str]]]]


class ErrorBody(BaseModel):
    code: str
    message: str
    action: str


class ErrorResponse(BaseModel):
    """Error payload for OnboardingError responses."""
    error: ErrorBody
