"""Request models for API endpoints."""
from typing import Optional

from pydantic import BaseModel, Field

from niv_backend.models.enums import OnboardingStatus


class CreateOnboardingRequest(BaseModel):
    """Request to create a new onboarding."""
    patient_id: str = Field(..., description="EHR patient identifier")
    facility_id: Optional[str] = Field(default=None, description="Facility; defaults to the patient's facility")
    assigned_specialist_id: Optional[str] = Field(default=None, description="Respiratory therapist to assign")
    org_uuid: Optional[str] = Field(default=None, description="PCC organization UUID")


class UpdateStatusRequest(BaseModel):
    """Request to move an onboarding to a new status."""
    status: OnboardingStatus = Field(..., description="Target status")


class AssignSpecialistRequest(BaseModel):
    """Request to assign a respiratory therapist."""
    specialist_id: str = Field(..., min_length=1, description="Specialist identifier")
