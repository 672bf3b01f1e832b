"""Onboarding lifecycle API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from niv_backend.api.dependencies import get_onboarding_service
from niv_backend.api.requests import (
    AssignSpecialistRequest,
    CreateOnboardingRequest,
    UpdateStatusRequest,
)
from niv_backend.api.responses import OnboardingResponse, PatientQualificationsResponse
from niv_backend.models.errors import OnboardingError
from niv_backend.services.onboarding_service import OnboardingService

router = APIRouter(prefix="/onboardings", tags=["Onboardings"])


@router.post("", response_model=OnboardingResponse, status_code=201)
async def create_onboarding(
    request: CreateOnboardingRequest,
    service: OnboardingService = Depends(get_onboarding_service),
):
    """
    Create an onboarding for a patient.

    Args:
        request: Patient, optional facility and specialist
        service: Injected onboarding service

    Returns:
        The new onboarding, already assessed
    """
    onboarding = await service.create_onboarding(
        request.patient_id,
        facility_id=request.facility_id,
        assigned_specialist_id=request.assigned_specialist_id,
        org_uuid=request.org_uuid,
    )
    return OnboardingResponse.from_onboarding(onboarding)


@router.get("/by-patient/{patient_id}", response_model=OnboardingResponse)
async def get_onboarding_by_patient(
    patient_id: str,
    service: OnboardingService = Depends(get_onboarding_service),
):
    onboarding = await service.get_onboarding_by_patient_id(patient_id)
    if onboarding is None:
        raise OnboardingError.onboarding_not_found(f"patient:{patient_id}")
    return OnboardingResponse.from_onboarding(onboarding)


@router.get("/{onboarding_id}", response_model=OnboardingResponse)
async def get_onboarding(
    onboarding_id: str,
    service: OnboardingService = Depends(get_onboarding_service),
):
    onboarding = await service.get_onboarding_by_id(onboarding_id)
    if onboarding is None:
        raise OnboardingError.onboarding_not_found(onboarding_id)
    return OnboardingResponse.from_onboarding(onboarding)


@router.patch("/{onboarding_id}/status", response_model=OnboardingResponse)
async def update_onboarding_status(
    onboarding_id: str,
    request: UpdateStatusRequest,
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Move an onboarding along its lifecycle (409 on an illegal transition)."""
    onboarding = await service.update_status(onboarding_id, request.status)
    return OnboardingResponse.from_onboarding(onboarding)


@router.patch("/{onboarding_id}/specialist", response_model=OnboardingResponse)
async def assign_specialist(
    onboarding_id: str,
    request: AssignSpecialistRequest,
    service: OnboardingService = Depends(get_onboarding_service),
):
    onboarding = await service.assign_specialist(onboarding_id, request.specialist_id)
    return OnboardingResponse.from_onboarding(onboarding)


@router.post("/{onboarding_id}/refresh", response_model=PatientQualificationsResponse)
async def refresh_qualifications(
    onboarding_id: str,
    org_uuid: Optional[str] = Query(None, alias="orgUuid"),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Re-pull diagnoses from the EHR and recompute qualifications."""
    result = await service.refresh_patient_qualifications(onboarding_id, org_uuid)
    return PatientQualificationsResponse.from_result(result)
