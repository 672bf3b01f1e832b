"""Patient qualification API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from niv_backend.api.dependencies import get_onboarding_service
from niv_backend.api.responses import FacilityPatientsResponse, PatientQualificationsResponse
from niv_backend.config.logging_config import get_logger
from niv_backend.services.onboarding_service import OnboardingService

logger = get_logger(__name__)

router = APIRouter(tags=["Patients"])


@router.get("/patients/{patient_id}/qualifications", response_model=PatientQualificationsResponse)
async def get_patient_qualifications(
    patient_id: str,
    org_uuid: Optional[str] = Query(None, alias="orgUuid", description="PCC organization UUID"),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """
    Get a patient with their NIV clinical qualifications.

    Creates the patient's onboarding on first sight and re-assesses it on
    every call.
    """
    logger.info("Getting patient qualifications", patient_id=patient_id)
    result = await service.get_patient_with_qualifications(patient_id, org_uuid)
    return PatientQualificationsResponse.from_result(result)


@router.get("/facilities/{facility_id}/patients", response_model=FacilityPatientsResponse)
async def get_facility_patients(
    facility_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    org_uuid: Optional[str] = Query(None, alias="orgUuid"),
    service: OnboardingService = Depends(get_onboarding_service),
):
    results = await service.get_patients_with_qualifications(facility_id, page, page_size, org_uuid)
    return FacilityPatientsResponse(
        facility_id=facility_id,
        total=len(results),
        eligible=sum(1 for r in results if r.has_qualifications),
        patients=[PatientQualificationsResponse.from_result(r) for r in results],
    )
