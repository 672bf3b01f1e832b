"""Stateless qualification assessment routes."""
from fastapi import APIRouter, Depends

from niv_backend.api.dependencies import get_qualification_service
from niv_backend.api.responses import AssessmentResponse, ConnectionTestResponse
from niv_backend.config.logging_config import get_logger
from niv_backend.services.qualification_service import QualificationService

logger = get_logger(__name__)

router = APIRouter(prefix="/qualifications", tags=["Qualifications"])


@router.get("/test-connection", response_model=ConnectionTestResponse)
async def test_connection(service: QualificationService = Depends(get_qualification_service)):
    """Check that the EHR accepts our credentials."""
    return await service.test_connection()


@router.get("/test-mock", response_model=AssessmentResponse)
async def test_mock(service: QualificationService = Depends(get_qualification_service)):
    """Run the assessment against the built-in mock patient."""
    result = await service.test_with_mock_data()
    return result.to_dict()


@router.get("/{org_uuid}/{patient_id}", response_model=AssessmentResponse)
async def assess_patient(
    org_uuid: str,
    patient_id: str,
    service: QualificationService = Depends(get_qualification_service),
):
    logger.info("Assessing patient qualification", patient_id=patient_id)
    result = await service.assess_qualification(org_uuid, patient_id)
    return result.to_dict()
