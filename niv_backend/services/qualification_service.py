"""Stateless NIV qualification assessment straight from the EHR."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from niv_backend.config.logging_config import get_logger
from niv_backend.ehr.patient_source import PatientSource
from niv_backend.mock_services.ehr_mock import MOCK_ORG_UUID, MockPatientSource
from niv_backend.models.patient import Patient
from niv_backend.rules.assessor import EligibilityAssessor
from niv_backend.rules.rule_table import RuleTable, get_rule_table

logger = get_logger(__name__)

MOCK_PATIENT_ID = "mock-patient-1"


@dataclass
class AssessmentResult:
    """Outcome of a qualification assessment."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error}


class QualificationService:
    """
    Assess a patient's NIV eligibility without touching onboarding state.

    EHR errors propagate as OnboardingError; only the connection and mock
    checks report failure in their result.
    """

    def __init__(
        self,
        patient_source: PatientSource,
        rule_table: Optional[RuleTable] = None,
        mock_source: Optional[PatientSource] = None,
    ):
        self.patient_source = patient_source
        self.assessor = EligibilityAssessor(rule_table or get_rule_table())
        self._mock_source = mock_source

    def _assessment_data(self, patient: Patient) -> Dict[str, Any]:
        qualifications = self.assessor.assess(patient.diagnosis_codes)
        return {
            "patient": patient.to_dict(),
            "diagnoses": [
                {"code": d.code, "description": d.description, "is_primary": d.is_primary}
                for d in patient.diagnosis_codes
            ],
            "clinical_qualifications": qualifications.to_dict(),
            "qualification_reasons": self.assessor.qualification_reasons(patient.diagnosis_codes),
            "is_niv_eligible": qualifications.has_any_qualification(),
            "rule_table_version": self.assessor.rule_table.version,
        }

    async def assess_qualification(self, org_uuid: Optional[str], patient_id: str) -> AssessmentResult:
        """
        Fetch a patient with diagnoses and assess eligibility.

        Args:
            org_uuid: EHR organization UUID
            patient_id: EHR patient identifier

        Returns:
            AssessmentResult with patient, diagnoses and qualifications

        Raises:
            OnboardingError: If the EHR lookup fails
        """
        patient = await self.patient_source.get_patient_with_diagnoses(patient_id, org_uuid)
        data = self._assessment_data(patient)
        logger.info(
            "Qualification assessed",
            patient_id=patient_id,
            is_niv_eligible=data["is_niv_eligible"],
            diagnosis_count=len(data["diagnoses"]),
        )
        return AssessmentResult(success=True, data=data)

    async def test_connection(self) -> Dict[str, Any]:
        connected = await self.patient_source.test_connection()
        return {
            "success": connected,
            "message": "PCC connection successful" if connected else "PCC connection failed",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def test_with_mock_data(self) -> AssessmentResult:
        """Run the assessment against the built-in mock EHR."""
        source = self._mock_source or MockPatientSource()
        patient = await source.get_patient_with_diagnoses(MOCK_PATIENT_ID, MOCK_ORG_UUID)
        return AssessmentResult(success=True, data=self._assessment_data(patient))
