"""In-process EHR used for development and demos when PCC is not reachable."""
from datetime import date
from typing import Dict, Iterable, List, Optional

from niv_backend.config.logging_config import get_logger
from niv_backend.ehr.patient_source import PatientSource
from niv_backend.models.errors import OnboardingError
from niv_backend.models.patient import DiagnosisCode, Patient, PatientDemographics

logger = get_logger(__name__)

MOCK_ORG_UUID = "mock-org"


def _dx(code: str, description: str, primary: bool = False) -> DiagnosisCode:
    return DiagnosisCode(code=code, description=description, is_primary=primary)


def default_mock_patients() -> List[Patient]:
    """Four seeded patients across two facilities."""
    return [
        # COPD only
        Patient(
            id="mock-patient-1",
            demographics=PatientDemographics("John", "Smith", date(1945, 3, 15), "MR-001", "facility-1"),
            diagnosis_codes=(
                _dx("J44.1", "COPD with acute exacerbation", primary=True),
                _dx("J44.0", "COPD with acute lower respiratory infection"),
            ),
        ),
        # ARF and NMD
        Patient(
            id="mock-patient-2",
            demographics=PatientDemographics("Mary", "Johnson", date(1960, 7, 22), "MR-002", "facility-1"),
            diagnosis_codes=(
                _dx("J96.01", "Acute respiratory failure with hypoxia", primary=True),
                _dx("G12.21", "Amyotrophic lateral sclerosis"),
                _dx("G70.00", "Myasthenia gravis without (acute) exacerbation"),
            ),
        ),
        # No qualifying conditions
        Patient(
            id="mock-patient-3",
            demographics=PatientDemographics("Robert", "Wilson", date(1970, 11, 8), "MR-003", "facility-1"),
            diagnosis_codes=(
                _dx("I10", "Essential hypertension", primary=True),
                _dx("E11.9", "Type 2 diabetes mellitus without complications"),
            ),
        ),
        Patient(
            id="mock-patient-4",
            demographics=PatientDemographics("Sarah", "Davis", date(1955, 12, 3), "MR-004", "facility-2"),
            diagnosis_codes=(
                _dx("J96.11", "Chronic respiratory failure with hypoxia", primary=True),
                _dx("G71.0", "Muscular dystrophy"),
            ),
        ),
    ]


class MockPatientSource(PatientSource):
    """Patient source backed by a fixed in-memory patient set."""

    def __init__(self, patients: Optional[Iterable[Patient]] = None):
        seed = list(patients) if patients is not None else default_mock_patients()
        self._patients: Dict[str, Patient] = {p.id: p for p in seed}
        logger.info("Mock EHR seeded", patient_count=len(self._patients))

    def _lookup(self, patient_id: str, org_uuid: Optional[str]) -> Patient:
        patient = self._patients.get(patient_id)
        if patient is None:
            raise OnboardingError.patient_not_found(patient_id, org_uuid, {"source": "mock"})
        return patient

    async def get_patient(self, patient_id: str, org_uuid: Optional[str] = None) -> Patient:
        patient = self._lookup(patient_id, org_uuid)
        return Patient(id=patient.id, demographics=patient.demographics)

    async def get_patient_diagnoses(
        self, patient_id: str, org_uuid: Optional[str] = None
    ) -> List[DiagnosisCode]:
        patient = self._patients.get(patient_id)
        return list(patient.diagnosis_codes) if patient else []

    async def get_patient_with_diagnoses(
        self, patient_id: str, org_uuid: Optional[str] = None
    ) -> Patient:
        return self._lookup(patient_id, org_uuid)

    async def get_patients(
        self,
        facility_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
        org_uuid: Optional[str] = None,
    ) -> List[Patient]:
        matches = [
            p for p in self._patients.values()
            if facility_id is None or p.demographics.facility_id == facility_id
        ]
        start = (max(page, 1) - 1) * page_size
        return matches[start:start + page_size]

    async def test_connection(self) -> bool:
        return True
