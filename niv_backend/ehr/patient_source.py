"""Patient-source port implemented by the PCC adapter and the mock EHR."""
from abc import ABC, abstractmethod
from typing import List, Optional

from niv_backend.models.patient import DiagnosisCode, Patient


class PatientSource(ABC):
    """Read-only access to patients and their diagnoses in an EHR."""

    @abstractmethod
    async def get_patient(self, patient_id: str, org_uuid: Optional[str] = None) -> Patient:
        """Fetch demographics only. Raises PATIENT_NOT_FOUND when unknown."""

    @abstractmethod
    async def get_patient_diagnoses(
        self, patient_id: str, org_uuid: Optional[str] = None
    ) -> List[DiagnosisCode]:
        """Fetch diagnosis codes. A patient without conditions yields []."""

    @abstractmethod
    async def get_patient_with_diagnoses(
        self, patient_id: str, org_uuid: Optional[str] = None
    ) -> Patient:
        """Fetch demographics and diagnoses together."""

    @abstractmethod
    async def get_patients(
        self,
        facility_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
        org_uuid: Optional[str] = None,
    ) -> List[Patient]:
        """List patients, optionally for one facility."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Whether the EHR can currently be reached and authenticated against."""
