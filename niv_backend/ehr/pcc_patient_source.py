"""PointClickCare-backed patient source."""
import asyncio
from typing import Any, Callable, Dict, List, Optional, TypeVar

from niv_backend.config.logging_config import get_logger
from niv_backend.config.settings import Settings, get_settings
from niv_backend.models.enums import ErrorCode
from niv_backend.models.errors import OnboardingError
from niv_backend.models.patient import DiagnosisCode, Patient
from .mappers import diagnoses_from_pcc, patient_from_pcc, unwrap_list
from .patient_source import PatientSource
from .pcc_client import PccApiClient, get_pcc_client

logger = get_logger(__name__)

T = TypeVar("T")


class PccPatientSource(PatientSource):
    """
    Patient source that reads from the PCC public API.

    Errors from the client arrive already classified; the only one absorbed
    here is a 404 on the conditions lookup, which means "no diagnoses".
    """

    def __init__(self, client: Optional[PccApiClient] = None, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._client = client or get_pcc_client()
        self._prefix = self._settings.pcc_api_prefix.rstrip("/")

    def _org(self, org_uuid: Optional[str]) -> str:
        org = org_uuid or self._settings.pcc_org_uuid
        if not org:
            raise OnboardingError.missing_clinical_data(
                "No PCC organization UUID supplied or configured",
                {"operation": "org_resolution"},
            )
        return org

    @staticmethod
    def _mapped(mapper: Callable[[Any], T], payload: Any, operation: str, context: Dict[str, Any]) -> T:
        """Apply a payload mapper; a record missing required fields is a PCC fault."""
        try:
            return mapper(payload)
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            logger.warning(
                "Malformed PCC payload",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise OnboardingError.pcc_unavailable(operation, {**context, "malformed_response": True}) from e

    async def get_patient(self, patient_id: str, org_uuid: Optional[str] = None) -> Patient:
        org = self._org(org_uuid)
        context = {"org_uuid": org, "patient_id": patient_id}
        payload = await self._client.get(
            f"{self._prefix}/orgs/{org}/patients/{patient_id}",
            operation="patient_lookup",
            context=context,
        )
        if not payload:
            raise OnboardingError.patient_not_found(patient_id, org)
        return self._mapped(patient_from_pcc, payload, "patient_lookup", context)

    async def get_patient_diagnoses(
        self, patient_id: str, org_uuid: Optional[str] = None
    ) -> List[DiagnosisCode]:
        org = self._org(org_uuid)
        context = {"org_uuid": org, "patient_id": patient_id}
        try:
            payload = await self._client.get(
                f"{self._prefix}/orgs/{org}/conditions",
                params={"patientId": patient_id},
                operation="diagnosis_lookup",
                context=context,
            )
        except OnboardingError as e:
            if e.code is ErrorCode.PATIENT_NOT_FOUND and e.context.get("status_code") == 404:
                logger.info("No conditions on record", patient_id=patient_id)
                return []
            raise
        return self._mapped(lambda p: diagnoses_from_pcc(unwrap_list(p)), payload, "diagnosis_lookup", context)

    async def get_patient_with_diagnoses(
        self, patient_id: str, org_uuid: Optional[str] = None
    ) -> Patient:
        """
        Fetch the patient and their diagnoses concurrently.

        Raises:
            OnboardingError: The first failure, tagged as a combined lookup
        """
        try:
            patient, diagnoses = await asyncio.gather(
                self.get_patient(patient_id, org_uuid),
                self.get_patient_diagnoses(patient_id, org_uuid),
            )
        except OnboardingError as e:
            e.context.update({"combined_lookup": True, "combined_operation": "patient_with_diagnoses_lookup"})
            raise
        logger.info("Fetched patient with diagnoses", patient_id=patient_id, diagnosis_count=len(diagnoses))
        return patient.with_diagnoses(diagnoses)

    async def get_patients(
        self,
        facility_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
        org_uuid: Optional[str] = None,
    ) -> List[Patient]:
        org = self._org(org_uuid)
        params: Dict[str, Any] = {"page": page, "pageSize": page_size}
        if facility_id:
            params["facilityId"] = facility_id
        context = {"org_uuid": org, "facility_id": facility_id, "page": page, "page_size": page_size}
        payload = await self._client.get(
            f"{self._prefix}/orgs/{org}/patients",
            params=params,
            operation="patients_list_lookup",
            context=context,
        )
        return self._mapped(
            lambda p: [patient_from_pcc(item) for item in unwrap_list(p)],
            payload,
            "patients_list_lookup",
            context,
        )

    async def test_connection(self) -> bool:
        return await self._client.test_connection()
