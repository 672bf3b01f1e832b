"""Onboarding service: patients, qualifications and the onboarding lifecycle."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from niv_backend.config.logging_config import get_logger
from niv_backend.ehr.patient_source import PatientSource
from niv_backend.models.enums import OnboardingStatus
from niv_backend.models.errors import OnboardingError
from niv_backend.models.onboarding import NIVOnboarding
from niv_backend.models.patient import Patient
from niv_backend.models.qualifications import QualificationCriterion
from niv_backend.rules.assessor import EligibilityAssessor
from niv_backend.rules.rule_table import RuleTable, get_rule_table
from niv_backend.storage.onboarding_repository import OnboardingRepository

logger = get_logger(__name__)


@dataclass
class PatientWithQualifications:
    """A patient, their saved onboarding and why they qualify."""
    patient: Patient
    onboarding: NIVOnboarding
    qualification_reasons: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def has_qualifications(self) -> bool:
        return self.onboarding.is_eligible_for_niv()

    @property
    def qualification_types(self) -> List[str]:
        return self.onboarding.qualifications.qualification_types()


class OnboardingService:
    """
    Service for managing NIV onboardings.

    Assessment is pure and happens before any save, so a failed EHR call or a
    cancelled request never leaves a half-updated aggregate behind.
    """

    def __init__(
        self,
        repository: OnboardingRepository,
        patient_source: PatientSource,
        rule_table: Optional[RuleTable] = None,
    ):
        """
        Initialize onboarding service.

        Args:
            repository: Onboarding persistence port
            patient_source: EHR patient source (PCC or mock)
            rule_table: Fallback rules when the reference store is empty
        """
        self.repository = repository
        self.patient_source = patient_source
        self.rule_table = rule_table or get_rule_table()

    async def _criteria(self) -> List[QualificationCriterion]:
        criteria = await self.repository.get_qualification_criteria()
        if not criteria:
            logger.debug("Reference criteria empty, using rule table", version=self.rule_table.version)
            return self.rule_table.criteria()
        return criteria

    async def _assess_and_save(
        self,
        patient: Patient,
        onboarding: Optional[NIVOnboarding],
        criteria: List[QualificationCriterion],
    ) -> PatientWithQualifications:
        if onboarding is None:
            onboarding = NIVOnboarding.create(patient.id, patient.demographics.facility_id)
        onboarding.assess_clinical_qualifications(patient, criteria)
        saved = await self.repository.save(onboarding)
        reasons = EligibilityAssessor(RuleTable.from_criteria(criteria)).qualification_reasons(
            patient.diagnosis_codes
        )
        return PatientWithQualifications(patient=patient, onboarding=saved, qualification_reasons=reasons)

    async def get_patient_with_qualifications(
        self, patient_id: str, org_uuid: Optional[str] = None
    ) -> PatientWithQualifications:
        """
        Fetch a patient from the EHR and (re)assess their onboarding.

        Args:
            patient_id: EHR patient identifier
            org_uuid: EHR organization (defaults to configuration)

        Returns:
            Patient with the saved onboarding and qualification reasons
        """
        patient = await self.patient_source.get_patient_with_diagnoses(patient_id, org_uuid)
        criteria = await self._criteria()
        existing = await self.repository.find_by_patient_id(patient.id)
        result = await self._assess_and_save(patient, existing, criteria)
        logger.info(
            "Patient qualifications assessed",
            patient_id=patient.id,
            qualification_types=result.qualification_types,
        )
        return result

    async def get_patients_with_qualifications(
        self,
        facility_id: str,
        page: int = 1,
        page_size: int = 50,
        org_uuid: Optional[str] = None,
    ) -> List[PatientWithQualifications]:
        """Assess every listed patient in a facility, creating onboardings as needed."""
        patients = await self.patient_source.get_patients(facility_id, page, page_size, org_uuid)
        criteria = await self._criteria()
        onboardings = {o.patient_id: o for o in await self.repository.find_by_facility_id(facility_id)}

        results: List[PatientWithQualifications] = []
        for listed in patients:
            patient = listed
            if not patient.diagnosis_codes:
                diagnoses = await self.patient_source.get_patient_diagnoses(patient.id, org_uuid)
                patient = patient.with_diagnoses(diagnoses)
            # The patient may have been onboarded under another facility
            existing = onboardings.get(patient.id) or await self.repository.find_by_patient_id(patient.id)
            results.append(await self._assess_and_save(patient, existing, criteria))

        logger.info(
            "Facility patients assessed",
            facility_id=facility_id,
            patient_count=len(results),
            eligible_count=sum(1 for r in results if r.has_qualifications),
        )
        return results

    async def create_onboarding(
        self,
        patient_id: str,
        facility_id: Optional[str] = None,
        assigned_specialist_id: Optional[str] = None,
        org_uuid: Optional[str] = None,
    ) -> NIVOnboarding:
        """
        Create an onboarding for a patient who does not have one yet.

        Raises:
            OnboardingError: ONBOARDING_ALREADY_EXISTS, or an EHR lookup error
        """
        if await self.repository.find_by_patient_id(patient_id) is not None:
            raise OnboardingError.onboarding_already_exists(patient_id)

        patient = await self.patient_source.get_patient_with_diagnoses(patient_id, org_uuid)
        onboarding = NIVOnboarding.create(
            patient.id,
            facility_id or patient.demographics.facility_id,
            assigned_specialist_id,
        )
        onboarding.assess_clinical_qualifications(patient, await self._criteria())
        saved = await self.repository.save(onboarding)
        logger.info("Onboarding created", onboarding_id=saved.id, patient_id=patient.id)
        return saved

    async def get_onboarding_by_id(self, onboarding_id: str) -> Optional[NIVOnboarding]:
        return await self.repository.find_by_id(onboarding_id)

    async def get_onboarding_by_patient_id(self, patient_id: str) -> Optional[NIVOnboarding]:
        return await self.repository.find_by_patient_id(patient_id)

    async def _require(self, onboarding_id: str) -> NIVOnboarding:
        onboarding = await self.repository.find_by_id(onboarding_id)
        if onboarding is None:
            raise OnboardingError.onboarding_not_found(onboarding_id)
        return onboarding

    async def update_status(self, onboarding_id: str, new_status: OnboardingStatus) -> NIVOnboarding:
        onboarding = await self._require(onboarding_id)
        onboarding.update_status(new_status)
        return await self.repository.save(onboarding)

    async def assign_specialist(self, onboarding_id: str, specialist_id: str) -> NIVOnboarding:
        onboarding = await self._require(onboarding_id)
        onboarding.assign_specialist(specialist_id)
        saved = await self.repository.save(onboarding)
        logger.info("Specialist assigned", onboarding_id=onboarding_id, specialist_id=specialist_id)
        return saved

    async def refresh_patient_qualifications(
        self, onboarding_id: str, org_uuid: Optional[str] = None
    ) -> PatientWithQualifications:
        """Re-pull the patient's diagnoses and recompute the onboarding's qualifications."""
        onboarding = await self._require(onboarding_id)
        patient = await self.patient_source.get_patient_with_diagnoses(onboarding.patient_id, org_uuid)
        return await self._assess_and_save(patient, onboarding, await self._criteria())
