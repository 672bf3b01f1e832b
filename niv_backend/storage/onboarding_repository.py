"""Onboarding persistence port and its SQL and in-memory adapters."""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from niv_backend.config.logging_config import get_logger
from niv_backend.models.enums import MatchMode, OnboardingStatus, QualificationType
from niv_backend.models.errors import OnboardingError
from niv_backend.models.onboarding import NIVOnboarding
from niv_backend.models.qualifications import ClinicalQualifications, QualificationCriterion
from niv_backend.storage.models import DiagnosisCodeQualificationModel, OnboardingModel

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# --- mappers -----------------------------------------------------------------

def onboarding_to_model(onboarding: NIVOnboarding, model: Optional[OnboardingModel] = None) -> OnboardingModel:
    """Copy aggregate state onto a (new or existing) ORM row."""
    model = model or OnboardingModel(id=onboarding.id)
    model.patient_id = onboarding.patient_id
    model.facility_id = onboarding.facility_id
    model.status = onboarding.status.value
    model.assigned_specialist_id = onboarding.assigned_specialist_id
    model.copd = onboarding.qualifications.copd
    model.arf = onboarding.qualifications.arf
    model.nmd = onboarding.qualifications.nmd
    model.trd = onboarding.qualifications.trd
    model.created_at = onboarding.created_at
    model.updated_at = onboarding.updated_at
    return model


def onboarding_from_model(model: OnboardingModel) -> NIVOnboarding:
    return NIVOnboarding(
        id=model.id,
        patient_id=model.patient_id,
        facility_id=model.facility_id,
        status=OnboardingStatus(model.status),
        assigned_specialist_id=model.assigned_specialist_id,
        qualifications=ClinicalQualifications(
            copd=bool(model.copd), arf=bool(model.arf), nmd=bool(model.nmd), trd=bool(model.trd)
        ),
        created_at=_as_utc(model.created_at),
        updated_at=_as_utc(model.updated_at),
        version=model.version,
    )


def criterion_from_model(model: DiagnosisCodeQualificationModel) -> QualificationCriterion:
    return QualificationCriterion(
        icd10_code=model.icd10_code,
        qualification_type=QualificationType(model.qualification_type),
        is_qualifying=bool(model.is_qualifying),
        description=model.description,
        match_mode=MatchMode(model.match_mode),
    )


def criterion_to_model(criterion: QualificationCriterion, rule_table_version: str) -> DiagnosisCodeQualificationModel:
    return DiagnosisCodeQualificationModel(
        rule_table_version=rule_table_version,
        icd10_code=criterion.icd10_code,
        qualification_type=criterion.qualification_type.value,
        is_qualifying=criterion.is_qualifying,
        match_mode=criterion.match_mode.value,
        description=criterion.description,
    )


# --- port --------------------------------------------------------------------

class OnboardingRepository(ABC):
    """
    Persistence port for onboarding aggregates.

    ``save`` enforces optimistic locking: the aggregate's ``version`` must
    match the stored one, and is advanced on success.
    """

    @abstractmethod
    async def save(self, onboarding: NIVOnboarding) -> NIVOnboarding:
        """Insert or update. Raises CONCURRENT_MODIFICATION on a stale version."""

    @abstractmethod
    async def find_by_id(self, onboarding_id: str) -> Optional[NIVOnboarding]:
        ...

    @abstractmethod
    async def find_by_patient_id(self, patient_id: str) -> Optional[NIVOnboarding]:
        ...

    @abstractmethod
    async def find_by_facility_id(self, facility_id: str) -> List[NIVOnboarding]:
        ...

    @abstractmethod
    async def find_all(self) -> List[NIVOnboarding]:
        ...

    @abstractmethod
    async def get_qualification_criteria(self) -> List[QualificationCriterion]:
        """Reference criteria for the active rule table."""


class InMemoryOnboardingRepository(OnboardingRepository):
    """Dict-backed repository for tests and ``PERSISTENCE=memory``."""

    def __init__(self, criteria: Optional[Iterable[QualificationCriterion]] = None):
        self._onboardings: Dict[str, NIVOnboarding] = {}
        self._criteria: List[QualificationCriterion] = list(criteria or [])

    async def save(self, onboarding: NIVOnboarding) -> NIVOnboarding:
        stored = self._onboardings.get(onboarding.id)
        if stored is not None and stored.version != onboarding.version:
            raise OnboardingError.concurrent_modification(onboarding.id, onboarding.version, stored.version)
        if stored is None and any(
            o.patient_id == onboarding.patient_id for o in self._onboardings.values()
        ):
            raise OnboardingError.onboarding_already_exists(onboarding.patient_id)
        if stored is not None:
            onboarding.version = stored.version + 1
        self._onboardings[onboarding.id] = onboarding.copy()
        return onboarding

    async def find_by_id(self, onboarding_id: str) -> Optional[NIVOnboarding]:
        stored = self._onboardings.get(onboarding_id)
        return stored.copy() if stored else None

    async def find_by_patient_id(self, patient_id: str) -> Optional[NIVOnboarding]:
        for stored in self._onboardings.values():
            if stored.patient_id == patient_id:
                return stored.copy()
        return None

    async def find_by_facility_id(self, facility_id: str) -> List[NIVOnboarding]:
        return [o.copy() for o in self._onboardings.values() if o.facility_id == facility_id]

    async def find_all(self) -> List[NIVOnboarding]:
        return [o.copy() for o in self._onboardings.values()]

    async def get_qualification_criteria(self) -> List[QualificationCriterion]:
        return list(self._criteria)


class SqlOnboardingRepository(OnboardingRepository):
    """Repository for onboarding database operations with versioning."""

    def __init__(self, session: AsyncSession, rule_table_version: str):
        """
        Initialize the repository with a database session.

        Args:
            session: SQLAlchemy async session
            rule_table_version: Which seeded criteria set to read
        """
        self.session = session
        self.rule_table_version = rule_table_version

    async def _get_model(self, onboarding_id: str) -> Optional[OnboardingModel]:
        result = await self.session.execute(
            select(OnboardingModel).where(OnboardingModel.id == onboarding_id)
        )
        return result.scalar_one_or_none()

    async def save(self, onboarding: NIVOnboarding) -> NIVOnboarding:
        model = await self._get_model(onboarding.id)

        if model is None:
            existing = await self.find_by_patient_id(onboarding.patient_id)
            if existing is not None:
                raise OnboardingError.onboarding_already_exists(onboarding.patient_id)
            model = onboarding_to_model(onboarding)
            model.version = onboarding.version
            self.session.add(model)
            await self.session.flush()
            logger.info("Onboarding created", onboarding_id=onboarding.id, patient_id=onboarding.patient_id)
            return onboarding

        # Optimistic locking check
        if model.version != onboarding.version:
            raise OnboardingError.concurrent_modification(onboarding.id, onboarding.version, model.version)

        onboarding_to_model(onboarding, model)
        model.version = model.version + 1
        await self.session.flush()
        onboarding.version = model.version

        logger.info("Onboarding updated", onboarding_id=onboarding.id, version=model.version)
        return onboarding

    async def find_by_id(self, onboarding_id: str) -> Optional[NIVOnboarding]:
        model = await self._get_model(onboarding_id)
        return onboarding_from_model(model) if model else None

    async def find_by_patient_id(self, patient_id: str) -> Optional[NIVOnboarding]:
        result = await self.session.execute(
            select(OnboardingModel).where(OnboardingModel.patient_id == patient_id)
        )
        model = result.scalar_one_or_none()
        return onboarding_from_model(model) if model else None

    async def find_by_facility_id(self, facility_id: str) -> List[NIVOnboarding]:
        result = await self.session.execute(
            select(OnboardingModel)
            .where(OnboardingModel.facility_id == facility_id)
            .order_by(OnboardingModel.created_at)
        )
        return [onboarding_from_model(m) for m in result.scalars().all()]

    async def find_all(self) -> List[NIVOnboarding]:
        result = await self.session.execute(
            select(OnboardingModel).order_by(OnboardingModel.updated_at.desc())
        )
        return [onboarding_from_model(m) for m in result.scalars().all()]

    async def get_qualification_criteria(self) -> List[QualificationCriterion]:
        result = await self.session.execute(
            select(DiagnosisCodeQualificationModel)
            .where(DiagnosisCodeQualificationModel.rule_table_version == self.rule_table_version)
            .order_by(DiagnosisCodeQualificationModel.id)
        )
        return [criterion_from_model(m) for m in result.scalars().all()]
