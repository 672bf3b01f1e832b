"""FastAPI dependencies for dependency injection."""
from typing import AsyncGenerator, Optional

from niv_backend.config.settings import get_settings
from niv_backend.ehr.patient_source import PatientSource
from niv_backend.ehr.pcc_patient_source import PccPatientSource
from niv_backend.mock_services.ehr_mock import MockPatientSource
from niv_backend.rules.rule_table import RuleTable, get_rule_table
from niv_backend.services.onboarding_service import OnboardingService
from niv_backend.services.qualification_service import QualificationService
from niv_backend.storage.database import get_session_factory
from niv_backend.storage.onboarding_repository import (
    InMemoryOnboardingRepository,
    SqlOnboardingRepository,
)

_patient_source: Optional[PatientSource] = None
_memory_repository: Optional[InMemoryOnboardingRepository] = None


def get_active_rule_table() -> RuleTable:
    """Rule table selected by RULE_TABLE_VERSION."""
    return get_rule_table(get_settings().rule_table_version)


def get_patient_source() -> PatientSource:
    """Get the configured EHR patient source."""
    global _patient_source
    if _patient_source is None:
        if get_settings().ehr_mode == "mock":
            _patient_source = MockPatientSource()
        else:
            _patient_source = PccPatientSource()
    return _patient_source


def get_memory_repository() -> InMemoryOnboardingRepository:
    global _memory_repository
    if _memory_repository is None:
        _memory_repository = InMemoryOnboardingRepository(get_active_rule_table().entries)
    return _memory_repository


async def get_onboarding_service() -> AsyncGenerator[OnboardingService, None]:
    """Get onboarding service dependency."""
    settings = get_settings()
    rule_table = get_active_rule_table()
    if settings.persistence == "memory":
        yield OnboardingService(get_memory_repository(), get_patient_source(), rule_table)
        return

    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            repository = SqlOnboardingRepository(session, rule_table.version)
            yield OnboardingService(repository, get_patient_source(), rule_table)
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_qualification_service() -> QualificationService:
    """Get qualification service dependency."""
    return QualificationService(get_patient_source(), get_active_rule_table())
