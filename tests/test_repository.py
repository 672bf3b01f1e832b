"""Tests for the in-memory and SQL onboarding repositories."""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from niv_backend.models.enums import ErrorCode, OnboardingStatus, QualificationType
from niv_backend.models.errors import OnboardingError
from niv_backend.models.onboarding import NIVOnboarding
from niv_backend.models.qualifications import ClinicalQualifications
from niv_backend.storage.database import dispose_db, get_session_factory, init_db
from niv_backend.storage.models import Base
from niv_backend.storage.onboarding_repository import (
    InMemoryOnboardingRepository,
    SqlOnboardingRepository,
)
from niv_backend.storage.seed_criteria import seed_qualification_criteria


@pytest.fixture
async def session(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def repository(request, clinical_rules):
    if request.param == "memory":
        return InMemoryOnboardingRepository(clinical_rules.entries)
    return SqlOnboardingRepository(request.getfixturevalue("session"), clinical_rules.version)


class TestSaveAndFind:
    """Behaviour shared by both adapters."""

    @pytest.mark.asyncio
    async def test_round_trip(self, repository):
        onboarding = NIVOnboarding.create("p1", "f1", assigned_specialist_id="rt-1")
        onboarding.qualifications = ClinicalQualifications(copd=True, trd=True)
        await repository.save(onboarding)

        found = await repository.find_by_id(onboarding.id)

        assert found.to_dict() == onboarding.to_dict()
        assert (await repository.find_by_patient_id("p1")).id == onboarding.id

    @pytest.mark.asyncio
    async def test_missing_lookups_return_none(self, repository):
        assert await repository.find_by_id("nope") is None
        assert await repository.find_by_patient_id("nope") is None

    @pytest.mark.asyncio
    async def test_update_advances_version(self, repository):
        onboarding = NIVOnboarding.create("p1", "f1")
        await repository.save(onboarding)

        loaded = await repository.find_by_id(onboarding.id)
        loaded.update_status(OnboardingStatus.WATCHLIST)
        saved = await repository.save(loaded)

        assert saved.version == 2
        stored = await repository.find_by_id(onboarding.id)
        assert stored.version == 2
        assert stored.status is OnboardingStatus.WATCHLIST

    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(self, repository):
        onboarding = NIVOnboarding.create("p1", "f1")
        await repository.save(onboarding)
        first = await repository.find_by_id(onboarding.id)
        second = await repository.find_by_id(onboarding.id)

        first.update_status(OnboardingStatus.WATCHLIST)
        await repository.save(first)

        second.assign_specialist("rt-9")
        with pytest.raises(OnboardingError) as exc_info:
            await repository.save(second)

        error = exc_info.value
        assert error.code is ErrorCode.CONCURRENT_MODIFICATION
        assert error.is_recoverable()
        assert error.context["expected_version"] == 1
        assert error.context["found_version"] == 2
        stored = await repository.find_by_id(onboarding.id)
        assert stored.assigned_specialist_id is None

    @pytest.mark.asyncio
    async def test_one_onboarding_per_patient(self, repository):
        await repository.save(NIVOnboarding.create("p1", "f1"))
        with pytest.raises(OnboardingError) as exc_info:
            await repository.save(NIVOnboarding.create("p1", "f2"))
        assert exc_info.value.code is ErrorCode.ONBOARDING_ALREADY_EXISTS

    @pytest.mark.asyncio
    async def test_find_by_facility_and_all(self, repository):
        for patient_id, facility_id in (("p1", "f1"), ("p2", "f1"), ("p3", "f2")):
            await repository.save(NIVOnboarding.create(patient_id, facility_id))

        assert {o.patient_id for o in await repository.find_by_facility_id("f1")} == {"p1", "p2"}
        assert len(await repository.find_all()) == 3

    @pytest.mark.asyncio
    async def test_qualification_criteria(self, repository, session):
        # The SQL adapter reads seeded rows; seed them directly for this test
        if isinstance(repository, SqlOnboardingRepository):
            from niv_backend.rules.rule_table import get_rule_table
            from niv_backend.storage.onboarding_repository import criterion_to_model

            table = get_rule_table("clinical-v1")
            session.add_all(criterion_to_model(c, table.version) for c in table.entries)
            await session.flush()

        criteria = await repository.get_qualification_criteria()

        assert any(
            c.icd10_code == "J44.1" and c.qualification_type is QualificationType.COPD for c in criteria
        )


class TestInMemoryIsolation:

    @pytest.mark.asyncio
    async def test_stored_copies_are_detached(self):
        repository = InMemoryOnboardingRepository()
        onboarding = NIVOnboarding.create("p1", "f1")
        await repository.save(onboarding)

        onboarding.status = OnboardingStatus.ACTIVE

        assert (await repository.find_by_id(onboarding.id)).status is OnboardingStatus.NEW


class TestSeeding:

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, tmp_path, clinical_rules):
        await init_db(f"sqlite+aiosqlite:///{tmp_path / 'seed.db'}")
        try:
            assert await seed_qualification_criteria(clinical_rules) == len(clinical_rules.entries)
            assert await seed_qualification_criteria(clinical_rules) == 0

            async with get_session_factory()() as session:
                repository = SqlOnboardingRepository(session, clinical_rules.version)
                criteria = await repository.get_qualification_criteria()
                other = SqlOnboardingRepository(session, "prefix-v0")
                assert await other.get_qualification_criteria() == []

            assert criteria == clinical_rules.criteria()
        finally:
            await dispose_db()
