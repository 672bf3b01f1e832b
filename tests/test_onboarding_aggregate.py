"""Tests for the NIVOnboarding aggregate."""
import pytest

from niv_backend.models.enums import ErrorAction, ErrorCode, OnboardingStatus
from niv_backend.models.errors import OnboardingError
from niv_backend.models.onboarding import NIVOnboarding
from niv_backend.models.qualifications import ClinicalQualifications


@pytest.fixture
def onboarding():
    return NIVOnboarding.create("patient-1", "facility-1")


class TestCreate:

    def test_new_onboarding_defaults(self, onboarding):
        assert onboarding.status is OnboardingStatus.NEW
        assert onboarding.qualifications == ClinicalQualifications()
        assert onboarding.version == 1
        assert onboarding.assigned_specialist_id is None
        assert onboarding.created_at == onboarding.updated_at
        assert not onboarding.is_eligible_for_niv()

    def test_ids_are_unique(self):
        assert NIVOnboarding.create("p", "f").id != NIVOnboarding.create("p", "f").id


class TestAssessClinicalQualifications:

    def test_assess_sets_qualifications(self, onboarding, patient_factory, clinical_rules):
        patient = patient_factory("patient-1", ["J44.1", "J96.01"])
        before = onboarding.updated_at

        result = onboarding.assess_clinical_qualifications(patient, clinical_rules.criteria())

        assert result == ClinicalQualifications(copd=True, arf=True)
        assert onboarding.qualifications == result
        assert onboarding.is_eligible_for_niv()
        assert onboarding.status is OnboardingStatus.NEW
        assert onboarding.updated_at >= before

    def test_reassessment_replaces_previous_result(self, onboarding, patient_factory, clinical_rules):
        onboarding.assess_clinical_qualifications(patient_factory("patient-1", ["G12.21"]), rule_table=clinical_rules)
        onboarding.assess_clinical_qualifications(patient_factory("patient-1", []), rule_table=clinical_rules)
        assert onboarding.qualifications == ClinicalQualifications()

    def test_uses_supplied_criteria(self, onboarding, patient_factory):
        from niv_backend.rules import get_rule_table

        patient = patient_factory("patient-1", ["M40.204"])
        onboarding.assess_clinical_qualifications(patient, get_rule_table("reference-seed-v1").criteria())
        assert not onboarding.qualifications.trd

    def test_patient_mismatch_is_rejected(self, onboarding, patient_factory, clinical_rules):
        with pytest.raises(OnboardingError) as exc_info:
            onboarding.assess_clinical_qualifications(patient_factory("someone-else", ["J44.1"]), rule_table=clinical_rules)
        assert exc_info.value.code is ErrorCode.MISSING_CLINICAL_DATA
        assert exc_info.value.requires_user_action()
        assert onboarding.qualifications == ClinicalQualifications()


class TestUpdateStatus:

    def test_legal_path(self, onboarding):
        for status in (
            OnboardingStatus.WATCHLIST,
            OnboardingStatus.PENDING,
            OnboardingStatus.ACTIVE,
            OnboardingStatus.CHANGED,
            OnboardingStatus.WATCHLIST,
        ):
            onboarding.update_status(status)
            assert onboarding.status is status

    def test_accepts_status_value_strings(self, onboarding):
        onboarding.update_status("WATCHLIST")
        assert onboarding.status is OnboardingStatus.WATCHLIST

    def test_illegal_transition_leaves_aggregate_unchanged(self, onboarding):
        onboarding.update_status(OnboardingStatus.WATCHLIST)
        onboarding.update_status(OnboardingStatus.PENDING)
        onboarding.update_status(OnboardingStatus.ACTIVE)
        snapshot = onboarding.to_dict()

        with pytest.raises(OnboardingError) as exc_info:
            onboarding.update_status(OnboardingStatus.WATCHLIST)

        error = exc_info.value
        assert error.code is ErrorCode.INVALID_TRANSITION
        assert error.action is ErrorAction.STOP
        assert error.context["from_status"] == "ACTIVE"
        assert error.context["to_status"] == "WATCHLIST"
        assert onboarding.to_dict() == snapshot

    def test_cannot_return_to_new(self, onboarding):
        onboarding.update_status(OnboardingStatus.WATCHLIST)
        with pytest.raises(OnboardingError):
            onboarding.update_status(OnboardingStatus.NEW)


class TestSpecialistAssignment:

    def test_assign_in_new_and_watchlist(self, onboarding):
        assert onboarding.can_assign_specialist()
        onboarding.assign_specialist("rt-1")
        onboarding.update_status(OnboardingStatus.WATCHLIST)
        assert onboarding.requires_rt_review()
        onboarding.assign_specialist("rt-2")
        assert onboarding.assigned_specialist_id == "rt-2"

    def test_assign_rejected_once_pending(self, onboarding):
        onboarding.update_status(OnboardingStatus.WATCHLIST)
        onboarding.update_status(OnboardingStatus.PENDING)
        assert onboarding.is_in_progress()
        assert not onboarding.requires_rt_review()

        with pytest.raises(OnboardingError) as exc_info:
            onboarding.assign_specialist("rt-1")
        assert exc_info.value.code is ErrorCode.RT_ASSIGNMENT_FAILED
        assert exc_info.value.action is ErrorAction.USER_INPUT
        assert onboarding.assigned_specialist_id is None


def test_to_dict_shape(onboarding):
    data = onboarding.to_dict()
    assert data["status"] == "NEW"
    assert data["qualifications"] == {"copd": False, "arf": False, "nmd": False, "trd": False}
    assert data["is_eligible_for_niv"] is False
