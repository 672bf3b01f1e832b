"""API tests using FastAPI's TestClient with dependency overrides."""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from niv_backend.api.dependencies import get_onboarding_service, get_qualification_service
from niv_backend.main import app
from niv_backend.mock_services.ehr_mock import MockPatientSource
from niv_backend.models.errors import OnboardingError
from niv_backend.services.onboarding_service import OnboardingService
from niv_backend.services.qualification_service import QualificationService
from niv_backend.storage.onboarding_repository import InMemoryOnboardingRepository

API = "/api/v1"


@pytest.fixture
def patient_source():
    return MockPatientSource()


@pytest.fixture
def client(patient_source, clinical_rules):
    service = OnboardingService(InMemoryOnboardingRepository(clinical_rules.entries), patient_source, clinical_rules)
    app.dependency_overrides[get_onboarding_service] = lambda: service
    app.dependency_overrides[get_qualification_service] = lambda: QualificationService(patient_source, clinical_rules)
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, patient_id="mock-patient-1", **extra):
    response = client.post(f"{API}/onboardings", json={"patient_id": patient_id, **extra})
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"

    def test_correlation_id_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_correlation_id_generated(self, client):
        assert client.get("/health").headers["X-Correlation-ID"]

    def test_error_body_documented(self, client):
        schema = client.get("/openapi.json").json()

        assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {"error"}
        assert set(schema["components"]["schemas"]["ErrorBody"]["properties"]) == {"code", "message", "action"}
        responses = schema["paths"][f"{API}/qualifications/{{org_uuid}}/{{patient_id}}"]["get"]["responses"]
        assert {"404", "409", "422", "502", "503"} <= set(responses)
        assert responses["503"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


class TestPatientRoutes:

    def test_patient_qualifications(self, client):
        response = client.get(f"{API}/patients/mock-patient-2/qualifications")

        assert response.status_code == 200
        body = response.json()
        assert body["has_qualifications"] is True
        assert body["qualification_types"] == ["ARF", "NMD"]
        assert body["onboarding"]["status"] == "NEW"
        assert body["onboarding"]["qualifications"] == {"copd": False, "arf": True, "nmd": True, "trd": False}
        assert [d["code"] for d in body["diagnoses"]] == ["J96.01", "G12.21", "G70.00"]

    def test_unknown_patient_is_404(self, client):
        response = client.get(f"{API}/patients/nobody/qualifications")
        assert response.status_code == 404
        assert response.json() == {
            "error": {
                "code": "PATIENT_NOT_FOUND",
                "message": "Patient nobody not found",
                "action": "stop",
            }
        }

    def test_facility_patients(self, client):
        response = client.get(f"{API}/facilities/facility-1/patients", params={"pageSize": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["eligible"] == 2

    def test_page_size_is_bounded(self, client):
        assert client.get(f"{API}/facilities/facility-1/patients", params={"pageSize": 0}).status_code == 422


class TestOnboardingRoutes:

    def test_create_and_fetch(self, client):
        created = create(client, assigned_specialist_id="rt-1")

        assert created["patient_id"] == "mock-patient-1"
        assert created["facility_id"] == "facility-1"
        assert created["is_eligible_for_niv"] is True
        assert created["version"] == 1

        assert client.get(f"{API}/onboardings/{created['id']}").json()["id"] == created["id"]
        assert client.get(f"{API}/onboardings/by-patient/mock-patient-1").json()["id"] == created["id"]

    def test_duplicate_create_is_409(self, client):
        create(client)
        response = client.post(f"{API}/onboardings", json={"patient_id": "mock-patient-1"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ONBOARDING_ALREADY_EXISTS"

    def test_missing_onboarding_is_404(self, client):
        assert client.get(f"{API}/onboardings/missing").status_code == 404
        response = client.get(f"{API}/onboardings/by-patient/nobody")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ONBOARDING_NOT_FOUND"

    def test_status_flow(self, client):
        onboarding_id = create(client)["id"]

        response = client.patch(f"{API}/onboardings/{onboarding_id}/status", json={"status": "WATCHLIST"})
        assert response.status_code == 200
        assert response.json()["status"] == "WATCHLIST"
        assert response.json()["version"] == 2

    def test_illegal_transition_is_409(self, client):
        onboarding_id = create(client)["id"]

        response = client.patch(f"{API}/onboardings/{onboarding_id}/status", json={"status": "ACTIVE"})

        assert response.status_code == 409
        assert response.json()["error"] == {
            "code": "INVALID_TRANSITION",
            "message": "Cannot transition from NEW to ACTIVE",
            "action": "stop",
        }
        assert "Retry-After" not in response.headers

    def test_unknown_status_value_is_422(self, client):
        onboarding_id = create(client)["id"]
        response = client.patch(f"{API}/onboardings/{onboarding_id}/status", json={"status": "DONE"})
        assert response.status_code == 422

    def test_assign_specialist(self, client):
        onboarding_id = create(client)["id"]

        response = client.patch(f"{API}/onboardings/{onboarding_id}/specialist", json={"specialist_id": "rt-2"})
        assert response.status_code == 200
        assert response.json()["assigned_specialist_id"] == "rt-2"

        for status in ("WATCHLIST", "PENDING"):
            client.patch(f"{API}/onboardings/{onboarding_id}/status", json={"status": status})
        response = client.patch(f"{API}/onboardings/{onboarding_id}/specialist", json={"specialist_id": "rt-3"})
        assert response.status_code == 422
        assert response.json()["error"]["action"] == "user-input"

    def test_refresh(self, client):
        onboarding_id = create(client, patient_id="mock-patient-4")["id"]

        response = client.post(f"{API}/onboardings/{onboarding_id}/refresh")

        assert response.status_code == 200
        assert response.json()["onboarding"]["id"] == onboarding_id
        assert response.json()["qualification_types"] == ["ARF", "NMD"]


class TestEhrFailures:

    def test_unavailable_is_503_with_retry_after(self, client, patient_source):
        patient_source.get_patient_with_diagnoses = AsyncMock(
            side_effect=OnboardingError.pcc_unavailable("patient_with_diagnoses_lookup")
        )

        response = client.get(f"{API}/patients/mock-patient-1/qualifications")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "30"
        assert response.json()["error"]["action"] == "retry"

    def test_unauthorized_is_502(self, client, patient_source):
        patient_source.get_patient_with_diagnoses = AsyncMock(
            side_effect=OnboardingError.pcc_unauthorized("patient_lookup")
        )

        response = client.get(f"{API}/qualifications/mock-org/mock-patient-1")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "PCC_UNAUTHORIZED"

    def test_unexpected_error_is_500_with_error_id(self, patient_source, clinical_rules):
        patient_source.get_patient_with_diagnoses = AsyncMock(side_effect=RuntimeError("boom"))
        app.dependency_overrides[get_qualification_service] = lambda: QualificationService(
            patient_source, clinical_rules
        )
        try:
            response = TestClient(app, raise_server_exceptions=False).get(
                f"{API}/qualifications/mock-org/mock-patient-1"
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert len(response.json()["error_id"]) == 8


class TestQualificationRoutes:

    def test_assess(self, client):
        response = client.get(f"{API}/qualifications/mock-org/mock-patient-3")
        assert response.status_code == 200
        assert response.json()["data"]["is_niv_eligible"] is False

    def test_mock_run(self, client):
        body = client.get(f"{API}/qualifications/test-mock").json()
        assert body["success"] is True
        assert body["data"]["patient"]["id"] == "mock-patient-1"

    def test_connection(self, client):
        body = client.get(f"{API}/qualifications/test-connection").json()
        assert body["success"] is True
        assert body["message"] == "PCC connection successful"


class TestRulesRoute:

    def test_rules_report(self, client):
        body = client.get(f"{API}/rules").json()

        assert body["active_version"] == "clinical-v1"
        assert {t["version"] for t in body["tables"]} == {
            "clinical-v1", "legacy-diagnosis-v0", "reference-seed-v1", "prefix-v0",
        }
        assert "clinical-v1" not in body["discrepancies"]
        legacy_trd = body["discrepancies"]["legacy-diagnosis-v0"]["TRD"]
        assert "J95.1" in legacy_trd["only_in_other"]
