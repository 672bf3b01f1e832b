"""Shared fixtures: settings, a fake PointClickCare server and sample patients."""
import asyncio
import re
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
import pytest

from niv_backend.config.settings import Settings
from niv_backend.ehr.pcc_client import PccApiClient
from niv_backend.models.patient import DiagnosisCode, Patient, PatientDemographics
from niv_backend.rules.rule_table import get_rule_table

BASE_URL = "https://pcc.test"
ORG_UUID = "org-1"
API_PREFIX = "/api/public/preview1"

_PATIENT_PATH = re.compile(rf"^{API_PREFIX}/orgs/(?P<org>[^/]+)/patients/(?P<patient_id>[^/]+)$")
_PATIENTS_PATH = re.compile(rf"^{API_PREFIX}/orgs/(?P<org>[^/]+)/patients$")
_CONDITIONS_PATH = re.compile(rf"^{API_PREFIX}/orgs/(?P<org>[^/]+)/conditions$")


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePccServer:
    """
    Minimal in-process PCC API for httpx.MockTransport.

    Issues sequential tokens ``token-1``, ``token-2``... and answers 401 for
    any bearer token listed in ``rejected_tokens`` (or every token when
    ``reject_all`` is set).
    """

    def __init__(self):
        self.patients: Dict[str, Dict[str, Any]] = {}
        self.conditions: Dict[str, List[Dict[str, Any]]] = {}
        self.token_requests: List[httpx.Request] = []
        self.api_requests: List[httpx.Request] = []
        self.issued = 0
        self.expires_in = 3600
        self.token_status = 200
        self.token_delay = 0.0
        self.rejected_tokens: set = set()
        self.reject_all = False
        self.status_overrides: Dict[str, int] = {}
        self.raise_on_api: Optional[Exception] = None

    def add_patient(
        self,
        patient_id: str,
        first_name: str,
        last_name: str,
        facility_id: int = 1,
        birth_date: str = "1950-01-01",
        conditions: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.patients[patient_id] = {
            "patientId": int(patient_id) if patient_id.isdigit() else patient_id,
            "firstName": first_name,
            "lastName": last_name,
            "birthDate": birth_date,
            "facId": facility_id,
            "medicalRecordNumber": f"MRN-{patient_id}",
        }
        if conditions is not None:
            self.conditions[patient_id] = conditions

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if path == "/auth/token":
            self.token_requests.append(request)
            if self.token_delay:
                await asyncio.sleep(self.token_delay)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            self.issued += 1
            return httpx.Response(
                200,
                json={
                    "access_token": f"token-{self.issued}",
                    "token_type": "Bearer",
                    "expires_in": self.expires_in,
                },
            )

        self.api_requests.append(request)
        if self.raise_on_api is not None:
            raise self.raise_on_api

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if self.reject_all or token in self.rejected_tokens or not token.startswith("token-"):
            return httpx.Response(401, json={"error": "unauthorized"})

        if path in self.status_overrides:
            return httpx.Response(self.status_overrides[path])

        match = _PATIENT_PATH.match(path)
        if match:
            patient = self.patients.get(match.group("patient_id"))
            if patient is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=patient)

        match = _CONDITIONS_PATH.match(path)
        if match:
            patient_id = request.url.params.get("patientId")
            if patient_id not in self.conditions:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json={"data": self.conditions[patient_id]})

        match = _PATIENTS_PATH.match(path)
        if match:
            facility = request.url.params.get("facilityId")
            data = [
                p for p in self.patients.values()
                if facility is None or str(p["facId"]) == facility
            ]
            return httpx.Response(200, json={"data": data, "paging": {"hasMore": False}})

        if path == "/echo" and request.method in ("POST", "PUT"):
            return httpx.Response(200, content=request.content, headers={"Content-Type": "application/json"})
        if path == "/empty":
            return httpx.Response(204)
        if path == "/maintenance":
            return httpx.Response(200, content=b"<html>maintenance</html>", headers={"Content-Type": "text/html"})

        return httpx.Response(404)


def flat_condition(code: str, description: str, condition_id: int, primary: bool = False) -> Dict[str, Any]:
    return {
        "conditionId": condition_id,
        "icd10": code,
        "icd10Description": description,
        "onsetDate": "2023-01-15",
        "principalDiagnosis": primary,
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        pcc_client_id="test-client",
        pcc_client_secret="test-secret",
        pcc_base_url=BASE_URL,
        pcc_api_prefix=API_PREFIX,
        pcc_org_uuid=ORG_UUID,
        ehr_mode="pcc",
        persistence="memory",
        json_logs=False,
        _env_file=None,
    )


@pytest.fixture
def fake_pcc() -> FakePccServer:
    server = FakePccServer()
    server.add_patient(
        "1001", "Ada", "Lovelace", facility_id=1,
        conditions=[
            flat_condition("J44.1", "COPD with (acute) exacerbation", 1, primary=True),
            flat_condition("J96.01", "Acute respiratory failure with hypoxia", 2),
        ],
    )
    server.add_patient("1002", "Alan", "Turing", facility_id=1)  # no conditions on record
    server.add_patient(
        "1003", "Grace", "Hopper", facility_id=2,
        conditions=[flat_condition("G12.21", "Amyotrophic lateral sclerosis", 3)],
    )
    return server


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def http_client(fake_pcc):
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_pcc.handler))
    yield client
    await client.aclose()


@pytest.fixture
def pcc_client(settings, http_client) -> PccApiClient:
    return PccApiClient(settings, http_client=http_client)


@pytest.fixture
def clinical_rules():
    return get_rule_table("clinical-v1")


def make_patient(patient_id: str, codes: List[str], facility_id: str = "facility-1") -> Patient:
    return Patient(
        id=patient_id,
        demographics=PatientDemographics("Test", "Patient", date(1950, 1, 1), f"MR-{patient_id}", facility_id),
        diagnosis_codes=tuple(DiagnosisCode(code) for code in codes),
    )


@pytest.fixture
def patient_factory():
    return make_patient


@pytest.fixture
def condition_factory():
    return flat_condition
