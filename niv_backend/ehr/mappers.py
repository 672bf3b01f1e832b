"""Map PointClickCare payloads onto domain patients and diagnosis codes."""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from niv_backend.models.enums import CodeSystem
from niv_backend.models.patient import (
    DiagnosisCode,
    Patient,
    PatientDemographics,
    dedupe_diagnosis_codes,
)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` or an ISO timestamp; None for missing or garbage."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None


def code_system_from(system: Optional[str]) -> CodeSystem:
    """ICD-10-CA when the library/system names the Canadian modification."""
    normalized = (system or "").lower().replace("-", "")
    if "icd10ca" in normalized:
        return CodeSystem.ICD10_CA
    return CodeSystem.ICD10_CM


def _is_icd_system(system: Optional[str]) -> bool:
    return "icd10" in (system or "").lower().replace("-", "")


def patient_from_pcc(payload: Dict[str, Any]) -> Patient:
    """
    Build a Patient from a PCC patient payload.

    PCC reports the facility as ``facId``; ``facilityId`` is accepted too.
    """
    patient_id = str(payload["patientId"])
    facility = payload.get("facId", payload.get("facilityId"))
    demographics = PatientDemographics(
        first_name=payload.get("firstName", ""),
        last_name=payload.get("lastName", ""),
        date_of_birth=parse_date(payload.get("birthDate")),
        medical_record_number=payload.get("medicalRecordNumber") or f"PCC-{patient_id}",
        facility_id=str(facility) if facility is not None else "unknown",
    )
    return Patient(id=patient_id, demographics=demographics)


def _codes_from_condition(condition: Dict[str, Any]) -> List[DiagnosisCode]:
    # Flat shape returned by the conditions endpoint
    if condition.get("icd10"):
        return [
            DiagnosisCode(
                code=condition["icd10"],
                code_system=code_system_from(condition.get("codeLibrary")),
                description=condition.get("icd10Description"),
                condition_id=str(condition["conditionId"]) if condition.get("conditionId") is not None else None,
                onset_date=parse_date(condition.get("onsetDate")),
                is_primary=bool(condition.get("principalDiagnosis", False)),
            )
        ]

    # FHIR-like shape: identifier.coding[]
    codings = (condition.get("identifier") or {}).get("coding") or []
    return [
        DiagnosisCode(
            code=coding["code"],
            code_system=code_system_from(coding.get("system")),
            description=coding.get("display"),
            onset_date=parse_date(condition.get("onsetDate")),
        )
        for coding in codings
        if coding.get("code") and _is_icd_system(coding.get("system"))
    ]


def diagnoses_from_pcc(conditions: Iterable[Dict[str, Any]]) -> List[DiagnosisCode]:
    """Map a conditions list (either shape) to unique diagnosis codes."""
    codes: List[DiagnosisCode] = []
    for condition in conditions:
        codes.extend(_codes_from_condition(condition))
    return dedupe_diagnosis_codes(codes)


def unwrap_list(payload: Any) -> List[Dict[str, Any]]:
    """PCC list endpoints wrap results as ``{"data": [...]}``; bare lists pass through."""
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    return payload.get("data") or []
