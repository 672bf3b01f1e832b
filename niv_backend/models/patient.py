"""Patient and diagnosis value types sourced from the EHR."""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from .enums import CodeSystem


@dataclass(frozen=True)
class DiagnosisCode:
    """
    An ICD-10 diagnosis recorded for a patient.

    Identity is ``(code, code_system)``; the remaining fields describe the
    EHR condition the code came from and do not take part in equality.
    """
    code: str
    code_system: CodeSystem = CodeSystem.ICD10_CM
    description: Optional[str] = field(default=None, compare=False)
    condition_id: Optional[str] = field(default=None, compare=False)
    onset_date: Optional[date] = field(default=None, compare=False)
    is_primary: bool = field(default=False, compare=False)

    def __str__(self) -> str:
        return f"{self.code}: {self.description}" if self.description else self.code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "code_system": self.code_system.value,
            "description": self.description,
            "condition_id": self.condition_id,
            "onset_date": self.onset_date.isoformat() if self.onset_date else None,
            "is_primary": self.is_primary,
        }


def dedupe_diagnosis_codes(codes: List[DiagnosisCode]) -> List[DiagnosisCode]:
    """Drop repeated ``(code, code_system)`` pairs, keeping first occurrence."""
    seen: set[Tuple[str, CodeSystem]] = set()
    unique: List[DiagnosisCode] = []
    for code in codes:
        key = (code.code, code.code_system)
        if key in seen:
            continue
        seen.add(key)
        unique.append(code)
    return unique


@dataclass(frozen=True)
class PatientDemographics:
    """Patient demographic information."""
    first_name: str
    last_name: str
    date_of_birth: Optional[date]
    medical_record_number: str
    facility_id: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def age(self, today: Optional[date] = None) -> Optional[int]:
        """Age in whole years, or None when date of birth is unknown."""
        if self.date_of_birth is None:
            return None
        today = today or date.today()
        dob = self.date_of_birth
        return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


@dataclass(frozen=True)
class Patient:
    """Patient record as read from the EHR. Owned by the integration boundary."""
    id: str
    demographics: PatientDemographics
    diagnosis_codes: Tuple[DiagnosisCode, ...] = ()

    def with_diagnoses(self, codes: List[DiagnosisCode]) -> "Patient":
        """Return a copy carrying the given (deduplicated) diagnosis codes."""
        return Patient(
            id=self.id,
            demographics=self.demographics,
            diagnosis_codes=tuple(dedupe_diagnosis_codes(list(codes))),
        )

    def to_dict(self) -> Dict[str, Any]:
        demo = self.demographics
        return {
            "id": self.id,
            "first_name": demo.first_name,
            "last_name": demo.last_name,
            "full_name": demo.full_name,
            "date_of_birth": demo.date_of_birth.isoformat() if demo.date_of_birth else None,
            "age": demo.age(),
            "medical_record_number": demo.medical_record_number,
            "facility_id": demo.facility_id,
        }
