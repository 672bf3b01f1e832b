"""Clinical qualification value types."""
from dataclasses import dataclass
from typing import Dict, List, Optional

from .enums import MatchMode, QualificationType


@dataclass(frozen=True)
class ClinicalQualifications:
    """
    Eligibility flags for the four NIV programs.

    Always derived from a diagnosis-code set and a rule table; never edited by hand.
    """
    copd: bool = False
    arf: bool = False
    nmd: bool = False
    trd: bool = False

    @classmethod
    def from_types(cls, types) -> "ClinicalQualifications":
        types = set(types)
        return cls(
            copd=QualificationType.COPD in types,
            arf=QualificationType.ARF in types,
            nmd=QualificationType.NMD in types,
            trd=QualificationType.TRD in types,
        )

    def has(self, qualification_type: QualificationType) -> bool:
        return getattr(self, qualification_type.value.lower())

    def has_any_qualification(self) -> bool:
        return self.copd or self.arf or self.nmd or self.trd

    def qualification_types(self) -> List[str]:
        """Names of the qualified programs, in COPD/ARF/NMD/TRD order."""
        return [t.value for t in QualificationType if self.has(t)]

    def to_dict(self) -> Dict[str, bool]:
        return {"copd": self.copd, "arf": self.arf, "nmd": self.nmd, "trd": self.trd}


@dataclass(frozen=True)
class QualificationCriterion:
    """Reference-data row mapping an ICD-10 code (or prefix) to a program."""
    icd10_code: str
    qualification_type: QualificationType
    is_qualifying: bool = True
    description: Optional[str] = None
    match_mode: MatchMode = MatchMode.EXACT

    def matches(self, code: str) -> bool:
        if self.match_mode is MatchMode.PREFIX:
            return code.startswith(self.icd10_code)
        return code == self.icd10_code
