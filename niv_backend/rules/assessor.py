"""Eligibility assessment over a set of diagnosis codes."""
from typing import Dict, Iterable, List, Optional, Set, Union

from niv_backend.models.enums import QualificationType
from niv_backend.models.patient import DiagnosisCode
from niv_backend.models.qualifications import ClinicalQualifications
from .classifier import DiagnosisCodeClassifier
from .rule_table import RuleTable

CodeLike = Union[DiagnosisCode, str]


def _code_value(code: CodeLike) -> str:
    return code.code if isinstance(code, DiagnosisCode) else code


class EligibilityAssessor:
    """
    Derive ClinicalQualifications from a patient's diagnosis codes.

    A category is qualified when any code classifies into it, so the result
    does not depend on ordering or duplicates.
    """

    def __init__(
        self,
        rule_table: Optional[RuleTable] = None,
        classifier: Optional[DiagnosisCodeClassifier] = None,
    ):
        self._classifier = classifier or DiagnosisCodeClassifier(rule_table)

    @property
    def rule_table(self) -> RuleTable:
        return self._classifier.rule_table

    def matched_types(self, codes: Iterable[CodeLike]) -> Set[QualificationType]:
        matched: Set[QualificationType] = set()
        for code in codes:
            matched |= self._classifier.classify(code)
        return matched

    def assess(self, codes: Iterable[CodeLike]) -> ClinicalQualifications:
        """
        Assess program eligibility.

        Args:
            codes: DiagnosisCode objects or raw ICD-10 strings

        Returns:
            ClinicalQualifications with one flag per category
        """
        return ClinicalQualifications.from_types(self.matched_types(codes))

    def is_niv_eligible(self, codes: Iterable[CodeLike]) -> bool:
        return self.assess(codes).has_any_qualification()

    def qualifying_codes_for(
        self, codes: Iterable[CodeLike], qualification_type: QualificationType
    ) -> List[str]:
        """Distinct codes (input order) that place the patient in one category."""
        hits: List[str] = []
        for code in codes:
            value = _code_value(code)
            if qualification_type in self._classifier.classify(value) and value not in hits:
                hits.append(value)
        return hits

    def qualification_reasons(self, codes: Iterable[CodeLike]) -> Dict[str, List[str]]:
        """
        Explain each qualified category.

        Returns:
            ``{category: [reason, ...]}`` where a reason is the diagnosis
            description when known, else the rule description, else the code.
        """
        codes = list(codes)
        reasons: Dict[str, List[str]] = {}
        for qualification_type in QualificationType:
            entries: List[str] = []
            for code in codes:
                value = _code_value(code)
                if qualification_type not in self._classifier.classify(value):
                    continue
                reason = code.description if isinstance(code, DiagnosisCode) else None
                if not reason:
                    rule = self.rule_table.entry_for(value, qualification_type)
                    reason = (rule.description if rule else None) or value
                if reason not in entries:
                    entries.append(reason)
            if entries:
                reasons[qualification_type.value] = entries
        return reasons
