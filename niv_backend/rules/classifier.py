"""Diagnosis-code classification against a rule table."""
from typing import Any, FrozenSet, Optional

from niv_backend.models.enums import QualificationType
from niv_backend.models.patient import DiagnosisCode
from .rule_table import RuleTable, get_rule_table

_EMPTY: FrozenSet[QualificationType] = frozenset()


class DiagnosisCodeClassifier:
    """
    Map an ICD-10 code to the qualification categories it falls into.

    Matching is exact and case-sensitive unless the table holds a prefix
    rule. Anything that is not a non-empty string classifies to nothing.
    """

    def __init__(self, rule_table: Optional[RuleTable] = None):
        self._rule_table = rule_table or get_rule_table()

    @property
    def rule_table(self) -> RuleTable:
        return self._rule_table

    def classify(self, code: Any) -> FrozenSet[QualificationType]:
        if isinstance(code, DiagnosisCode):
            code = code.code
        if not isinstance(code, str) or not code:
            return _EMPTY
        return self._rule_table.lookup(code)
