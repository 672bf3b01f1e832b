"""NIV eligibility rules: versioned code tables, classifier and assessor."""
from .rule_table import (
    DEFAULT_RULE_TABLE_VERSION,
    RULE_TABLES,
    RuleTable,
    UnknownRuleTableError,
    diff_rule_tables,
    get_rule_table,
)
from .classifier import DiagnosisCodeClassifier
from .assessor import EligibilityAssessor

__all__ = [
    "DEFAULT_RULE_TABLE_VERSION",
    "RULE_TABLES",
    "RuleTable",
    "UnknownRuleTableError",
    "diff_rule_tables",
    "get_rule_table",
    "DiagnosisCodeClassifier",
    "EligibilityAssessor",
]
