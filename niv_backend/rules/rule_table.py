"""Versioned ICD-10 rule tables for NIV program qualification.

Several divergent code lists for the same four programs exist in the
clinical source material. Each one is kept here as a named, versioned table
so exactly one can be made active (``RULE_TABLE_VERSION``) and the others can
be diffed against it instead of drifting silently.

Tables:
    clinical-v1        Annotated clinical list (kyphosis/scoliosis TRD,
                       ventilator dependence under ARF). Default.
    legacy-diagnosis-v0
                       Earlier flat lists; J45.50 under COPD, J95.1 under TRD.
    reference-seed-v1  Seeded reference data; no TRD rows, extra emphysema and
                       respiratory-failure codes, explicit non-qualifying rows.
    prefix-v0          Category-prefix rules (J44*, J96*, G12*, ...); no TRD.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from niv_backend.models.enums import MatchMode, QualificationType
from niv_backend.models.qualifications import QualificationCriterion

COPD = QualificationType.COPD
ARF = QualificationType.ARF
NMD = QualificationType.NMD
TRD = QualificationType.TRD

DEFAULT_RULE_TABLE_VERSION = "clinical-v1"


class UnknownRuleTableError(KeyError):
    """Raised when a rule table version is not registered."""


@dataclass(frozen=True)
class RuleTable:
    """Immutable set of qualification rules with a version label."""
    version: str
    entries: Tuple[QualificationCriterion, ...]
    description: str = ""
    _exact: Dict[str, FrozenSet[QualificationType]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _prefixes: Tuple[QualificationCriterion, ...] = field(
        default=(), init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        exact: Dict[str, set] = {}
        prefixes: List[QualificationCriterion] = []
        for entry in self.entries:
            if not entry.is_qualifying:
                continue
            if entry.match_mode is MatchMode.PREFIX:
                prefixes.append(entry)
            else:
                exact.setdefault(entry.icd10_code, set()).add(entry.qualification_type)
        # frozen dataclass: populate lookup indexes once
        object.__setattr__(self, "_exact", {code: frozenset(types) for code, types in exact.items()})
        object.__setattr__(self, "_prefixes", tuple(prefixes))

    @classmethod
    def from_criteria(
        cls,
        criteria: Iterable[QualificationCriterion],
        version: str = "reference-store",
        description: str = "",
    ) -> "RuleTable":
        """Build a table from reference-store criteria rows."""
        return cls(version=version, entries=tuple(criteria), description=description)

    def lookup(self, code: str) -> FrozenSet[QualificationType]:
        """Categories for ``code``: exact hits plus any matching prefix rule."""
        hits = set(self._exact.get(code, ()))
        for entry in self._prefixes:
            if code.startswith(entry.icd10_code):
                hits.add(entry.qualification_type)
        return frozenset(hits)

    def entry_for(self, code: str, qualification_type: QualificationType) -> Optional[QualificationCriterion]:
        """First qualifying entry that puts ``code`` in ``qualification_type``."""
        for entry in self.entries:
            if entry.is_qualifying and entry.qualification_type is qualification_type and entry.matches(code):
                return entry
        return None

    def codes_for(self, qualification_type: QualificationType) -> FrozenSet[str]:
        """Qualifying exact codes and prefixes for one category."""
        return frozenset(
            e.icd10_code for e in self.entries
            if e.is_qualifying and e.qualification_type is qualification_type
        )

    def criteria(self) -> List[QualificationCriterion]:
        return list(self.entries)


def _rows(
    qualification_type: QualificationType,
    rows: Sequence[Tuple[str, str]],
    match_mode: MatchMode = MatchMode.EXACT,
    is_qualifying: bool = True,
) -> List[QualificationCriterion]:
    return [
        QualificationCriterion(
            icd10_code=code,
            qualification_type=qualification_type,
            is_qualifying=is_qualifying,
            description=description,
            match_mode=match_mode,
        )
        for code, description in rows
    ]


# --- clinical-v1 -------------------------------------------------------------

_CLINICAL_COPD = [
    ("J44.0", "COPD with acute lower respiratory infection"),
    ("J44.1", "COPD with (acute) exacerbation"),
    ("J44.9", "COPD, unspecified"),
    ("J44.89", "Other specified COPD"),
    ("J42", "Chronic bronchitis"),
    ("J43.9", "Emphysema, unspecified"),
    ("J43.8", "Other emphysema"),
    ("J47.9", "Bronchiectasis, unspecified"),
    ("J45.909", "Unspecified asthma, uncomplicated"),
    ("J45.998", "Other asthma"),
]

_CLINICAL_ARF = [
    # Respiratory failure without hypercapnia
    ("J96.11", "Chronic respiratory failure with hypoxia"),
    ("J96.20", "Acute and chronic respiratory failure, unspecified"),
    ("J96.90", "Respiratory failure, unspecified"),
    ("J96.10", "Chronic respiratory failure, unspecified"),
    ("J96.21", "Acute and chronic respiratory failure with hypoxia"),
    ("J96.92", "Respiratory failure, unspecified, with hypercapnia"),
    # Respiratory failure with hypercapnia
    ("J96.12", "Chronic respiratory failure with hypercapnia"),
    ("J96.22", "Acute and chronic respiratory failure with hypercapnia"),
    # Acute respiratory failure
    ("J96.01", "Acute respiratory failure with hypoxia"),
    ("J96.02", "Acute respiratory failure with hypercapnia"),
    ("J96.00", "Acute respiratory failure, unspecified"),
    ("Z99.11", "Dependence on ventilator"),
    # Stand-alone respiratory conditions
    ("E84.9", "Cystic fibrosis, unspecified"),
    ("I27.0", "Primary pulmonary hypertension"),
    ("J84.10", "Pulmonary fibrosis, unspecified"),
    ("J84.178", "Other interstitial pulmonary diseases with fibrosis"),
    ("J84.89", "Other interstitial pulmonary diseases"),
    ("J84.9", "Interstitial pulmonary disease, unspecified"),
    ("J66.8", "Airway disease due to other specific organic dusts"),
    ("J95.1", "Acute pulmonary insufficiency following thoracic surgery"),
    ("J45.50", "Severe persistent asthma, uncomplicated"),
]

_CLINICAL_NMD = [
    ("G80.0", "Spastic quadriplegic cerebral palsy"),
    ("G80.1", "Spastic diplegic cerebral palsy"),
    ("G80.9", "Cerebral palsy, unspecified"),
    ("G82.22", "Paraplegia, incomplete"),
    ("I69.964", "Monoplegia of upper limb following cerebrovascular disease"),
    ("G12.0", "Infantile spinal muscular atrophy (Werdnig-Hoffmann)"),
    ("G12.21", "Amyotrophic lateral sclerosis"),
    ("G12.9", "Spinal muscular atrophy, unspecified"),
    ("G14", "Postpolio syndrome"),
    ("G23.1", "Progressive supranuclear ophthalmoplegia"),
    ("G35", "Multiple sclerosis"),
    ("G61.0", "Guillain-Barre syndrome"),
    ("G90.9", "Disorder of the autonomic nervous system, unspecified"),
    ("G70.00", "Myasthenia gravis without (acute) exacerbation"),
    ("G70.01", "Myasthenia gravis with (acute) exacerbation"),
    ("G70.2", "Congenital and developmental myasthenia"),
    ("G70.80", "Lambert-Eaton syndrome, unspecified"),
    ("G71.0", "Muscular dystrophy"),
    ("G71.01", "Duchenne or Becker muscular dystrophy"),
    ("G71.02", "Facioscapulohumeral muscular dystrophy"),
    ("G71.021", "Autosomal dominant muscular dystrophy"),
    ("G71.032", "Limb girdle muscular dystrophy due to calpain-3 dysfunction"),
    ("G71.033", "Limb girdle muscular dystrophy due to dysferlin dysfunction"),
    ("G71.034", "Limb girdle muscular dystrophy due to sarcoglycan dysfunction"),
    ("G71.11", "Myotonic muscular dystrophy"),
    ("G71.2", "Congenital myopathies"),
    ("G73.1", "Lambert-Eaton syndrome in neoplastic disease"),
    ("G73.7", "Myopathy in diseases classified elsewhere"),
    ("G73.81", "Critical illness myopathy"),
    ("G73.89", "Other specified myopathies"),
    ("G47.31", "Primary central sleep apnea"),
    ("G47.34", "Idiopathic sleep related nonobstructive alveolar hypoventilation"),
    ("G47.35", "Congenital central alveolar hypoventilation syndrome"),
]

_CLINICAL_TRD = [
    ("M40.00", "Postural kyphosis, site unspecified"),
    ("M40.204", "Unspecified kyphosis, thoracic region"),
    ("M40.294", "Other kyphosis, thoracic region"),
    ("M40.209", "Unspecified kyphosis, site unspecified"),
    ("M40.299", "Other kyphosis, site unspecified"),
    ("M41.34", "Thoracogenic scoliosis, thoracic region"),
    ("M41.46", "Neuromuscular scoliosis, thoracolumbar region"),
    ("M41.9", "Scoliosis, unspecified"),
    ("M45.9", "Ankylosing spondylitis of unspecified sites in spine"),
    ("Q67.6", "Pectus excavatum"),
    ("Q76.49", "Other congenital malformations of spine"),
    ("S06.9X9A", "Unspecified intracranial injury, initial encounter"),
    ("S14.109A", "Unspecified injury at unspecified level of cervical spinal cord"),
    ("S22.49XA", "Multiple fractures of ribs, initial encounter"),
]

CLINICAL_V1 = RuleTable(
    version="clinical-v1",
    description="Annotated clinical qualification list",
    entries=tuple(
        _rows(COPD, _CLINICAL_COPD)
        + _rows(ARF, _CLINICAL_ARF)
        + _rows(NMD, _CLINICAL_NMD)
        + _rows(TRD, _CLINICAL_TRD)
    ),
)


# --- legacy-diagnosis-v0 -----------------------------------------------------

_LEGACY_COPD = [(code, "") for code in (
    "J44.0", "J44.1", "J42", "J43.9", "J44.9", "J47.9", "J43.8",
    "J44.89", "J45.909", "J45.998", "J45.50",
)]
_LEGACY_ARF = [(code, "") for code in (
    "J96.11", "J96.20", "J96.90", "J96.10", "J96.21", "J96.92",
    "J96.12", "J96.22", "J96.01", "J96.02", "J96.00",
)]
_LEGACY_NMD = [(code, "") for code in (
    "G80.0", "G80.1", "G82.22", "I69.964", "G12.0", "G12.21", "G12.9", "G14",
    "G23.1", "G35", "G47.31", "G47.34", "G47.35", "G61.0", "G70.00", "G70.01",
    "G70.2", "G70.80", "G71.0", "G71.01", "G71.02", "G71.021", "G71.032",
    "G71.033", "G71.034", "G71.11", "G71.2", "G73.1", "G73.7", "G73.81",
    "G73.89", "G80.9", "G90.9", "S14.109A",
)]
_LEGACY_TRD = [(code, "") for code in (
    "M40.00", "M40.204", "M40.294", "M41.34", "M41.46", "M40.209", "M40.299",
    "M41.9", "M45.9", "Q67.6", "Q76.49", "J95.1", "S22.49XA",
)]

LEGACY_DIAGNOSIS_V0 = RuleTable(
    version="legacy-diagnosis-v0",
    description="Earlier flat code lists (CRF/RTD naming mapped to ARF/TRD)",
    entries=tuple(
        _rows(COPD, _LEGACY_COPD)
        + _rows(ARF, _LEGACY_ARF)
        + _rows(NMD, _LEGACY_NMD)
        + _rows(TRD, _LEGACY_TRD)
    ),
)


# --- reference-seed-v1 -------------------------------------------------------

_SEED_COPD = [
    ("J44.0", "COPD with acute lower respiratory infection"),
    ("J44.1", "COPD with (acute) exacerbation"),
    ("J42", "Chronic bronchitis"),
    ("J44.9", "COPD, unspecified"),
    ("J43.9", "Emphysema, unspecified"),
    ("J43.0", "Unilateral pulmonary emphysema (MacLeod's syndrome)"),
    ("J43.1", "Panlobular emphysema"),
    ("J43.2", "Centrilobular emphysema"),
    ("J43.8", "Other emphysema"),
    ("J41.0", "Simple chronic bronchitis"),
]
_SEED_ARF = [
    ("J96.01", "Acute respiratory failure with hypoxia"),
    ("J96.02", "Acute respiratory failure with hypercapnia"),
    ("J96.00", "Acute respiratory failure, unspecified"),
    ("J96.11", "Chronic respiratory failure with hypoxia"),
    ("J96.12", "Chronic respiratory failure with hypercapnia"),
    ("J96.20", "Acute and chronic respiratory failure, unspecified"),
    ("J96.21", "Acute and chronic respiratory failure with hypoxia"),
    ("J96.22", "Acute and chronic respiratory failure with hypercapnia"),
    ("J96.90", "Respiratory failure, unspecified"),
    ("J96.91", "Respiratory failure, unspecified with hypoxia"),
    ("J96.92", "Respiratory failure, unspecified with hypercapnia"),
    ("Z99.11", "Dependence on ventilator"),
    ("E84.9", "Cystic fibrosis, unspecified"),
    ("J45.50", "Severe persistent asthma, uncomplicated"),
    ("J84.10", "Pulmonary fibrosis, unspecified"),
    ("J84.178", "Other interstitial pulmonary diseases with fibrosis"),
    ("J84.89", "Other interstitial pulmonary diseases"),
    ("J84.9", "Interstitial pulmonary disease, unspecified"),
    ("I27.0", "Primary pulmonary hypertension"),
]
_SEED_NMD = [(code, desc) for code, desc in _CLINICAL_NMD if code != "I69.964"]

REFERENCE_SEED_V1 = RuleTable(
    version="reference-seed-v1",
    description="Seeded reference data (no TRD rows)",
    entries=tuple(
        _rows(COPD, _SEED_COPD)
        + _rows(ARF, _SEED_ARF)
        + _rows(NMD, _SEED_NMD)
        + _rows(COPD, [("Z51.11", "Encounter for antineoplastic chemotherapy")], is_qualifying=False)
        + _rows(ARF, [("I10", "Essential (primary) hypertension")], is_qualifying=False)
        + _rows(NMD, [("E11.9", "Type 2 diabetes mellitus without complications")], is_qualifying=False)
    ),
)


# --- prefix-v0 ---------------------------------------------------------------

PREFIX_V0 = RuleTable(
    version="prefix-v0",
    description="Category-prefix rules; no TRD coverage",
    entries=tuple(
        _rows(COPD, [("J44", "Chronic obstructive pulmonary disease")], match_mode=MatchMode.PREFIX)
        + _rows(COPD, [("J42", "Chronic bronchitis")])
        + _rows(ARF, [("J96", "Respiratory failure, not elsewhere classified")], match_mode=MatchMode.PREFIX)
        + _rows(
            NMD,
            [
                ("G12", "Spinal muscular atrophy and related syndromes"),
                ("G70", "Myasthenia gravis and other myoneural disorders"),
                ("G71", "Primary disorders of muscles"),
                ("G73", "Disorders of myoneural junction and muscle in diseases classified elsewhere"),
                ("G80", "Cerebral palsy"),
            ],
            match_mode=MatchMode.PREFIX,
        )
    ),
)


RULE_TABLES: Dict[str, RuleTable] = {
    table.version: table
    for table in (CLINICAL_V1, LEGACY_DIAGNOSIS_V0, REFERENCE_SEED_V1, PREFIX_V0)
}


def get_rule_table(version: str = DEFAULT_RULE_TABLE_VERSION) -> RuleTable:
    """
    Look up a registered rule table.

    Raises:
        UnknownRuleTableError: If no table has that version
    """
    try:
        return RULE_TABLES[version]
    except KeyError:
        raise UnknownRuleTableError(
            f"Unknown rule table {version!r}; available: {', '.join(sorted(RULE_TABLES))}"
        ) from None


def diff_rule_tables(active: RuleTable, other: RuleTable) -> Dict[str, Dict[str, List[str]]]:
    """
    Report per-category differences between two rule tables.

    Returns:
        ``{category: {"only_in_active": [...], "only_in_other": [...]}}`` for
        every category where the qualifying code/prefix sets differ.
    """
    report: Dict[str, Dict[str, List[str]]] = {}
    for qualification_type in QualificationType:
        mine = active.codes_for(qualification_type)
        theirs = other.codes_for(qualification_type)
        if mine == theirs:
            continue
        report[qualification_type.value] = {
            "only_in_active": sorted(mine - theirs),
            "only_in_other": sorted(theirs - mine),
        }
    return report
