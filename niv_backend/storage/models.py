"""SQLAlchemy ORM models for database tables."""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base


def _utcnow():
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


Base = declarative_base()


class OnboardingModel(Base):
    """Database model for NIV onboardings."""
    __tablename__ = "onboardings"

    id = Column(String(36), primary_key=True)
    patient_id = Column(String(100), nullable=False, unique=True)
    facility_id = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="NEW")
    assigned_specialist_id = Column(String(100), nullable=True)

    # Clinical qualifications
    copd = Column(Boolean, nullable=False, default=False)
    arf = Column(Boolean, nullable=False, default=False)
    nmd = Column(Boolean, nullable=False, default=False)
    trd = Column(Boolean, nullable=False, default=False)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_onboardings_facility_id", "facility_id"),
        Index("ix_onboardings_status", "status"),
    )


class DiagnosisCodeQualificationModel(Base):
    """Reference data: which ICD-10 codes qualify for which NIV program."""
    __tablename__ = "diagnosis_code_qualifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rule_table_version = Column(String(50), nullable=False)
    icd10_code = Column(String(20), nullable=False)
    qualification_type = Column(String(10), nullable=False)
    is_qualifying = Column(Boolean, nullable=False, default=True)
    match_mode = Column(String(10), nullable=False, default="exact")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "rule_table_version", "icd10_code", "qualification_type",
            name="uq_dx_qualification_version_code_type",
        ),
        Index("ix_dx_qualifications_version", "rule_table_version"),
    )
