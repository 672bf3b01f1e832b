"""Seed the diagnosis_code_qualifications table from a rule table on startup."""
from sqlalchemy import func, select

from niv_backend.config.logging_config import get_logger
from niv_backend.rules.rule_table import RuleTable
from niv_backend.storage.database import get_db
from niv_backend.storage.models import DiagnosisCodeQualificationModel
from niv_backend.storage.onboarding_repository import criterion_to_model

logger = get_logger(__name__)


async def seed_qualification_criteria(rule_table: RuleTable) -> int:
    """Load the rule table's rows if that version is not already present.

    Returns the number of rows seeded.
    """
    async with get_db() as session:
        result = await session.execute(
            select(func.count(DiagnosisCodeQualificationModel.id)).where(
                DiagnosisCodeQualificationModel.rule_table_version == rule_table.version
            )
        )
        if result.scalar_one():
            logger.info("Qualification criteria already seeded, skipping", version=rule_table.version)
            return 0

        for criterion in rule_table.entries:
            session.add(criterion_to_model(criterion, rule_table.version))

    logger.info("Qualification criteria seeded", version=rule_table.version, count=len(rule_table.entries))
    return len(rule_table.entries)
