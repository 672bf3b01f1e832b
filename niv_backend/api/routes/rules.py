"""Rule table inspection routes."""
from fastapi import APIRouter, Depends

from niv_backend.api.dependencies import get_active_rule_table
from niv_backend.api.responses import RuleTablesResponse, RuleTableSummary
from niv_backend.models.enums import QualificationType
from niv_backend.rules.rule_table import RULE_TABLES, RuleTable, diff_rule_tables

router = APIRouter(prefix="/rules", tags=["Rules"])


@router.get("", response_model=RuleTablesResponse)
async def list_rule_tables(active: RuleTable = Depends(get_active_rule_table)):
    """
    Show the active rule table and how every other table differs from it.

    The tables disagree on several codes; nothing here picks a winner.
    """
    tables = [
        RuleTableSummary(
            version=table.version,
            description=table.description,
            codes_per_category={t.value: len(table.codes_for(t)) for t in QualificationType},
        )
        for table in RULE_TABLES.values()
    ]
    discrepancies = {
        version: diff_rule_tables(active, table)
        for version, table in RULE_TABLES.items()
        if version != active.version
    }
    return RuleTablesResponse(active_version=active.version, tables=tables, discrepancies=discrepancies)
