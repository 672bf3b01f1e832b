"""Onboarding lifecycle transition table and predicates."""
from typing import Dict, FrozenSet

from niv_backend.models.enums import OnboardingStatus
from niv_backend.config.logging_config import get_logger

logger = get_logger(__name__)

INITIAL_STATUS = OnboardingStatus.NEW

# The workflow is cyclic: REVIEWED and CHANGED both route back to WATCHLIST.
STATUS_FLOW: Dict[OnboardingStatus, FrozenSet[OnboardingStatus]] = {
    OnboardingStatus.NEW: frozenset({OnboardingStatus.WATCHLIST}),
    OnboardingStatus.WATCHLIST: frozenset({OnboardingStatus.PENDING, OnboardingStatus.REVIEWED}),
    OnboardingStatus.PENDING: frozenset({OnboardingStatus.ACTIVE}),
    OnboardingStatus.ACTIVE: frozenset({OnboardingStatus.CHANGED}),
    OnboardingStatus.REVIEWED: frozenset({OnboardingStatus.WATCHLIST}),
    OnboardingStatus.CHANGED: frozenset({OnboardingStatus.WATCHLIST}),
}


def allowed_transitions(current: OnboardingStatus) -> FrozenSet[OnboardingStatus]:
    """
    Statuses reachable in one step from ``current``.

    Args:
        current: Current onboarding status

    Returns:
        Set of legal target statuses (empty for unknown input)
    """
    return STATUS_FLOW.get(current, frozenset())


def can_transition(current: OnboardingStatus, target: OnboardingStatus) -> bool:
    """
    Pure predicate over the transition table.

    Self-transitions and edges into NEW are never legal.
    """
    return target in allowed_transitions(current)


def log_transition(onboarding_id: str, from_status: OnboardingStatus, to_status: OnboardingStatus) -> None:
    """Emit the audit-style log line for an applied transition."""
    logger.info(
        "Onboarding status transition",
        onboarding_id=onboarding_id,
        from_status=from_status.value,
        to_status=to_status.value,
    )
