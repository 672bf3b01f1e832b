"""Onboarding lifecycle state machine."""
from .transitions import INITIAL_STATUS, STATUS_FLOW, allowed_transitions, can_transition

__all__ = [
    "INITIAL_STATUS",
    "STATUS_FLOW",
    "allowed_transitions",
    "can_transition",
]
