"""Session coordination: state machine, usage accounting and feedback."""

from .state_machine import CoachingSession
from .usage_accountant import UsageAccountant, estimate_tokens
from .summary_generator import SummaryGenerator

__all__ = [
    "CoachingSession",
    "UsageAccountant",
    "estimate_tokens",
    "SummaryGenerator",
]
