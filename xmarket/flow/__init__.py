# Bet preparation flow
from .orchestrator import (
    BetFlowOrchestrator,
    BetFlowResult,
    BetFlowStatus,
    TERMINAL_STATUSES,
)
from .render import describe

__all__ = [
    "BetFlowOrchestrator",
    "BetFlowResult",
    "BetFlowStatus",
    "TERMINAL_STATUSES",
    "describe",
]
