# Trade execution and bet settlement
from .executor import (
    BetRequest,
    BetResult,
    TradeExecutor,
    MockTradeExecutor,
    LiveTradeExecutor,
    create_trade_executor,
)
from .bets import BetOutcome, BetService

__all__ = [
    "BetRequest",
    "BetResult",
    "TradeExecutor",
    "MockTradeExecutor",
    "LiveTradeExecutor",
    "create_trade_executor",
    "BetOutcome",
    "BetService",
]
