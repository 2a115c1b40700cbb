"""
Trade executors for Polymarket bets.
A mock executor for development and a live executor trading through the CLOB.
"""

import asyncio
import secrets
from dataclasses import dataclass
from typing import Optional, Protocol

from ..clients.clob_client import CLOBClient, OrderSide
from ..clients.gamma_client import GammaClient
from ..utils.logger import get_logger

logger = get_logger("executor")

MOCK_PRICES = {"yes": 0.45, "no": 0.55}


@dataclass
class BetRequest:
    """A bet to execute on the order book."""
    market_id: str
    side: str  # "yes" or "no"
    amount: float  # USDC to spend
    user_id: Optional[int] = None
    tweet_id: Optional[str] = None


@dataclass
class BetResult:
    """Executor response; price is the realized fill price."""
    success: bool
    order_id: Optional[str] = None
    shares: Optional[float] = None
    price: Optional[float] = None
    error: Optional[str] = None


class TradeExecutor(Protocol):
    """Places bets on the prediction market."""

    async def place_bet(self, request: BetRequest) -> BetResult:
        ...


class MockTradeExecutor:
    """
    Fills every bet at a fixed price after a short delay.

    Used when no platform wallet is configured.
    """

    def __init__(self, delay_seconds: float = 0.5):
        self.delay_seconds = delay_seconds

    async def place_bet(self, request: BetRequest) -> BetResult:
        logger.info(
            "Executing MOCK trade",
            extra={"market_id": request.market_id, "side": request.side, "amount": request.amount}
        )

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        price = MOCK_PRICES[request.side]
        return BetResult(
            success=True,
            order_id=self._generate_order_id(),
            shares=request.amount / price,
            price=price
        )

    @staticmethod
    def _generate_order_id() -> str:
        return "0x" + secrets.token_hex(8).ljust(64, "0")


class LiveTradeExecutor:
    """
    Buys outcome tokens with a market order from the platform wallet.

    The fill price is the best ask at submission time, which can differ
    from the price shown when the user asked for the bet.
    """

    def __init__(self, clob_client: CLOBClient, gamma_client: GammaClient):
        self.clob_client = clob_client
        self.gamma_client = gamma_client

    async def place_bet(self, request: BetRequest) -> BetResult:
        logger.info(
            "Executing trade",
            extra={"market_id": request.market_id, "side": request.side, "amount": request.amount}
        )

        try:
            market = await self.gamma_client.get_market(request.market_id)
            if market is None:
                return BetResult(success=False, error=f"Market {request.market_id} not found")

            token_id = market.token_for_side(request.side)
            if not token_id:
                return BetResult(success=False, error="Market has no tradable token for that side")

            book = await self.clob_client.get_order_book(token_id)
            fill_price = book.best_ask
            if fill_price is None or fill_price <= 0:
                return BetResult(success=False, error="No liquidity on the order book")

            order = await self.clob_client.place_market_order(token_id, OrderSide.BUY, request.amount)
            if not order.success:
                return BetResult(success=False, error=order.error or "Order rejected")

            return BetResult(
                success=True,
                order_id=order.order_id,
                shares=request.amount / fill_price,
                price=fill_price
            )

        except Exception as e:
            logger.error(f"Error placing bet: {e}")
            return BetResult(success=False, error=str(e))


def create_trade_executor(
    trading_mode: str,
    clob_client: Optional[CLOBClient] = None,
    gamma_client: Optional[GammaClient] = None
) -> TradeExecutor:
    """Choose the executor once at start-up."""
    if trading_mode == "live":
        if clob_client is None or gamma_client is None:
            raise ValueError("Live trading needs CLOB and Gamma clients")
        logger.info("Trade executor running in LIVE mode")
        return LiveTradeExecutor(clob_client, gamma_client)

    logger.warning("Platform wallet not configured or mock requested, using mock mode")
    return MockTradeExecutor()
