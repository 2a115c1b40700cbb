"""
CLOB client wrapper for Polymarket order operations.
Wraps py-clob-client with async support and error handling.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from py_clob_client.client import ClobClient
from py_clob_client.clob_types import ApiCreds, MarketOrderArgs, OrderType
from py_clob_client.order_builder.constants import BUY, SELL

from ..utils.logger import get_logger
from ..utils.retry import retryable_call

logger = get_logger("clob")


class OrderSide(Enum):
    """Order side enum."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class OrderBookLevel:
    """Single level in the order book."""
    price: float
    size: float


@dataclass
class OrderBook:
    """Order book snapshot for one outcome token."""
    token_id: str
    bids: list[OrderBookLevel] = field(default_factory=list)
    asks: list[OrderBookLevel] = field(default_factory=list)
    timestamp: float = 0.0

    @property
    def best_bid(self) -> Optional[float]:
        """Get best bid price."""
        if self.bids:
            return max(level.price for level in self.bids)
        return None

    @property
    def best_ask(self) -> Optional[float]:
        """Get best ask price."""
        if self.asks:
            return min(level.price for level in self.asks)
        return None


@dataclass
class OrderResult:
    """Result of an order placement."""
    order_id: str
    success: bool
    status: str
    error: Optional[str] = None
    timestamp: float = 0.0


class CLOBClient:
    """
    Async wrapper for Polymarket CLOB client.

    Handles order book reads and market order placement.
    Uses the official py-clob-client under the hood.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        api_passphrase: str,
        private_key: str,
        host: str = "https://clob.polymarket.com",
        chain_id: int = 137,  # Polygon Mainnet
        max_attempts: int = 3
    ):
        """
        Initialize CLOB client.

        Args:
            api_key: Polymarket API key
            api_secret: Polymarket API secret
            api_passphrase: Polymarket API passphrase
            private_key: Platform wallet private key
            host: CLOB API root
            chain_id: Blockchain chain ID (137 for Polygon)
            max_attempts: Attempts for transient read failures
        """
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_passphrase = api_passphrase
        self.private_key = private_key
        self.host = host
        self.chain_id = chain_id
        self.max_attempts = max_attempts

        self._client: Optional[ClobClient] = None

    async def initialize(self) -> None:
        """Initialize the CLOB client."""
        logger.info("Initializing CLOB client")

        # Create client in executor since it may do blocking I/O
        loop = asyncio.get_event_loop()
        self._client = await loop.run_in_executor(
            None,
            self._create_client
        )

        logger.info("CLOB client initialized successfully")

    def _create_client(self) -> ClobClient:
        """Create the underlying py-clob-client instance."""
        creds = None
        if self.api_key:
            creds = ApiCreds(
                api_key=self.api_key,
                api_secret=self.api_secret,
                api_passphrase=self.api_passphrase
            )
        return ClobClient(
            host=self.host,
            key=self.private_key,
            chain_id=self.chain_id,
            creds=creds
        )

    async def get_order_book(self, token_id: str) -> OrderBook:
        """
        Read the current order book for a token.

        Args:
            token_id: Outcome token id

        Returns:
            OrderBook snapshot
        """
        if not self._client:
            await self.initialize()

        loop = asyncio.get_event_loop()
        summary = await retryable_call(
            lambda: loop.run_in_executor(None, lambda: self._client.get_order_book(token_id)),
            max_attempts=self.max_attempts,
            description="GET /book"
        )

        return OrderBook(
            token_id=token_id,
            bids=[OrderBookLevel(float(o.price), float(o.size)) for o in (summary.bids or [])],
            asks=[OrderBookLevel(float(o.price), float(o.size)) for o in (summary.asks or [])],
            timestamp=time.time()
        )

    async def place_market_order(
        self,
        token_id: str,
        side: OrderSide,
        amount: float
    ) -> OrderResult:
        """
        Submit a fill-or-kill market order.

        Args:
            token_id: Token ID (asset ID) to trade
            side: BUY or SELL
            amount: USDC to spend (BUY) or shares to sell (SELL)

        Returns:
            OrderResult with order ID and status
        """
        if not self._client:
            await self.initialize()

        logger.debug(f"Placing market order: {side.value} {amount} for {token_id}")

        loop = asyncio.get_event_loop()

        order_args = MarketOrderArgs(
            token_id=token_id,
            amount=amount,
            side=BUY if side == OrderSide.BUY else SELL
        )

        signed_order = await loop.run_in_executor(
            None,
            lambda: self._client.create_market_order(order_args)
        )

        # Order submission is not retried: a timeout here may still have filled
        result = await loop.run_in_executor(
            None,
            lambda: self._client.post_order(signed_order, OrderType.FOK)
        )

        order_id = result.get("orderID", "")
        if not result.get("success", bool(order_id)):
            error = result.get("errorMsg") or "Order rejected"
            logger.warning(f"Order rejected: {error}", extra={"token_id": token_id})
            return OrderResult(
                order_id=order_id,
                success=False,
                status="FAILED",
                error=error,
                timestamp=time.time()
            )

        logger.info(
            "Order placed successfully",
            extra={
                "order_id": order_id,
                "token_id": token_id,
                "side": side.value,
                "amount": amount
            }
        )

        return OrderResult(
            order_id=order_id,
            success=True,
            status=result.get("status", "MATCHED"),
            timestamp=time.time()
        )
