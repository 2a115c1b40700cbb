"""
Gamma API client for Polymarket market metadata.
Fetches active markets and single markets with their outcome tokens.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import aiohttp

from ..errors import UpstreamError
from ..utils.logger import get_logger
from ..utils.retry import retryable_call

logger = get_logger("gamma")


@dataclass
class Market:
    """Market information."""
    id: str
    question: str
    outcomes: list[str] = field(default_factory=list)
    outcome_prices: list[float] = field(default_factory=list)
    token_ids: list[str] = field(default_factory=list)
    description: Optional[str] = None
    volume: float = 0.0
    liquidity: float = 0.0
    active: bool = True
    end_date: Optional[datetime] = None

    @property
    def is_binary(self) -> bool:
        """Check if this is a binary (YES/NO) market."""
        return len(self.outcomes) == 2

    @property
    def yes_price(self) -> float:
        return self.outcome_prices[0] if self.outcome_prices else 0.5

    @property
    def no_price(self) -> float:
        return self.outcome_prices[1] if len(self.outcome_prices) > 1 else 0.5

    def token_for_side(self, side: str) -> Optional[str]:
        """CLOB token id for "yes" or "no"."""
        for i, outcome in enumerate(self.outcomes):
            if outcome.lower() == side.lower() and i < len(self.token_ids):
                return self.token_ids[i]
        index = 0 if side.lower() == "yes" else 1
        return self.token_ids[index] if index < len(self.token_ids) else None


def _parse_list(raw: Any) -> list:
    """Gamma encodes list fields either as JSON strings or real lists."""
    if isinstance(raw, list):
        return raw
    if not raw:
        return []
    if isinstance(raw, str) and raw.startswith("["):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            pass
    return [part.strip() for part in str(raw).split(",")]


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class GammaClient:
    """
    Client for Polymarket Gamma API.

    The Gamma API provides market metadata without
    requiring authentication.
    """

    BASE_URL = "https://gamma-api.polymarket.com"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3
    ):
        """
        Initialize Gamma client.

        Args:
            base_url: Override for the API root
            timeout_seconds: Total timeout per request
            max_attempts: Attempts for transient failures
        """
        self.base_url = base_url or self.BASE_URL
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.max_attempts = max_attempts
        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Accept": "application/json"}
            )
        logger.info("Gamma client initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _request(self, endpoint: str, params: Optional[dict] = None) -> Any:
        """Make HTTP request to Gamma API."""
        if not self._session:
            await self.initialize()

        url = f"{self.base_url}{endpoint}"

        async def _get():
            async with self._session.get(url, params=params) as response:
                if response.status >= 400:
                    raise UpstreamError("Gamma API", response.status, response.reason or "")
                return await response.json()

        return await retryable_call(
            _get,
            max_attempts=self.max_attempts,
            description=f"GET {endpoint}"
        )

    async def fetch_active_markets(self, limit: int = 100) -> list[Market]:
        """
        Fetch the most traded active markets.

        Args:
            limit: Number of markets to request

        Returns:
            Markets ordered by volume
        """
        data = await self._request(
            "/markets",
            params={
                "active": "true",
                "closed": "false",
                "limit": limit,
                "order": "volume",
                "ascending": "false"
            }
        )

        # Handle both array and {"data": [...]} responses
        items = data if isinstance(data, list) else (data or {}).get("data", [])
        markets = [self._parse_market(item) for item in items]

        logger.info(f"Fetched {len(markets)} active markets")
        return markets

    async def get_market(self, market_id: str) -> Optional[Market]:
        """
        Get a specific market by condition id or Gamma id.

        Returns:
            Market or None if not found
        """
        try:
            if market_id.startswith("0x"):
                data = await self._request("/markets", params={"condition_ids": market_id})
                data = data[0] if data else None
            else:
                data = await self._request(f"/markets/{market_id}")
        except UpstreamError as e:
            if e.status == 404:
                return None
            raise

        if not data:
            return None
        return self._parse_market(data)

    def _parse_market(self, data: dict) -> Market:
        """Parse market from API response."""
        outcomes = [str(o).strip() for o in _parse_list(data.get("outcomes"))]
        prices = [_to_float(p, 0.5) for p in _parse_list(data.get("outcomePrices"))]
        token_ids = [str(t).strip() for t in _parse_list(data.get("clobTokenIds")) if str(t).strip()]

        # Older payloads carry a tokens array instead
        tokens = data.get("tokens") or []
        if not outcomes and tokens:
            outcomes = [t.get("outcome", "") for t in tokens]
        if not prices and tokens:
            prices = [_to_float(t.get("price"), 0.5) for t in tokens]
        if not token_ids and tokens:
            token_ids = [str(t.get("token_id", "")) for t in tokens]

        if not outcomes:
            outcomes = ["Yes", "No"]
        if not prices:
            prices = [0.5, 0.5]

        end_date = None
        end_date_str = data.get("endDate") or data.get("end_date_iso") or data.get("endDateIso")
        if end_date_str:
            try:
                end_date = datetime.fromisoformat(end_date_str.replace("Z", "+00:00"))
            except (ValueError, TypeError):
                pass

        return Market(
            id=str(data.get("conditionId") or data.get("condition_id") or data.get("id", "")),
            question=data.get("question") or data.get("title", ""),
            description=data.get("description"),
            outcomes=outcomes,
            outcome_prices=prices,
            token_ids=token_ids,
            volume=_to_float(data.get("volume")),
            liquidity=_to_float(data.get("liquidity")),
            active=data.get("active", True) is not False and not data.get("closed", False),
            end_date=end_date
        )
