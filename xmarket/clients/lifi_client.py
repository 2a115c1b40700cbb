"""
LiFi REST client for cross-chain routing.
Fetches route candidates, per-step transaction data and transfer status.
"""

from typing import Any, Optional

import aiohttp

from ..errors import UpstreamError
from ..utils.logger import get_logger
from ..utils.retry import retryable_call

logger = get_logger("lifi")


class LiFiClient:
    """
    Async client for the LiFi routing API.

    Only raw JSON is returned here; parsing into domain objects
    happens in xmarket.bridge.
    """

    BASE_URL = "https://li.quest/v1"

    def __init__(
        self,
        base_url: Optional[str] = None,
        integrator: str = "xmarket",
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3
    ):
        self.base_url = base_url or self.BASE_URL
        self.integrator = integrator
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.max_attempts = max_attempts
        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["x-lifi-api-key"] = self.api_key
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=headers)
        logger.info("LiFi client initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        payload: Optional[dict] = None
    ) -> Any:
        if not self._session:
            await self.initialize()

        url = f"{self.base_url}{endpoint}"

        async def _call():
            async with self._session.request(method, url, params=params, json=payload) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise UpstreamError("LiFi API", response.status, text[:200])
                return await response.json()

        return await retryable_call(
            _call,
            max_attempts=self.max_attempts,
            description=f"{method} {endpoint}"
        )

    async def get_routes(
        self,
        from_chain_id: int,
        to_chain_id: int,
        from_token: str,
        to_token: str,
        from_amount_raw: int,
        from_address: str
    ) -> list[dict]:
        """
        Request route candidates, best first.

        Returns:
            Raw route objects; empty when the router found nothing
        """
        data = await self._request(
            "POST",
            "/advanced/routes",
            payload={
                "fromChainId": from_chain_id,
                "toChainId": to_chain_id,
                "fromTokenAddress": from_token,
                "toTokenAddress": to_token,
                "fromAmount": str(from_amount_raw),
                "fromAddress": from_address,
                "options": {"integrator": self.integrator}
            }
        )
        return (data or {}).get("routes") or []

    async def get_step_transaction(self, step: dict) -> dict:
        """Populate a route step with its transactionRequest."""
        return await self._request("POST", "/advanced/stepTransaction", payload=step)

    async def get_status(
        self,
        tx_hash: str,
        bridge: str,
        from_chain_id: int,
        to_chain_id: int
    ) -> dict:
        """Cross-chain status for a submitted step."""
        return await self._request(
            "GET",
            "/status",
            params={
                "txHash": tx_hash,
                "bridge": bridge,
                "fromChain": from_chain_id,
                "toChain": to_chain_id
            }
        )
