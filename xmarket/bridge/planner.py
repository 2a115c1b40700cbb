"""
Bridge route planning.
Asks the LiFi router for USDC routes from a source chain to the destination chain.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from ..chains import ChainConfig, find_chain
from ..clients.lifi_client import LiFiClient
from ..errors import RouteUnavailable
from ..utils.logger import get_logger

logger = get_logger("bridge.planner")

# Extra amount requested so the destination still receives the bet after fees
ROUTE_AMOUNT_BUFFER = Decimal("0.01")


@dataclass(frozen=True)
class BridgeRoute:
    """One route candidate returned by the router."""
    steps: tuple[str, ...]
    estimated_seconds: int
    estimated_gas_cost_usd: Optional[float]
    from_chain_id: int
    to_chain_id: int
    from_amount_raw: int
    from_address: str = ""
    raw_route: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def estimated_minutes(self) -> int:
        return -(-self.estimated_seconds // 60)


def buffered_amount_raw(amount: float, decimals: int) -> int:
    """Amount plus the routing buffer, in token base units."""
    scaled = Decimal(str(amount)) * (1 + ROUTE_AMOUNT_BUFFER)
    return int((scaled * (10 ** decimals)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _parse_gas_cost(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_route(
    raw: dict,
    from_chain_id: int,
    to_chain_id: int,
    from_amount_raw: int,
    from_address: str = ""
) -> BridgeRoute:
    """Turn a raw LiFi route into a BridgeRoute."""
    steps = raw.get("steps") or []
    total_seconds = sum(
        int((step.get("estimate") or {}).get("executionDuration") or 0)
        for step in steps
    )
    return BridgeRoute(
        steps=tuple(step.get("type", "unknown") for step in steps),
        estimated_seconds=total_seconds,
        estimated_gas_cost_usd=_parse_gas_cost(raw.get("gasCostUSD")),
        from_chain_id=from_chain_id,
        to_chain_id=to_chain_id,
        from_amount_raw=int(raw.get("fromAmount") or from_amount_raw),
        from_address=raw.get("fromAddress") or from_address,
        raw_route=raw
    )


class RoutePlanner:
    """Fetches and ranks bridge routes for USDC."""

    def __init__(self, lifi_client: LiFiClient, chains: list[ChainConfig]):
        self.lifi_client = lifi_client
        self.chains = chains

    async def get_routes(
        self,
        from_chain_id: int,
        to_chain_id: int,
        amount: float,
        user_address: str
    ) -> list[BridgeRoute]:
        """
        Get route candidates, best first.

        Args:
            from_chain_id: Source chain
            to_chain_id: Destination chain
            amount: USDC the destination should receive
            user_address: Wallet moving the funds

        Raises:
            RouteUnavailable: the router returned no routes
        """
        source = find_chain(self.chains, from_chain_id)
        destination = find_chain(self.chains, to_chain_id)

        amount_raw = buffered_amount_raw(amount, source.usdc_decimals)
        logger.info(f"Getting routes: {source.name} -> {destination.name} for ${amount:.2f} USDC")

        raw_routes = await self.lifi_client.get_routes(
            from_chain_id=source.chain_id,
            to_chain_id=destination.chain_id,
            from_token=source.usdc_address,
            to_token=destination.usdc_address,
            from_amount_raw=amount_raw,
            from_address=user_address
        )

        if not raw_routes:
            logger.info(f"No routes found from {source.name} to {destination.name}")
            raise RouteUnavailable(source.name, destination.name)

        routes = [
            parse_route(raw, source.chain_id, destination.chain_id, amount_raw, user_address)
            for raw in raw_routes
        ]

        for i, route in enumerate(routes, start=1):
            logger.debug(
                f"Route {i}: {' -> '.join(route.steps)} | ~{route.estimated_minutes} min"
                f" | gas ${route.estimated_gas_cost_usd}"
            )

        return routes
