"""
Bet flow orchestrator.
Drives one user's bet preparation: destination balance check, chain scan,
route fetch, and bridge execution on confirmation.
"""

from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from ..balances.resolver import BalanceResolver, ChainBalance
from ..balances.selector import select_source
from ..bridge.executor import BridgeExecutor
from ..bridge.planner import BridgeRoute, RoutePlanner
from ..chains import find_chain
from ..errors import InvalidTransition, RouteUnavailable
from ..trading.executor import BetRequest, BetResult, TradeExecutor
from ..utils.logger import BetLogger, get_logger

logger = get_logger("flow")

# Snapshots kept in `history`; older ones are dropped
HISTORY_LIMIT = 100


class BetFlowStatus(str, Enum):
    IDLE = "idle"
    CHECKING_DESTINATION = "checking-destination"
    SCANNING_CHAINS = "scanning-chains"
    GETTING_ROUTE = "getting-route"
    READY = "ready"
    NEEDS_BRIDGE = "needs-bridge"
    BRIDGING = "bridging"
    BRIDGE_COMPLETE = "bridge-complete"
    INSUFFICIENT = "insufficient"
    SIMULATED = "simulated"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({
    BetFlowStatus.READY,
    BetFlowStatus.INSUFFICIENT,
    BetFlowStatus.ERROR,
    BetFlowStatus.BRIDGE_COMPLETE,
    BetFlowStatus.SIMULATED,
})

# A network step is in flight
BUSY_STATUSES = frozenset({
    BetFlowStatus.CHECKING_DESTINATION,
    BetFlowStatus.SCANNING_CHAINS,
    BetFlowStatus.GETTING_ROUTE,
    BetFlowStatus.BRIDGING,
})

TRADABLE_STATUSES = frozenset({BetFlowStatus.READY, BetFlowStatus.BRIDGE_COMPLETE})


@dataclass(frozen=True)
class BetFlowResult:
    """Snapshot of a flow. Never mutated; each transition builds a new one."""
    status: BetFlowStatus
    amount_requested: float = 0.0
    destination_balance: float = 0.0
    source_chain: Optional[ChainBalance] = None
    all_balances: Optional[tuple[ChainBalance, ...]] = None
    chosen_route: Optional[BridgeRoute] = None
    error: Optional[str] = None
    total_available: Optional[float] = None
    bridge_tx_hashes: tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class _Superseded(Exception):
    """Raised internally when a reset happened while a step was awaited."""


class BetFlowOrchestrator:
    """
    State machine for one user's bet flow.

    Each public call is awaited to completion and records every state it
    passes through in `history`, which keeps the last HISTORY_LIMIT
    snapshots. A reset bumps the generation so results of calls started
    earlier are dropped instead of applied.
    """

    def __init__(
        self,
        resolver: BalanceResolver,
        planner: RoutePlanner,
        bridge_executor: BridgeExecutor,
        destination_chain_id: int,
        trade_executor: Optional[TradeExecutor] = None,
        demo_mode: bool = False,
        on_transition: Optional[Callable[[BetFlowResult], None]] = None
    ):
        self.resolver = resolver
        self.planner = planner
        self.bridge_executor = bridge_executor
        self.trade_executor = trade_executor
        self.destination_chain_id = destination_chain_id
        self.demo_mode = demo_mode
        self.on_transition = on_transition
        self.bet_logger = BetLogger()

        self.destination_name = find_chain(resolver.chains, destination_chain_id).name

        self._generation = 0
        self._result = BetFlowResult(status=BetFlowStatus.IDLE)
        self.history: deque[BetFlowResult] = deque([self._result], maxlen=HISTORY_LIMIT)

    @property
    def result(self) -> BetFlowResult:
        return self._result

    @property
    def status(self) -> BetFlowStatus:
        return self._result.status

    def _emit(self, generation: int, result: BetFlowResult) -> BetFlowResult:
        if generation != self._generation:
            raise _Superseded()

        logger.debug(f"Flow {self._result.status.value} -> {result.status.value}")
        self._result = result
        self.history.append(result)
        if self.on_transition:
            self.on_transition(result)
        return result

    def _advance(self, generation: int, status: BetFlowStatus, **changes) -> BetFlowResult:
        return self._emit(generation, replace(self._result, status=status, **changes))

    def reset(self) -> BetFlowResult:
        """Return to idle. In-flight calls finish but their results are dropped."""
        self._generation += 1
        self._result = BetFlowResult(status=BetFlowStatus.IDLE)
        self.history.append(self._result)
        if self.on_transition:
            self.on_transition(self._result)
        logger.info("Flow reset")
        return self._result

    async def prepare(self, amount: float, address: str) -> BetFlowResult:
        """
        Work out whether a bet of `amount` can be placed from `address`.

        Ends in ready/simulated, needs-bridge, insufficient or error.

        Raises:
            ValueError: non-positive amount or empty address
            InvalidTransition: a step of this flow is still running
        """
        if amount <= 0:
            raise ValueError("Amount must be positive")
        if not address:
            raise ValueError("Wallet address is required")
        if self.status in BUSY_STATUSES:
            raise InvalidTransition(f"Cannot prepare while {self.status.value}")

        self._generation += 1
        generation = self._generation
        self._result = BetFlowResult(status=BetFlowStatus.IDLE, amount_requested=amount)

        logger.info(
            "Starting bet flow",
            extra={"amount": amount, "wallet": address, "demo_mode": self.demo_mode}
        )

        try:
            return await self._prepare(generation, amount, address)
        except _Superseded:
            logger.info("Discarding result of a flow that was reset")
            return self._result

    async def _prepare(self, generation: int, amount: float, address: str) -> BetFlowResult:
        self._advance(generation, BetFlowStatus.CHECKING_DESTINATION)

        try:
            destination = await self.resolver.get_balance(address, self.destination_chain_id)
        except Exception as e:
            logger.error(f"{self.destination_name} RPC error: {e}")
            return self._advance(
                generation,
                BetFlowStatus.ERROR,
                error=f"Failed to check {self.destination_name} balance"
            )

        if generation != self._generation:
            raise _Superseded()

        if destination.balance >= amount:
            logger.info(
                f"{self.destination_name} balance ${destination.balance:.2f} >= ${amount:.2f}, no bridge needed"
            )
            status = BetFlowStatus.SIMULATED if self.demo_mode else BetFlowStatus.READY
            return self._advance(
                generation,
                status,
                destination_balance=destination.balance,
                source_chain=destination
            )

        logger.info(
            f"{self.destination_name} has ${destination.balance:.2f}, need ${amount:.2f}. Scanning all chains"
        )
        self._advance(generation, BetFlowStatus.SCANNING_CHAINS, destination_balance=destination.balance)

        try:
            balances = await self.resolver.get_balances(address)
        except Exception as e:
            logger.error(f"Chain scan error: {e}")
            return self._advance(generation, BetFlowStatus.ERROR, error="Failed to scan chains")

        if generation != self._generation:
            raise _Superseded()

        selection = select_source(balances, amount, self.destination_chain_id)
        total = sum(b.balance for b in balances)

        if not selection.needs_bridge or selection.chain is None or total < amount:
            logger.info(f"Insufficient USDC: total ${total:.2f} across chains, need ${amount:.2f}")
            return self._advance(
                generation,
                BetFlowStatus.INSUFFICIENT,
                all_balances=tuple(balances),
                total_available=total,
                error=f"Total USDC ${total:.2f} < required ${amount:.2f}"
            )

        source = selection.chain
        self._advance(
            generation,
            BetFlowStatus.GETTING_ROUTE,
            all_balances=tuple(balances),
            source_chain=source
        )

        try:
            routes = await self.planner.get_routes(
                from_chain_id=source.chain_id,
                to_chain_id=self.destination_chain_id,
                amount=amount,
                user_address=address
            )
        except RouteUnavailable as e:
            logger.info(str(e))
            return self._advance(generation, BetFlowStatus.ERROR, error=str(e))
        except Exception as e:
            logger.error(f"Route error: {e}")
            return self._advance(
                generation,
                BetFlowStatus.ERROR,
                error=f"Failed to fetch bridge routes from {source.chain_name} to {self.destination_name}"
            )

        chosen = routes[0]
        logger.info(
            f"Bridge route ready: {source.chain_name} (${source.balance:.2f} available), "
            f"{' -> '.join(chosen.steps)}, ~{chosen.estimated_minutes} min"
        )
        return self._advance(generation, BetFlowStatus.NEEDS_BRIDGE, chosen_route=chosen)

    async def confirm_bridge(self) -> BetFlowResult:
        """
        Execute the stored route after the user confirmed it.

        Raises:
            InvalidTransition: the flow is not waiting for a bridge confirmation
        """
        if self.status != BetFlowStatus.NEEDS_BRIDGE or self._result.chosen_route is None:
            raise InvalidTransition(f"Nothing to bridge (status={self.status.value})")

        generation = self._generation
        route = self._result.chosen_route
        source_name = self._result.source_chain.chain_name if self._result.source_chain else str(route.from_chain_id)

        try:
            self._advance(generation, BetFlowStatus.BRIDGING)
            logger.info(f"User confirmed bridge: {source_name} -> {self.destination_name}")

            execution = await self.bridge_executor.execute(route)

            if not execution.success:
                logger.error(f"Bridge failed: {execution.error}")
                return self._advance(
                    generation,
                    BetFlowStatus.ERROR,
                    error=execution.error or "Bridge execution failed"
                )

            self.bet_logger.bridge_completed(
                from_chain=source_name,
                to_chain=self.destination_name,
                amount=self._result.amount_requested,
                tx_hashes=execution.tx_hashes
            )
            status = BetFlowStatus.SIMULATED if self.demo_mode else BetFlowStatus.BRIDGE_COMPLETE
            return self._advance(generation, status, bridge_tx_hashes=tuple(execution.tx_hashes))

        except _Superseded:
            logger.info("Discarding bridge result of a flow that was reset")
            return self._result

    async def submit_trade(self, market_id: str, side: str) -> BetResult:
        """
        Place the prepared bet once funds sit on the destination chain.

        Raises:
            InvalidTransition: funds are not ready or no trade executor is set
        """
        if self.status not in TRADABLE_STATUSES:
            raise InvalidTransition(f"Cannot trade while {self.status.value}")
        if self.trade_executor is None:
            raise InvalidTransition("No trade executor configured")

        request = BetRequest(market_id=market_id, side=side, amount=self._result.amount_requested)
        return await self.trade_executor.place_bet(request)
