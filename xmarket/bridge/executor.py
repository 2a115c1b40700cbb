"""
Bridge execution strategies.
Moves USDC along a planned route, or pretends to in demo mode.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..clients.evm_client import EvmClient
from ..clients.lifi_client import LiFiClient
from ..errors import UpstreamError
from ..utils.logger import get_logger
from .planner import BridgeRoute

logger = get_logger("bridge.executor")

NATIVE_TOKEN = "0x0000000000000000000000000000000000000000"


@dataclass
class BridgeExecution:
    """Outcome of executing a route."""
    success: bool
    tx_hashes: list[str] = field(default_factory=list)
    error: Optional[str] = None
    simulated: bool = False


class BridgeExecutor(Protocol):
    """Executes a route chosen by the planner."""

    async def execute(self, route: BridgeRoute) -> BridgeExecution:
        ...


class SimulatedBridgeExecutor:
    """Demo-mode executor: nothing is signed or sent."""

    def __init__(self, delay_seconds: float = 0.0):
        self.delay_seconds = delay_seconds

    async def execute(self, route: BridgeRoute) -> BridgeExecution:
        logger.info(f"Simulating bridge: {' -> '.join(route.steps)}")
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        return BridgeExecution(success=True, simulated=True)


class LiFiBridgeExecutor:
    """
    Executes LiFi routes step by step with a local signing key.
    Only routes whose sender is the signing wallet are executed.

    For each step: fetch the transaction, approve the spender if the
    allowance is short, submit, then poll LiFi until the transfer is DONE.
    """

    def __init__(
        self,
        lifi_client: LiFiClient,
        evm_client: EvmClient,
        poll_interval_seconds: float = 10.0,
        timeout_seconds: float = 1800.0
    ):
        self.lifi_client = lifi_client
        self.evm_client = evm_client
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds

    async def execute(self, route: BridgeRoute) -> BridgeExecution:
        signer = self.evm_client.address or ""
        if not signer or route.from_address.lower() != signer.lower():
            logger.warning(f"Refusing to sign route from {route.from_address or 'unknown sender'}")
            return BridgeExecution(
                success=False,
                error=f"Route sender {route.from_address or 'unknown'} is not the signing wallet"
            )

        steps = route.raw_route.get("steps") or []
        logger.info(
            f"Executing bridge: {' -> '.join(route.steps)} "
            f"({route.from_chain_id} -> {route.to_chain_id})"
        )

        tx_hashes: list[str] = []
        try:
            for step in steps:
                tx_hash = await self._execute_step(step)
                tx_hashes.append(tx_hash)
        except Exception as e:
            logger.error(f"Bridge execution failed: {e}")
            return BridgeExecution(success=False, tx_hashes=tx_hashes, error=str(e))

        logger.info("Bridge completed successfully")
        return BridgeExecution(success=True, tx_hashes=tx_hashes)

    async def _execute_step(self, step: dict) -> str:
        prepared = await self.lifi_client.get_step_transaction(step)
        action = prepared.get("action") or {}
        estimate = prepared.get("estimate") or {}
        tx_request = prepared.get("transactionRequest")
        if not tx_request:
            raise RuntimeError(f"Router returned no transaction for step {step.get('id')}")

        chain_id = int(action["fromChainId"])
        token = (action.get("fromToken") or {}).get("address", NATIVE_TOKEN)
        amount_raw = int(action.get("fromAmount") or 0)
        spender = estimate.get("approvalAddress")

        if spender and token.lower() != NATIVE_TOKEN:
            await self._ensure_allowance(chain_id, token, spender, amount_raw)

        result = await self.evm_client.send_transaction(chain_id, tx_request)
        if not result.success:
            raise RuntimeError(f"Step transaction {result.tx_hash} failed: {result.error}")

        await self._wait_for_completion(
            tx_hash=result.tx_hash,
            tool=prepared.get("tool", ""),
            from_chain_id=chain_id,
            to_chain_id=int(action.get("toChainId", chain_id))
        )
        return result.tx_hash

    async def _ensure_allowance(self, chain_id: int, token: str, spender: str, amount_raw: int) -> None:
        owner = self.evm_client.address
        allowance = await self.evm_client.get_allowance(chain_id, token, owner, spender)
        if allowance >= amount_raw:
            return

        logger.info(f"Approving {amount_raw} of {token} for {spender}")
        result = await self.evm_client.approve(chain_id, token, spender, amount_raw)
        if not result.success:
            raise RuntimeError(f"Approval {result.tx_hash} failed: {result.error}")

    async def _wait_for_completion(
        self,
        tx_hash: str,
        tool: str,
        from_chain_id: int,
        to_chain_id: int
    ) -> None:
        deadline = time.monotonic() + self.timeout_seconds

        while True:
            try:
                status = await self.lifi_client.get_status(tx_hash, tool, from_chain_id, to_chain_id)
            except UpstreamError as e:
                # The status API answers 404 until it indexes the transaction
                if e.status != 404:
                    raise
                status = {"status": "NOT_FOUND"}

            state = status.get("status")
            if state == "DONE":
                return
            if state == "FAILED":
                raise RuntimeError(f"Bridge transfer failed: {status.get('substatusMessage') or status.get('substatus')}")

            if time.monotonic() >= deadline:
                raise TimeoutError(f"Bridge transfer {tx_hash} not completed in {self.timeout_seconds:.0f}s")

            await asyncio.sleep(self.poll_interval_seconds)
