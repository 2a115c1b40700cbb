"""
User-facing text for bet flow states.
"""

from typing import Callable

from .orchestrator import BetFlowResult, BetFlowStatus


def _ready(r: BetFlowResult) -> str:
    return f"Ready to place bet. Your balance (${r.destination_balance:.2f}) is sufficient."


def _simulated(r: BetFlowResult) -> str:
    return (
        f"Transaction simulated successfully. Amount: ${r.amount_requested:.2f}, "
        f"balance: ${r.destination_balance:.2f}. Balance checks were real, only execution was simulated."
    )


def _needs_bridge(r: BetFlowResult) -> str:
    source = r.source_chain
    route = r.chosen_route
    if source is None or route is None:
        return "Bridge required."
    gas = f"${route.estimated_gas_cost_usd:.2f}" if route.estimated_gas_cost_usd is not None else "unknown"
    return (
        f"Bridge required from {source.chain_name} (${source.balance:.2f} available). "
        f"Route: {' -> '.join(route.steps)}. Est. time: ~{route.estimated_minutes} min. Est. gas: {gas}."
    )


def _insufficient(r: BetFlowResult) -> str:
    total = r.total_available or 0.0
    return (
        f"Insufficient USDC. You need ${r.amount_requested:.2f} but have "
        f"${total:.2f} across all chains."
    )


def _error(r: BetFlowResult) -> str:
    return f"Error: {r.error or 'Unknown error'}"


MESSAGES: dict[BetFlowStatus, Callable[[BetFlowResult], str]] = {
    BetFlowStatus.IDLE: lambda r: "Enter an amount to place a bet.",
    BetFlowStatus.CHECKING_DESTINATION: lambda r: "Checking your balance...",
    BetFlowStatus.SCANNING_CHAINS: lambda r: "Scanning other chains for USDC...",
    BetFlowStatus.GETTING_ROUTE: lambda r: "Finding a bridge route...",
    BetFlowStatus.READY: _ready,
    BetFlowStatus.NEEDS_BRIDGE: _needs_bridge,
    BetFlowStatus.BRIDGING: lambda r: "Executing bridge...",
    BetFlowStatus.BRIDGE_COMPLETE: lambda r: "Bridge complete. USDC arrived, ready to place bet.",
    BetFlowStatus.INSUFFICIENT: _insufficient,
    BetFlowStatus.SIMULATED: _simulated,
    BetFlowStatus.ERROR: _error,
}

_unhandled = set(BetFlowStatus) - set(MESSAGES)
if _unhandled:
    raise RuntimeError(f"No message for flow statuses: {sorted(s.value for s in _unhandled)}")


def describe(result: BetFlowResult) -> str:
    """Text a UI shows for the current flow state."""
    return MESSAGES[result.status](result)
