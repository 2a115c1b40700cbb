# Cross-chain bridging
from .planner import BridgeRoute, RoutePlanner, ROUTE_AMOUNT_BUFFER
from .executor import (
    BridgeExecution,
    BridgeExecutor,
    LiFiBridgeExecutor,
    SimulatedBridgeExecutor,
)

__all__ = [
    "BridgeRoute",
    "RoutePlanner",
    "ROUTE_AMOUNT_BUFFER",
    "BridgeExecution",
    "BridgeExecutor",
    "LiFiBridgeExecutor",
    "SimulatedBridgeExecutor",
]
