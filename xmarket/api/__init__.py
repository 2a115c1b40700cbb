# Bet-flow HTTP API
from .server import FlowRegistry, create_app, serialize_result

__all__ = ["FlowRegistry", "create_app", "serialize_result"]
