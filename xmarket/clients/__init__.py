# External service clients
from .gamma_client import GammaClient, Market
from .clob_client import CLOBClient, OrderBook, OrderSide
from .evm_client import EvmClient, TransactionResult
from .lifi_client import LiFiClient
from .x_client import XClient, Mention

__all__ = [
    "GammaClient", "Market",
    "CLOBClient", "OrderBook", "OrderSide",
    "EvmClient", "TransactionResult",
    "LiFiClient",
    "XClient", "Mention",
]
