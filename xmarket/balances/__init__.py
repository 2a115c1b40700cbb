# Balance resolution and source-chain selection
from .resolver import (
    ChainBalance,
    BalanceResolver,
    Web3BalanceReader,
    StaticBalanceReader,
)
from .selector import SourceSelection, select_source

__all__ = [
    "ChainBalance",
    "BalanceResolver",
    "Web3BalanceReader",
    "StaticBalanceReader",
    "SourceSelection",
    "select_source",
]
