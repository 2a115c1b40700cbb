"""
Source-chain selection for a bet of a given size.
"""

from dataclasses import dataclass
from typing import Optional

from ..utils.logger import get_logger
from .resolver import ChainBalance

logger = get_logger("selector")


@dataclass(frozen=True)
class SourceSelection:
    chain: Optional[ChainBalance]
    needs_bridge: bool


def select_source(
    balances: list[ChainBalance],
    required_amount: float,
    destination_chain_id: int
) -> SourceSelection:
    """
    Pick where the bet money comes from.

    1. The destination chain, when it already holds enough.
    2. Otherwise the highest non-zero balance elsewhere, flagged for bridging,
       whether or not it covers the amount. Callers detect the shortfall.
    3. Otherwise nothing.
    """
    destination = next((b for b in balances if b.chain_id == destination_chain_id), None)

    if destination is not None and destination.balance >= required_amount:
        return SourceSelection(chain=destination, needs_bridge=False)

    candidates = [
        b for b in balances
        if b.chain_id != destination_chain_id and b.balance > 0
    ]
    if candidates:
        best = max(candidates, key=lambda b: b.balance)
        if best.balance < required_amount:
            logger.info(
                f"{best.chain_name} balance ${best.balance:.2f} < required ${required_amount:.2f}"
            )
        return SourceSelection(chain=best, needs_bridge=True)

    return SourceSelection(chain=None, needs_bridge=False)
