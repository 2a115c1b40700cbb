"""
Test helpers shared across modules.
"""

from xmarket.balances.resolver import ChainBalance
from xmarket.chains import USDC_CHAINS

WALLET = "0x1111111111111111111111111111111111111111"

POLYGON = 137
ARBITRUM = 42161
BASE = 8453
ETHEREUM = 1


def balance(chain_id: int, amount: float) -> ChainBalance:
    """ChainBalance for a mainnet chain id."""
    name = next(c.name for c in USDC_CHAINS if c.chain_id == chain_id)
    return ChainBalance(
        chain_id=chain_id,
        chain_name=name,
        balance=amount,
        balance_raw=int(amount * 1_000_000)
    )
