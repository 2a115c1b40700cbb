"""
Chain balance resolver.
Reads a wallet's USDC balance on each configured chain.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol

from ..chains import ChainConfig, find_chain
from ..clients.evm_client import EvmClient
from ..utils.logger import get_logger

logger = get_logger("balances")


@dataclass(frozen=True)
class ChainBalance:
    """USDC held by one address on one chain."""
    chain_id: int
    chain_name: str
    balance: float  # human units, e.g. 5.0
    balance_raw: int


class BalanceReader(Protocol):
    """Source of raw ERC-20 balances."""

    async def read_raw(self, chain: ChainConfig, address: str) -> int:
        ...


class Web3BalanceReader:
    """Reads balanceOf through public RPC endpoints."""

    def __init__(self, evm_client: EvmClient):
        self.evm_client = evm_client

    async def read_raw(self, chain: ChainConfig, address: str) -> int:
        return await self.evm_client.get_usdc_balance(chain, address)


class StaticBalanceReader:
    """
    Fixed balances keyed by chain id, in human units.

    Used for demo sessions without RPC access. Chains listed in
    `failing` raise as an unreachable RPC would.
    """

    def __init__(self, balances: dict[int, float], failing: Optional[set[int]] = None):
        self.balances = balances
        self.failing = failing or set()

    async def read_raw(self, chain: ChainConfig, address: str) -> int:
        if chain.chain_id in self.failing:
            raise ConnectionError(f"RPC unavailable for {chain.name}")
        return int(round(self.balances.get(chain.chain_id, 0.0) * 10 ** chain.usdc_decimals))


class BalanceResolver:
    """
    Resolves USDC balances for an address across chains.

    Single-chain reads raise on failure. Multi-chain scans drop the
    chains that fail and return the rest sorted by balance.
    """

    def __init__(self, reader: BalanceReader, chains: list[ChainConfig]):
        self.reader = reader
        self.chains = chains

    async def get_balance(self, address: str, chain_id: int) -> ChainBalance:
        """
        Read the balance on a single chain.

        Raises:
            ValueError: empty address
            UnsupportedChainError: chain not configured
        """
        if not address:
            raise ValueError("Wallet address is required")

        chain = find_chain(self.chains, chain_id)
        logger.debug(f"Querying {chain.name} (chain {chain.chain_id})")

        raw = await self.reader.read_raw(chain, address)
        balance = raw / 10 ** chain.usdc_decimals
        logger.info(f"{chain.name}: ${balance:.2f} USDC")

        return ChainBalance(
            chain_id=chain.chain_id,
            chain_name=chain.name,
            balance=balance,
            balance_raw=raw
        )

    async def get_balances(
        self,
        address: str,
        chains: Optional[list[ChainConfig]] = None
    ) -> list[ChainBalance]:
        """
        Read balances on every chain concurrently.

        Returns:
            Balances sorted descending; unreachable chains omitted
        """
        if not address:
            raise ValueError("Wallet address is required")

        chains = chains if chains is not None else self.chains
        logger.info(f"Scanning {len(chains)} chains for {address}")

        results = await asyncio.gather(
            *(self.get_balance(address, c.chain_id) for c in chains),
            return_exceptions=True
        )

        balances = []
        for chain, result in zip(chains, results):
            if isinstance(result, Exception):
                logger.warning(f"{chain.name} RPC failed: {result}")
                continue
            balances.append(result)

        # sorted() is stable, so ties keep configuration order
        return sorted(balances, key=lambda b: b.balance, reverse=True)
