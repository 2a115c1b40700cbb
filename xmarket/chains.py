"""
USDC chain registry.
Mainnet and testnet chain sets with the USDC contract on each chain.
"""

from dataclasses import dataclass, replace
from typing import Optional

from .errors import UnsupportedChainError


@dataclass(frozen=True)
class ChainConfig:
    """USDC deployment on one EVM chain."""
    chain_id: int
    name: str
    usdc_address: str
    usdc_decimals: int
    rpc_url: str


# Mainnet
POLYGON_CHAIN_ID = 137

USDC_CHAINS: list[ChainConfig] = [
    ChainConfig(1, "Ethereum", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", 6,
                "https://ethereum-rpc.publicnode.com"),
    ChainConfig(137, "Polygon", "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", 6,
                "https://polygon-rpc.com"),
    ChainConfig(42161, "Arbitrum One", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", 6,
                "https://arb1.arbitrum.io/rpc"),
    ChainConfig(8453, "Base", "0x833589fCD6e073E2C0B4483a20Aca01c04a510bF", 6,
                "https://mainnet.base.org"),
    ChainConfig(10, "Optimism", "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85", 6,
                "https://mainnet.optimism.io"),
]

# Testnet (Circle testnet USDC)
POLYGON_AMOY_CHAIN_ID = 80002

USDC_CHAINS_TESTNET: list[ChainConfig] = [
    ChainConfig(11155111, "Ethereum Sepolia", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", 6,
                "https://ethereum-sepolia-rpc.publicnode.com"),
    ChainConfig(80002, "Polygon Amoy", "0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582", 6,
                "https://rpc-amoy.polygon.technology"),
    ChainConfig(421614, "Arbitrum Sepolia", "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d", 6,
                "https://sepolia-rollup.arbitrum.io/rpc"),
    ChainConfig(84532, "Base Sepolia", "0x036CbD53842c5426634e7929541eC2318f3dCF7e", 6,
                "https://sepolia.base.org"),
    ChainConfig(11155420, "Optimism Sepolia", "0x5fd84259d66Cd46123540766Be93DFE6D43130D7", 6,
                "https://sepolia.optimism.io"),
]


def get_active_chains(
    is_testnet: bool,
    rpc_overrides: Optional[dict[int, str]] = None
) -> list[ChainConfig]:
    """Return the chain set for the environment, with RPC overrides applied."""
    chains = USDC_CHAINS_TESTNET if is_testnet else USDC_CHAINS
    if not rpc_overrides:
        return list(chains)
    return [
        replace(c, rpc_url=rpc_overrides[c.chain_id]) if c.chain_id in rpc_overrides else c
        for c in chains
    ]


def get_target_chain_id(is_testnet: bool) -> int:
    """Destination chain: Polygon Amoy on testnet, Polygon on mainnet."""
    return POLYGON_AMOY_CHAIN_ID if is_testnet else POLYGON_CHAIN_ID


def find_chain(chains: list[ChainConfig], chain_id: int) -> ChainConfig:
    """Look up a chain by id, raising UnsupportedChainError if absent."""
    for chain in chains:
        if chain.chain_id == chain_id:
            return chain
    raise UnsupportedChainError(chain_id)
