"""
Shared fixtures.
"""

import pytest

from xmarket.bridge.planner import BridgeRoute
from xmarket.chains import USDC_CHAINS
from xmarket.database import Database

from helpers import ARBITRUM, POLYGON, WALLET


@pytest.fixture
def chains():
    return list(USDC_CHAINS)


@pytest.fixture
def sample_route():
    """A one-step Arbitrum -> Polygon route."""
    return BridgeRoute(
        steps=("lifi",),
        estimated_seconds=150,
        estimated_gas_cost_usd=0.42,
        from_chain_id=ARBITRUM,
        to_chain_id=POLYGON,
        from_amount_raw=10_100_000,
        from_address=WALLET,
        raw_route={"id": "route-1", "steps": [{"id": "step-1", "type": "lifi"}]}
    )


@pytest.fixture
def db(tmp_path):
    """Fresh database file per test."""
    database = Database(tmp_path / "xmarket.db")
    database.init_db()
    return database


@pytest.fixture
def user(db):
    """Registered user with $100 and a linked wallet."""
    return db.create_user(
        x_user_id="x-100",
        x_username="alice",
        wallet_address="0xAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAa",
        balance_usdc=100.0
    )
