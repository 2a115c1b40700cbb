"""
Tests for configuration loading and bot start-up.
"""

import pytest
from unittest.mock import AsyncMock

from xmarket.chains import POLYGON_AMOY_CHAIN_ID, POLYGON_CHAIN_ID
from xmarket.clients.x_client import Mention
from xmarket.config import BOT_REQUIRED_ENV, load_config
from xmarket.errors import ConfigError
from xmarket.main import MENTION_CURSOR_KEY, XmarketBot, validate_environment

OPTIONAL_ENV = [
    "PLATFORM_WALLET_PRIVATE_KEY",
    "TRADING_MODE",
    "DEMO_MODE",
    "XMARKET_TESTNET",
    "OPENAI_API_KEY",
    "RPC_URL_137",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in BOT_REQUIRED_ENV + OPTIONAL_ENV:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def bot_env(clean_env, tmp_path):
    clean_env.setenv("X_BEARER_TOKEN", "token")
    clean_env.setenv("X_BOT_USER_ID", "42")
    clean_env.setenv("DATABASE_PATH", str(tmp_path / "bot.db"))
    return clean_env


class TestLoadConfig:

    def test_all_missing_reported_together(self, clean_env):
        with pytest.raises(ConfigError) as exc:
            load_config(required=BOT_REQUIRED_ENV)

        assert exc.value.missing == BOT_REQUIRED_ENV
        for key in BOT_REQUIRED_ENV:
            assert key in str(exc.value)

    def test_mock_mode_without_platform_key(self, bot_env):
        config = load_config(required=BOT_REQUIRED_ENV)

        assert config.trading.trading_mode == "mock"
        assert config.wallet.configured is False
        assert config.destination_chain_id == POLYGON_CHAIN_ID

    def test_testnet_and_rpc_override(self, bot_env):
        bot_env.setenv("XMARKET_TESTNET", "true")
        bot_env.setenv("RPC_URL_80002", "https://amoy.example")

        config = load_config()

        assert config.destination_chain_id == POLYGON_AMOY_CHAIN_ID
        amoy = [c for c in config.chains if c.chain_id == POLYGON_AMOY_CHAIN_ID][0]
        assert amoy.rpc_url == "https://amoy.example"

    def test_demo_mode_flag(self, bot_env):
        bot_env.setenv("DEMO_MODE", "1")

        assert load_config().trading.demo_mode is True

    def test_validate_environment_exits(self, clean_env, capsys):
        with pytest.raises(SystemExit) as exc:
            validate_environment()

        assert exc.value.code == 1
        assert "X_BEARER_TOKEN" in capsys.readouterr().err


class TestBotRun:

    @pytest.mark.asyncio
    async def test_mentions_advance_cursor(self, bot_env):
        bot = XmarketBot(validate_environment())
        bot.db.init_db()
        bot.x_client = AsyncMock()
        bot.x_client.fetch_mentions.return_value = (
            [Mention(id="101", text="@xmarket balance", author_id="x-1"),
             Mention(id="102", text="@xmarket positions", author_id="x-1")],
            "102"
        )
        bot.handler.handle = AsyncMock(return_value="ok")

        handled = await bot.process_mentions()

        assert handled == 2
        assert bot.handler.handle.call_count == 2
        assert bot.db.get_state(MENTION_CURSOR_KEY) == "102"
        bot.x_client.fetch_mentions.assert_called_once_with(None)

    @pytest.mark.asyncio
    async def test_cursor_passed_to_next_fetch(self, bot_env):
        bot = XmarketBot(validate_environment())
        bot.db.init_db()
        bot.db.set_state(MENTION_CURSOR_KEY, "99")
        bot.x_client = AsyncMock()
        bot.x_client.fetch_mentions.return_value = ([], None)

        assert await bot.process_mentions() == 0
        bot.x_client.fetch_mentions.assert_called_once_with("99")

    @pytest.mark.asyncio
    async def test_no_wallet_skips_reconciliation(self, bot_env):
        bot = XmarketBot(validate_environment())

        assert bot.wallet_service is None
        await bot.reconcile_wallet()
