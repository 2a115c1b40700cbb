"""
Tests for mention parsing and command handling.
"""

import pytest
from unittest.mock import AsyncMock

from xmarket.bot import CommandHandler, CommandType, parse_command
from xmarket.bot.handler import GENERIC_ERROR, NO_RECENT_MARKETS, NOT_REGISTERED, UNKNOWN_COMMAND
from xmarket.clients.gamma_client import GammaClient, Market
from xmarket.clients.x_client import Mention, XClient
from xmarket.database import BET_FILLED
from xmarket.markets.matcher import MarketMatch, MarketMatcher
from xmarket.trading import BetService, MockTradeExecutor

MARKET_ID = "0xabc12345deadbeef"


def rain_market(market_id=MARKET_ID, volume=250_000):
    return Market(
        id=market_id,
        question="Will it rain in London tomorrow?",
        outcomes=["Yes", "No"],
        outcome_prices=[0.4, 0.6],
        token_ids=["token-yes", "token-no"],
        volume=volume
    )


def mention(text, author_id="x-100"):
    return Mention(id="post-1", text=text, author_id=author_id, author_username="alice")


class TestParseCommand:
    """Tests for parse_command."""

    def test_find(self):
        cmd = parse_command("@xmarket find Bitcoin 100k")

        assert cmd.type == CommandType.FIND
        assert cmd.query == "Bitcoin 100k"

    def test_bet_with_usdc_and_market(self):
        cmd = parse_command("@xmarket bet 12.5 USDC NO #abc123")

        assert cmd.type == CommandType.BET
        assert cmd.amount == 12.5
        assert cmd.side == "no"
        assert cmd.market_id == "abc123"

    def test_bet_without_market(self):
        cmd = parse_command("@xmarket Bet 5 yes")

        assert cmd.type == CommandType.BET
        assert cmd.amount == 5
        assert cmd.side == "yes"
        assert cmd.market_id is None

    @pytest.mark.parametrize("text,expected", [
        ("@xmarket balance", CommandType.BALANCE),
        ("@xmarket what's my BALANCE?", CommandType.BALANCE),
        ("@xmarket positions", CommandType.POSITIONS),
        ("@xmarket hello there", CommandType.UNKNOWN),
        ("@xmarket bet lots on yes", CommandType.UNKNOWN),
        ("@xmarket", CommandType.UNKNOWN),
    ])
    def test_command_types(self, text, expected):
        assert parse_command(text).type == expected


@pytest.fixture
def mock_matcher():
    matcher = AsyncMock(spec=MarketMatcher)
    matcher.find_markets.return_value = [
        MarketMatch(market=rain_market(), relevance_score=15.0),
        MarketMatch(market=rain_market("0xfff00000aaaa", volume=0), relevance_score=3.0),
    ]
    return matcher


@pytest.fixture
def mock_gamma_client():
    client = AsyncMock(spec=GammaClient)
    client.get_market.return_value = None
    return client


@pytest.fixture
def mock_x_client():
    return AsyncMock(spec=XClient)


@pytest.fixture
def handler(db, mock_matcher, mock_gamma_client, mock_x_client):
    return CommandHandler(
        db=db,
        matcher=mock_matcher,
        bet_service=BetService(db, MockTradeExecutor(delay_seconds=0)),
        gamma_client=mock_gamma_client,
        x_client=mock_x_client
    )


class TestCommandHandler:
    """Tests for CommandHandler replies."""

    @pytest.mark.asyncio
    async def test_unknown_command_gets_help(self, handler, mock_x_client):
        reply = await handler.handle(mention("@xmarket gm", author_id="x-nobody"))

        assert reply == UNKNOWN_COMMAND
        mock_x_client.reply.assert_called_once_with("post-1", UNKNOWN_COMMAND)

    @pytest.mark.asyncio
    async def test_unregistered_user(self, handler):
        reply = await handler.handle(mention("@xmarket balance", author_id="x-nobody"))

        assert reply == NOT_REGISTERED

    @pytest.mark.asyncio
    async def test_bet_without_search_context(self, handler, db, user):
        reply = await handler.handle(mention("@xmarket bet 5 yes"))

        assert reply == NO_RECENT_MARKETS
        assert db.get_bets_by_status(user.id, "pending") == []
        assert db.get_bets_by_status(user.id, "failed") == []
        assert db.get_user(user.id).balance_usdc == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_find_stores_context(self, handler, db, user):
        reply = await handler.handle(mention("@xmarket find rain London"))

        assert "Will it rain in London tomorrow?" in reply
        assert "#0xabc123" in reply
        assert "Found 2 markets" in reply
        context = db.get_user_context(user.x_user_id)
        assert [c["id"] for c in context] == [MARKET_ID, "0xfff00000aaaa"]
        assert context[0]["yes_price"] == 0.4

    @pytest.mark.asyncio
    async def test_find_no_results(self, handler, mock_matcher, user):
        mock_matcher.find_markets.return_value = []

        reply = await handler.handle(mention("@xmarket find nothing"))

        assert reply.startswith("❌ No markets found")

    @pytest.mark.asyncio
    async def test_find_then_bet(self, handler, db, user):
        await handler.handle(mention("@xmarket find rain London"))

        reply = await handler.handle(mention("@xmarket bet 9 yes"))

        assert reply.startswith("✅ Bet placed!")
        assert "@ $0.45" in reply
        assert "Balance: $91.00" in reply
        bets = db.get_bets_by_status(user.id, BET_FILLED)
        assert len(bets) == 1
        assert bets[0].market_id == MARKET_ID
        assert bets[0].tweet_id == "post-1"

    @pytest.mark.asyncio
    async def test_bet_by_short_id_from_context(self, handler, db, user):
        await handler.handle(mention("@xmarket find rain London"))

        await handler.handle(mention("@xmarket bet 5 no #0xfff000"))

        bet = db.get_bets_by_status(user.id, BET_FILLED)[0]
        assert bet.market_id == "0xfff00000aaaa"
        assert bet.side == "no"

    @pytest.mark.asyncio
    async def test_bet_by_id_looked_up(self, handler, db, user, mock_gamma_client):
        mock_gamma_client.get_market.return_value = rain_market("0x999")

        reply = await handler.handle(mention("@xmarket bet 5 yes #0x999"))

        assert reply.startswith("✅")
        mock_gamma_client.get_market.assert_called_once_with("0x999")

    @pytest.mark.asyncio
    async def test_unknown_market_id(self, handler, user):
        reply = await handler.handle(mention("@xmarket bet 5 yes #nope"))

        assert "Market #nope not found" in reply

    @pytest.mark.asyncio
    async def test_amount_limits(self, handler, user):
        reply = await handler.handle(mention("@xmarket bet 0.5 yes"))

        assert reply == "❌ Minimum bet is $1.00"

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, handler, db, user):
        await handler.handle(mention("@xmarket find rain London"))

        reply = await handler.handle(mention("@xmarket bet 500 yes"))

        assert reply.startswith("❌ Insufficient balance. You have $100.00")
        assert db.get_bets_by_status(user.id, BET_FILLED) == []

    @pytest.mark.asyncio
    async def test_balance(self, handler, db, user):
        await handler.handle(mention("@xmarket find rain London"))
        await handler.handle(mention("@xmarket bet 10 yes"))

        reply = await handler.handle(mention("@xmarket balance"))

        assert "Balance: $90.00" in reply
        assert "Active positions: 1" in reply
        assert "Pending" not in reply

    @pytest.mark.asyncio
    async def test_positions(self, handler, user):
        empty = await handler.handle(mention("@xmarket positions"))
        assert empty.startswith("📊 No open positions")

        await handler.handle(mention("@xmarket find rain London"))
        await handler.handle(mention("@xmarket bet 10 no"))
        reply = await handler.handle(mention("@xmarket positions"))

        assert "NO $10.00 @ $0.55" in reply
        assert "Will it rain in London tomorrow?" in reply

    @pytest.mark.asyncio
    async def test_unexpected_error_gets_generic_reply(self, handler, mock_matcher, mock_x_client, user):
        mock_matcher.find_markets.side_effect = RuntimeError("boom")

        reply = await handler.handle(mention("@xmarket find rain"))

        assert reply == GENERIC_ERROR
        mock_x_client.reply.assert_called_once_with("post-1", GENERIC_ERROR)
