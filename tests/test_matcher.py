"""
Tests for market search ranking.
"""

from types import SimpleNamespace

import numpy as np
import pytest
from unittest.mock import AsyncMock, MagicMock

from xmarket.clients.gamma_client import GammaClient, Market
from xmarket.markets.matcher import MarketMatcher, cosine_similarity, keyword_score


def market(market_id, question, description=None, volume=0.0, outcomes=("Yes", "No")):
    return Market(
        id=market_id,
        question=question,
        description=description,
        outcomes=list(outcomes),
        outcome_prices=[0.5] * len(outcomes),
        volume=volume
    )


@pytest.fixture
def mock_gamma_client():
    client = AsyncMock(spec=GammaClient)
    client.fetch_active_markets.return_value = [
        market("0x1", "Will Bitcoin reach $150k in 2026?", volume=5_000_000),
        market("0x2", "Will the Lakers win the NBA title?", volume=900_000),
        market("0x3", "Which team wins the Bitcoin cup?", outcomes=("A", "B", "C")),
        market("0x4", "Will Ethereum flip Bitcoin?", description="Bitcoin market cap comparison"),
        market("0x5", "Fed rate cut in December?"),
    ]
    return client


def embeddings_response(vectors):
    return SimpleNamespace(data=[SimpleNamespace(embedding=v) for v in vectors])


class TestScoring:

    def test_keyword_score(self):
        assert keyword_score("bitcoin price up", "Bitcoin price prediction") == pytest.approx(2 / 3)
        assert keyword_score("", "anything") == 0.0
        assert keyword_score("xyz", "Bitcoin") == 0.0

    def test_cosine_similarity(self):
        a = np.array([1.0, 0.0])

        assert cosine_similarity(a, np.array([2.0, 0.0])) == pytest.approx(1.0)
        assert cosine_similarity(a, np.array([0.0, 3.0])) == pytest.approx(0.0)
        assert cosine_similarity(a, np.zeros(2)) == 0.0
        assert cosine_similarity(a, np.ones(3)) == 0.0


class TestMarketMatcher:

    @pytest.mark.asyncio
    async def test_top_three_binary_markets(self, mock_gamma_client):
        matcher = MarketMatcher(mock_gamma_client)

        results = await matcher.find_markets("bitcoin")

        ids = [r.market.id for r in results]
        assert len(results) == 3
        assert "0x3" not in ids
        assert ids[0] == "0x1"
        scores = [r.relevance_score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_description_counts(self, mock_gamma_client):
        matcher = MarketMatcher(mock_gamma_client)

        results = await matcher.score_markets("ethereum", [
            market("0xa", "Will Ethereum flip Bitcoin?"),
            market("0xb", "Will Ethereum flip Bitcoin?", description="Ethereum vs Bitcoin"),
        ])

        assert results[0].market.id == "0xb"
        assert results[0].relevance_score == pytest.approx(15.0)
        assert results[1].relevance_score == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_market_api_failure_returns_empty(self, mock_gamma_client):
        mock_gamma_client.fetch_active_markets.side_effect = ConnectionError("gamma down")
        matcher = MarketMatcher(mock_gamma_client)

        assert await matcher.find_markets("bitcoin") == []

    @pytest.mark.asyncio
    async def test_semantic_scores_in_one_request(self, mock_gamma_client):
        matcher = MarketMatcher(mock_gamma_client)
        matcher.openai = MagicMock()
        matcher.openai.embeddings.create = AsyncMock(return_value=embeddings_response([
            [1.0, 0.0],
            [0.0, 1.0],
            [1.0, 0.0],
        ]))

        results = await matcher.score_markets("hoops", [
            market("0xa", "Fed rate cut?"),
            market("0xb", "Will the Lakers win?"),
        ])

        matcher.openai.embeddings.create.assert_called_once()
        sent = matcher.openai.embeddings.create.call_args.kwargs["input"]
        assert sent == ["hoops", "Fed rate cut?", "Will the Lakers win?"]
        assert results[0].market.id == "0xb"
        assert results[0].relevance_score == pytest.approx(20.0)

    @pytest.mark.asyncio
    async def test_embedding_failure_falls_back_to_keywords(self, mock_gamma_client):
        matcher = MarketMatcher(mock_gamma_client)
        matcher.openai = MagicMock()
        matcher.openai.embeddings.create = AsyncMock(side_effect=RuntimeError("quota"))

        results = await matcher.score_markets("lakers", [market("0xb", "Will the Lakers win?")])

        assert results[0].relevance_score == pytest.approx(10.0)
