"""
Market matcher.
Ranks active binary markets against a free-text query.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from openai import AsyncOpenAI

from ..clients.gamma_client import GammaClient, Market
from ..utils.logger import get_logger

logger = get_logger("matcher")

EMBEDDING_MODEL = "text-embedding-3-small"
TOP_RESULTS = 3

QUESTION_WEIGHT = 10
DESCRIPTION_WEIGHT = 5
SEMANTIC_WEIGHT = 20


@dataclass
class MarketMatch:
    market: Market
    relevance_score: float


def keyword_score(query: str, text: str) -> float:
    """
    Fraction of query words found in text.

    Words shorter than 3 characters never match but still count
    towards the total.
    """
    words = query.lower().split()
    if not words:
        return 0.0

    text = text.lower()
    matches = sum(1 for word in words if len(word) >= 3 and word in text)
    return matches / len(words)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    if a.shape != b.shape:
        return 0.0
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)


class MarketMatcher:
    """
    Finds the markets a user is most likely talking about.

    Score = question keywords x10 + description keywords x5 + log10(volume + 1),
    plus embedding similarity x20 when an OpenAI key is configured.
    """

    def __init__(
        self,
        gamma_client: GammaClient,
        openai_api_key: Optional[str] = None,
        market_limit: int = 100
    ):
        self.gamma_client = gamma_client
        self.market_limit = market_limit
        self.openai: Optional[AsyncOpenAI] = AsyncOpenAI(api_key=openai_api_key) if openai_api_key else None

    async def find_markets(self, query: str) -> list[MarketMatch]:
        """
        Top matches for query, best first.

        Returns:
            Up to 3 matches; empty if the market API is unavailable
        """
        try:
            markets = await self.gamma_client.fetch_active_markets(limit=self.market_limit)
        except Exception as e:
            logger.error(f"Error fetching markets: {e}")
            return []

        binary = [m for m in markets if m.is_binary]
        scored = await self.score_markets(query, binary)
        return scored[:TOP_RESULTS]

    async def score_markets(self, query: str, markets: list[Market]) -> list[MarketMatch]:
        semantic = await self._semantic_scores(query, markets)

        results = []
        for market, similarity in zip(markets, semantic):
            score = keyword_score(query, market.question) * QUESTION_WEIGHT
            if market.description:
                score += keyword_score(query, market.description) * DESCRIPTION_WEIGHT
            if market.volume:
                score += math.log10(market.volume + 1)
            score += similarity * SEMANTIC_WEIGHT
            results.append(MarketMatch(market=market, relevance_score=score))

        return sorted(results, key=lambda r: r.relevance_score, reverse=True)

    async def _semantic_scores(self, query: str, markets: list[Market]) -> list[float]:
        if self.openai is None or not markets:
            return [0.0] * len(markets)

        try:
            response = await self.openai.embeddings.create(
                model=EMBEDDING_MODEL,
                input=[query] + [m.question for m in markets]
            )
        except Exception as e:
            logger.warning(f"Embedding request failed, using keyword score only: {e}")
            return [0.0] * len(markets)

        vectors = [np.asarray(item.embedding, dtype=float) for item in response.data]
        query_vector = vectors[0]
        return [cosine_similarity(query_vector, v) for v in vectors[1:]]
