# Market search
from .matcher import MarketMatch, MarketMatcher, keyword_score

__all__ = ["MarketMatch", "MarketMatcher", "keyword_score"]
