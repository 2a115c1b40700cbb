"""
X (Twitter) API v2 client.
Fetches mentions of the bot account since a cursor and posts replies.
"""

from dataclasses import dataclass
from typing import Optional

import aiohttp

from ..errors import UpstreamError
from ..utils.logger import get_logger
from ..utils.retry import retryable_call

logger = get_logger("x")


@dataclass
class Mention:
    """A post that mentions the bot."""
    id: str
    text: str
    author_id: str
    author_username: Optional[str] = None


class XClient:
    """
    Async client for the X API v2.

    Uses a user-context OAuth 2.0 bearer token so the same
    credential can read mentions and post replies.
    """

    def __init__(
        self,
        bearer_token: str,
        bot_user_id: str,
        base_url: str = "https://api.twitter.com/2",
        max_results: int = 10,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3
    ):
        self.bearer_token = bearer_token
        self.bot_user_id = bot_user_id
        self.base_url = base_url
        self.max_results = max_results
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.max_attempts = max_attempts
        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.bearer_token}"}
            )
        logger.info("X client initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def fetch_mentions(self, since_id: Optional[str] = None) -> tuple[list[Mention], Optional[str]]:
        """
        Fetch new mentions of the bot.

        Args:
            since_id: Only return mentions newer than this post id

        Returns:
            (mentions oldest first, newest id seen or the old cursor)
        """
        if not self._session:
            await self.initialize()

        params = {
            "expansions": "author_id",
            "tweet.fields": "created_at,conversation_id",
            "max_results": self.max_results
        }
        if since_id:
            params["since_id"] = since_id

        url = f"{self.base_url}/users/{self.bot_user_id}/mentions"

        async def _get():
            async with self._session.get(url, params=params) as response:
                if response.status >= 400:
                    raise UpstreamError("X API", response.status, response.reason or "")
                return await response.json()

        data = await retryable_call(_get, max_attempts=self.max_attempts, description="GET mentions")

        posts = data.get("data") or []
        if not posts:
            return [], since_id

        users = {u["id"]: u.get("username") for u in (data.get("includes") or {}).get("users", [])}

        # API returns newest first; commands are handled in posting order
        mentions = [
            Mention(
                id=p["id"],
                text=p.get("text", ""),
                author_id=p.get("author_id", ""),
                author_username=users.get(p.get("author_id"))
            )
            for p in reversed(posts)
        ]
        return mentions, posts[0]["id"]

    async def reply(self, post_id: str, text: str) -> None:
        """Reply to a post."""
        if not self._session:
            await self.initialize()

        payload = {"text": text, "reply": {"in_reply_to_tweet_id": post_id}}

        async with self._session.post(f"{self.base_url}/tweets", json=payload) as response:
            if response.status >= 400:
                logger.error(f"Failed to reply to post {post_id}: {response.status}")
                raise UpstreamError("X API", response.status, response.reason or "")

        logger.info(f"Replied to post {post_id}")
