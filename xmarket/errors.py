"""
Exception types shared across xmarket.
"""


class XmarketError(Exception):
    """Base class for xmarket errors."""


class ConfigError(XmarketError):
    """Missing or invalid configuration."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"Missing required environment variables: {', '.join(missing)}"
        )


class UnsupportedChainError(XmarketError):
    """Chain id has no USDC configuration."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        super().__init__(f"Unsupported chain: {chain_id}")


class RouteUnavailable(XmarketError):
    """The bridge router returned no route for the request."""

    def __init__(self, from_chain: str, to_chain: str):
        self.from_chain = from_chain
        self.to_chain = to_chain
        super().__init__(f"No bridge route from {from_chain} to {to_chain}")


class InvalidTransition(XmarketError):
    """A flow action was requested from a state that does not allow it."""


class UpstreamError(XmarketError):
    """An external API answered with an error status."""

    def __init__(self, service: str, status: int, message: str = ""):
        self.service = service
        self.status = status
        super().__init__(f"{service} error: {status} {message}".strip())
