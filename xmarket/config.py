"""
Configuration module for xmarket.
Loads settings from environment variables with validation.
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

from .chains import ChainConfig, get_active_chains, get_target_chain_id
from .errors import ConfigError

# Load .env file if present
load_dotenv()

# Variables the bot refuses to start without
BOT_REQUIRED_ENV = [
    "X_BEARER_TOKEN",
    "X_BOT_USER_ID",
    "DATABASE_PATH",
]


@dataclass
class XConfig:
    """X (Twitter) API configuration."""
    bearer_token: str
    bot_user_id: str
    api_url: str = "https://api.twitter.com/2"
    max_results: int = 10


@dataclass
class PolymarketConfig:
    """Polymarket API configuration."""
    api_key: str
    api_secret: str
    api_passphrase: str

    # API endpoints
    clob_url: str = "https://clob.polymarket.com"
    gamma_url: str = "https://gamma-api.polymarket.com"


@dataclass
class WalletConfig:
    """Platform (custodial) wallet configuration."""
    private_key: str

    @property
    def configured(self) -> bool:
        return bool(self.private_key)


@dataclass
class BridgeConfig:
    """LiFi routing configuration."""
    lifi_url: str
    integrator: str
    api_key: Optional[str] = None
    status_poll_seconds: float = 10.0
    status_timeout_seconds: float = 1800.0


@dataclass
class TradingConfig:
    """Bet limits and execution mode."""
    trading_mode: str  # "mock" or "live"
    demo_mode: bool  # Self-custodial flow stops at "simulated"
    is_testnet: bool
    min_bet_usdc: float = 1.0
    max_bet_usdc: float = 1000.0


@dataclass
class HttpConfig:
    """Timeout and retry policy for external HTTP calls."""
    timeout_seconds: float = 10.0
    max_attempts: int = 3
    base_delay_seconds: float = 1.0


@dataclass
class LogConfig:
    """Logging configuration."""
    log_level: str
    json_logging: bool


@dataclass
class Config:
    """Main configuration container."""
    x: XConfig
    polymarket: PolymarketConfig
    wallet: WalletConfig
    bridge: BridgeConfig
    trading: TradingConfig
    http: HttpConfig
    logging: LogConfig
    database_path: str
    openai_api_key: Optional[str] = None
    chains: list[ChainConfig] = field(default_factory=list)

    @property
    def destination_chain_id(self) -> int:
        return get_target_chain_id(self.trading.is_testnet)


def get_env(key: str, default: Optional[str] = None, required: bool = True) -> str:
    """Get environment variable with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ConfigError([key])
    return value or ""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes")


def get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    value = os.getenv(key, str(default))
    return int(value)


def get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    value = os.getenv(key, str(default))
    return float(value)


def find_missing_env(keys: list[str]) -> list[str]:
    """Return the subset of keys that are unset or empty."""
    return [key for key in keys if not os.getenv(key)]


def _rpc_overrides() -> dict[int, str]:
    """Collect RPC_URL_<chain_id> overrides from the environment."""
    overrides = {}
    for key, value in os.environ.items():
        if key.startswith("RPC_URL_") and value:
            suffix = key[len("RPC_URL_"):]
            if suffix.isdigit():
                overrides[int(suffix)] = value
    return overrides


def load_config(required: Optional[list[str]] = None) -> Config:
    """
    Load and validate configuration from environment.

    Args:
        required: Variables that must be set; all missing ones are
            reported together in a single ConfigError.
    """
    missing = find_missing_env(required or [])
    if missing:
        raise ConfigError(missing)

    private_key = get_env("PLATFORM_WALLET_PRIVATE_KEY", required=False)
    is_testnet = get_env_bool("XMARKET_TESTNET", False)

    return Config(
        x=XConfig(
            bearer_token=get_env("X_BEARER_TOKEN", required=False),
            bot_user_id=get_env("X_BOT_USER_ID", required=False),
        ),
        polymarket=PolymarketConfig(
            api_key=get_env("POLYMARKET_API_KEY", required=False),
            api_secret=get_env("POLYMARKET_API_SECRET", required=False),
            api_passphrase=get_env("POLYMARKET_API_PASSPHRASE", required=False),
        ),
        wallet=WalletConfig(
            private_key=private_key,
        ),
        bridge=BridgeConfig(
            lifi_url=get_env("LIFI_API_URL", "https://li.quest/v1", required=False),
            integrator=get_env("LIFI_INTEGRATOR", "xmarket", required=False),
            api_key=os.getenv("LIFI_API_KEY") or None,
        ),
        trading=TradingConfig(
            # Without a platform key there is nothing to sign live orders with
            trading_mode=get_env("TRADING_MODE", "live" if private_key else "mock", required=False).lower(),
            demo_mode=get_env_bool("DEMO_MODE", False),
            is_testnet=is_testnet,
            min_bet_usdc=get_env_float("MIN_BET_USDC", 1.0),
            max_bet_usdc=get_env_float("MAX_BET_USDC", 1000.0),
        ),
        http=HttpConfig(
            timeout_seconds=get_env_float("HTTP_TIMEOUT_SECONDS", 10.0),
            max_attempts=get_env_int("HTTP_MAX_ATTEMPTS", 3),
        ),
        logging=LogConfig(
            log_level=get_env("LOG_LEVEL", "INFO", required=False),
            json_logging=get_env_bool("JSON_LOGGING", True),
        ),
        database_path=get_env("DATABASE_PATH", "data/xmarket.db", required=False),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        chains=get_active_chains(is_testnet, _rpc_overrides()),
    )
