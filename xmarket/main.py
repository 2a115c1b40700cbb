"""
Main entry point for the xmarket bot.
Handles one batch of mentions per run; scheduling is left to the host.
"""

import asyncio
import sys
from typing import Optional

# Use uvloop for better performance on Linux
try:
    import uvloop
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
except ImportError:
    pass  # uvloop not available (Windows)

from .bot.handler import CommandHandler
from .chains import find_chain
from .clients.clob_client import CLOBClient
from .clients.evm_client import EvmClient
from .clients.gamma_client import GammaClient
from .clients.x_client import XClient
from .config import BOT_REQUIRED_ENV, Config, load_config
from .database import Database
from .errors import ConfigError
from .markets.matcher import MarketMatcher
from .trading.bets import BetService
from .trading.executor import create_trade_executor
from .utils.logger import setup_logging, get_logger
from .wallet.service import WalletService

logger = get_logger("main")

MENTION_CURSOR_KEY = "mentions_since_id"


class XmarketBot:
    """
    Bot orchestrator.

    Coordinates:
    - Mention fetching and replies
    - Market search and bet execution
    - Deposit crediting for the custodial wallet
    """

    def __init__(self, config: Config):
        """Initialize bot with configuration."""
        self.config = config
        http = config.http

        self.db = Database(config.database_path)

        self.gamma_client = GammaClient(
            base_url=config.polymarket.gamma_url,
            timeout_seconds=http.timeout_seconds,
            max_attempts=http.max_attempts
        )

        self.x_client = XClient(
            bearer_token=config.x.bearer_token,
            bot_user_id=config.x.bot_user_id,
            base_url=config.x.api_url,
            max_results=config.x.max_results,
            timeout_seconds=http.timeout_seconds,
            max_attempts=http.max_attempts
        )

        self.clob_client: Optional[CLOBClient] = None
        if config.trading.trading_mode == "live":
            self.clob_client = CLOBClient(
                api_key=config.polymarket.api_key,
                api_secret=config.polymarket.api_secret,
                api_passphrase=config.polymarket.api_passphrase,
                private_key=config.wallet.private_key,
                host=config.polymarket.clob_url,
                chain_id=config.destination_chain_id,
                max_attempts=http.max_attempts
            )

        executor = create_trade_executor(config.trading.trading_mode, self.clob_client, self.gamma_client)
        self.bet_service = BetService(self.db, executor)
        self.matcher = MarketMatcher(self.gamma_client, openai_api_key=config.openai_api_key)

        self.handler = CommandHandler(
            db=self.db,
            matcher=self.matcher,
            bet_service=self.bet_service,
            gamma_client=self.gamma_client,
            x_client=self.x_client,
            min_bet=config.trading.min_bet_usdc,
            max_bet=config.trading.max_bet_usdc
        )

        self.wallet_service: Optional[WalletService] = None
        if config.wallet.configured:
            destination = find_chain(config.chains, config.destination_chain_id)
            evm_client = EvmClient(config.chains, private_key=config.wallet.private_key)
            self.wallet_service = WalletService(self.db, evm_client, destination)

    async def initialize(self) -> None:
        """Initialize all components."""
        logger.info("Initializing xmarket bot")

        self.db.init_db()
        await self.gamma_client.initialize()
        await self.x_client.initialize()
        if self.clob_client:
            await self.clob_client.initialize()

        if not self.wallet_service:
            logger.warning("Platform wallet not configured - deposits will not be credited")

        logger.info(
            "Bot initialized",
            extra={
                "trading_mode": self.config.trading.trading_mode,
                "testnet": self.config.trading.is_testnet
            }
        )

    async def process_mentions(self) -> int:
        """
        Handle every mention since the stored cursor.

        Returns:
            Number of mentions handled
        """
        since_id = self.db.get_state(MENTION_CURSOR_KEY)
        mentions, newest_id = await self.x_client.fetch_mentions(since_id)

        if not mentions:
            logger.info("No new mentions")
            return 0

        logger.info(f"Processing {len(mentions)} mentions")
        for mention in mentions:
            await self.handler.handle(mention)
            # Advance per mention so a crash does not re-answer handled posts
            self.db.set_state(MENTION_CURSOR_KEY, mention.id)

        if newest_id:
            self.db.set_state(MENTION_CURSOR_KEY, newest_id)
        return len(mentions)

    async def reconcile_wallet(self) -> None:
        """Credit missed deposits and log platform reserves against user balances."""
        if not self.wallet_service:
            return

        try:
            credited = await self.wallet_service.check_missed_deposits()
            if credited:
                logger.info(f"Credited {credited} missed deposits")

            reserves = await self.wallet_service.get_platform_balance()
            liabilities = self.wallet_service.get_total_user_balances()
            logger.info(
                "Wallet reconciliation",
                extra={"platform_usdc": reserves, "user_balances_usdc": liabilities}
            )
            if reserves < liabilities:
                logger.warning(f"Platform wallet ${reserves:.2f} < user balances ${liabilities:.2f}")
        except Exception as e:
            logger.error(f"Wallet reconciliation failed: {e}")

    async def run_once(self) -> int:
        """One bot cycle: deposits first, then mentions."""
        await self.reconcile_wallet()
        return await self.process_mentions()

    async def shutdown(self) -> None:
        """Close HTTP sessions."""
        logger.info("Shutting down bot")
        await self.x_client.close()
        await self.gamma_client.close()
        logger.info("Bot shutdown complete")


def validate_environment() -> Config:
    """Load configuration or exit with the list of missing variables."""
    try:
        return load_config(required=BOT_REQUIRED_ENV)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


async def main() -> None:
    """Main entry point."""
    config = validate_environment()

    setup_logging(
        level=config.logging.log_level,
        json_format=config.logging.json_logging
    )

    logger.info("Starting xmarket bot")

    bot = XmarketBot(config)
    try:
        await bot.initialize()
        handled = await bot.run_once()
        logger.info(f"Run complete, {handled} mentions handled")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise
    finally:
        await bot.shutdown()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
