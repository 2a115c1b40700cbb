"""
Mention command handler.
Turns a parsed mention into market searches, bets and balance replies.
"""

from typing import Optional

from ..clients.gamma_client import GammaClient
from ..clients.x_client import Mention, XClient
from ..database import BET_FILLED, BET_PENDING, Database, User
from ..markets.matcher import MarketMatcher
from ..trading.bets import BetService
from ..utils.formatting import (
    format_large_number,
    format_usdc,
    short_id,
    validate_bet_amount,
)
from ..utils.logger import get_logger
from .commands import CommandType, ParsedCommand, parse_command

logger = get_logger("handler")

SITE = "xmarket.xyz"
POSITIONS_SHOWN = 5

NOT_REGISTERED = f"👋 You're not registered yet! Sign up at {SITE} to start betting on Polymarket."
UNKNOWN_COMMAND = (
    "❓ Unknown command. Try:\n"
    "• find [topic] - Search markets\n"
    "• bet [amount] yes/no - Place a bet\n"
    "• balance - Check your balance\n"
    "• positions - List your open bets"
)
NO_RECENT_MARKETS = '❌ No recent markets found. Use "find [topic]" to search for markets first.'
GENERIC_ERROR = f"❌ Something went wrong. Please try again or contact support at {SITE}"


class CommandHandler:
    """
    Handles one mention at a time and replies to it.

    Replies are returned as well as posted so callers can log them.
    """

    def __init__(
        self,
        db: Database,
        matcher: MarketMatcher,
        bet_service: BetService,
        gamma_client: GammaClient,
        x_client: XClient,
        min_bet: float = 1.0,
        max_bet: float = 1000.0
    ):
        self.db = db
        self.matcher = matcher
        self.bet_service = bet_service
        self.gamma_client = gamma_client
        self.x_client = x_client
        self.min_bet = min_bet
        self.max_bet = max_bet

    async def handle(self, mention: Mention) -> str:
        command = parse_command(mention.text)
        logger.info(
            f"Handling {command.type.value} from @{mention.author_username or mention.author_id}",
            extra={"post_id": mention.id}
        )

        try:
            response = await self._respond(mention, command)
        except Exception as e:
            logger.error(f"Error handling command: {e}", exc_info=True)
            response = GENERIC_ERROR

        await self.x_client.reply(mention.id, response)
        return response

    async def _respond(self, mention: Mention, command: ParsedCommand) -> str:
        if command.type == CommandType.UNKNOWN:
            return UNKNOWN_COMMAND

        user = self.db.get_user_by_x_id(mention.author_id)
        if user is None:
            return NOT_REGISTERED

        if command.type == CommandType.FIND:
            return await self._find(command, user)
        if command.type == CommandType.BET:
            return await self._bet(mention, command, user)
        if command.type == CommandType.BALANCE:
            return self._balance(user)
        if command.type == CommandType.POSITIONS:
            return self._positions(user)

        raise ValueError(f"Unhandled command type: {command.type}")

    async def _find(self, command: ParsedCommand, user: User) -> str:
        if not command.query:
            return "❓ Please provide a search query. Example: find Trump 2028"

        logger.info(f"Searching markets for: \"{command.query}\"")
        results = await self.matcher.find_markets(command.query)

        if not results:
            return (
                f"❌ No markets found for \"{command.query}\". "
                "Try different keywords or check polymarket.com"
            )

        self.db.upsert_user_context(
            user.x_user_id,
            [
                {
                    "id": r.market.id,
                    "question": r.market.question,
                    "yes_price": r.market.yes_price,
                    "no_price": r.market.no_price,
                }
                for r in results[:3]
            ]
        )

        top = results[0].market
        volume = format_large_number(top.volume) if top.volume else "N/A"

        response = f"📊 \"{top.question}\"\n\n"
        response += f"Yes: {format_usdc(top.yes_price)} | No: {format_usdc(top.no_price)}\n"
        response += f"Volume: {volume} | ID: #{short_id(top.id)}\n\n"
        response += "💡 Reply \"bet [amount] yes\" or \"bet [amount] no\" to place a bet"

        if len(results) > 1:
            response += f"\n\n📋 Found {len(results)} markets. Showing top match."

        return response

    async def _bet(self, mention: Mention, command: ParsedCommand, user: User) -> str:
        if command.amount is None or not command.side:
            return "❓ Invalid bet command. Example: bet 5 yes or bet 10 USDC no"

        validation = validate_bet_amount(command.amount, self.min_bet, self.max_bet)
        if not validation.valid:
            return f"❌ {validation.error}"

        if user.balance_usdc < command.amount:
            return (
                f"❌ Insufficient balance. You have {format_usdc(user.balance_usdc)}. "
                f"Deposit at {SITE}"
            )

        market = await self._resolve_market(user, command.market_id)
        if market is None:
            if command.market_id:
                return f"❌ Market #{command.market_id} not found. Use \"find [topic]\" to search for markets."
            return NO_RECENT_MARKETS

        quoted = market["yes_price"] if command.side == "yes" else market["no_price"]

        logger.info(f"Placing bet: {command.amount} USDC on {command.side} for market {market['id']}")
        outcome = await self.bet_service.place_bet(
            user=user,
            market_id=market["id"],
            market_title=market["question"],
            side=command.side,
            amount=command.amount,
            quoted_price=quoted,
            tweet_id=mention.id
        )

        if not outcome.success:
            return f"❌ Failed to place bet: {outcome.error or 'Unknown error'}"

        return (
            f"✅ Bet placed! {format_usdc(command.amount)} on {command.side.upper()} "
            f"@ {format_usdc(outcome.price)}\n\n"
            f"📈 Shares: {outcome.shares:.2f}\n"
            f"💰 Balance: {format_usdc(outcome.new_balance)}\n\n"
            "Good luck! 🍀"
        )

    async def _resolve_market(self, user: User, market_id: Optional[str]) -> Optional[dict]:
        """Market from the #id in the command, else the top result of the last search."""
        context = self.db.get_user_context(user.x_user_id) or []

        if not market_id:
            return context[0] if context else None

        wanted = market_id.lower()
        for entry in context:
            if short_id(entry["id"]).lower() == wanted or entry["id"].lower() == wanted:
                return entry

        market = await self.gamma_client.get_market(market_id)
        if market is None or not market.is_binary:
            return None
        return {
            "id": market.id,
            "question": market.question,
            "yes_price": market.yes_price,
            "no_price": market.no_price,
        }

    def _balance(self, user: User) -> str:
        pending = self.db.get_bets_by_status(user.id, BET_PENDING)
        pending_amount = sum(b.amount_usdc for b in pending)
        active = self.db.get_bets_by_status(user.id, BET_FILLED)

        response = f"💰 Balance: {format_usdc(user.balance_usdc)}\n"
        if pending_amount > 0:
            response += f"⏳ Pending: {format_usdc(pending_amount)}\n"
        if active:
            response += f"📊 Active positions: {len(active)}\n"
        response += f"\n💳 Deposit or withdraw at {SITE}"
        return response

    def _positions(self, user: User) -> str:
        bets = self.db.get_bets_by_status(user.id, BET_FILLED, limit=POSITIONS_SHOWN)
        if not bets:
            return "📊 No open positions. Use \"find [topic]\" to discover markets."

        lines = ["📊 Your positions:"]
        for bet in bets:
            lines.append(
                f"• {bet.side.upper()} {format_usdc(bet.amount_usdc)} @ {format_usdc(bet.price)} "
                f"({bet.shares:.2f} shares) on \"{bet.market_title}\""
            )
        lines.append(f"\nFull history at {SITE}")
        return "\n".join(lines)
