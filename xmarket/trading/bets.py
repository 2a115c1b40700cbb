"""
Bet ledger service.
Records a pending bet, executes it, and settles the row as filled or failed.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from ..database import BET_FAILED, BET_FILLED, Database, User
from ..utils.formatting import calculate_shares
from ..utils.logger import BetLogger, get_logger
from .executor import BetRequest, BetResult, TradeExecutor

logger = get_logger("bets")


@dataclass
class BetOutcome:
    bet_id: int
    status: str  # filled or failed
    price: float
    shares: float
    order_id: Optional[str] = None
    new_balance: Optional[float] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == BET_FILLED


class BetService:
    """
    Places custodial bets against a user's platform balance.

    A bet row is never left pending: every path through place_bet ends
    with the row filled or failed. The balance is only debited after the
    executor reports a fill.

    Two concurrent bets by the same user can both pass the caller's balance
    check before either debit lands. Bets are not serialized per user.
    """

    def __init__(
        self,
        db: Database,
        executor: TradeExecutor,
        bet_logger: Optional[BetLogger] = None
    ):
        self.db = db
        self.executor = executor
        self.bet_logger = bet_logger or BetLogger()

    async def place_bet(
        self,
        user: User,
        market_id: str,
        market_title: str,
        side: str,
        amount: float,
        quoted_price: float,
        tweet_id: Optional[str] = None
    ) -> BetOutcome:
        """
        Record and execute a bet.

        Args:
            user: Betting user
            market_id: Market to trade
            market_title: Question shown to the user
            side: "yes" or "no"
            amount: USDC to spend
            quoted_price: Price shown to the user; replaced by the fill price on success
            tweet_id: Post that requested the bet

        Returns:
            BetOutcome with the terminal status
        """
        bet_id = self.db.add_bet(
            user_id=user.id,
            market_id=market_id,
            market_title=market_title,
            side=side,
            amount_usdc=amount,
            price=quoted_price,
            shares=calculate_shares(amount, quoted_price) if quoted_price > 0 else 0.0,
            tweet_id=tweet_id
        )
        self.bet_logger.bet_placed(bet_id, user.id, market_id, side, amount)

        request = BetRequest(
            market_id=market_id,
            side=side,
            amount=amount,
            user_id=user.id,
            tweet_id=tweet_id
        )

        try:
            result: BetResult = await self.executor.place_bet(request)
        except asyncio.CancelledError:
            logger.error(f"Bet {bet_id} cancelled while executing")
            self._fail(bet_id, quoted_price, "cancelled", "Bet execution was cancelled")
            raise
        except Exception as e:
            logger.error(f"Error executing bet {bet_id}: {e}")
            return self._fail(bet_id, quoted_price, "executor raised", str(e))

        if not result.success:
            return self._fail(bet_id, quoted_price, "order rejected", result.error or "Unknown error")

        fill_price = result.price if result.price else quoted_price
        shares = result.shares if result.shares is not None else calculate_shares(amount, fill_price)

        try:
            new_balance = self.db.fill_bet_and_debit(
                bet_id=bet_id,
                order_id=result.order_id,
                price=fill_price,
                shares=shares
            )
        except Exception as e:
            # The order went through but the ledger did not; needs manual reconciliation
            logger.error(
                f"Ledger write failed for filled order {result.order_id} (bet {bet_id}): {e}"
            )
            self.db.mark_bet_failed(bet_id)
            self.bet_logger.bet_failed(bet_id, "ledger write failed", str(e))
            raise

        self.bet_logger.bet_filled(bet_id, result.order_id, fill_price, shares)

        return BetOutcome(
            bet_id=bet_id,
            status=BET_FILLED,
            price=fill_price,
            shares=shares,
            order_id=result.order_id,
            new_balance=new_balance
        )

    def _fail(self, bet_id: int, price: float, reason: str, error: str) -> BetOutcome:
        self.db.mark_bet_failed(bet_id)
        self.bet_logger.bet_failed(bet_id, reason, error)
        return BetOutcome(
            bet_id=bet_id,
            status=BET_FAILED,
            price=price,
            shares=0.0,
            error=error
        )
