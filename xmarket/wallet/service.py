"""
Custodial wallet service.
Credits USDC deposits to the platform wallet and pays out withdrawals.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..chains import ChainConfig
from ..clients.evm_client import EvmClient
from ..database import Database
from ..utils.logger import BetLogger, get_logger

logger = get_logger("wallet")


@dataclass
class WithdrawalResult:
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class WalletService:
    """
    Keeps user balances in step with the platform wallet.

    Deposits are matched to users by sender address and credited once
    per transaction hash.
    """

    def __init__(
        self,
        db: Database,
        evm_client: EvmClient,
        chain: ChainConfig,
        bet_logger: Optional[BetLogger] = None
    ):
        self.db = db
        self.evm_client = evm_client
        self.chain = chain
        self.bet_logger = bet_logger or BetLogger()

    @property
    def platform_address(self) -> str:
        address = self.evm_client.address
        if not address:
            raise RuntimeError("Platform wallet key is not configured")
        return address

    def _to_usdc(self, amount_raw: int) -> float:
        return float(Decimal(amount_raw) / (10 ** self.chain.usdc_decimals))

    def _to_raw(self, amount: float) -> int:
        return int(Decimal(str(amount)) * (10 ** self.chain.usdc_decimals))

    def process_deposit(self, from_address: str, amount_raw: int, tx_hash: str) -> bool:
        """
        Credit one incoming transfer.

        Returns:
            True if a balance was credited
        """
        if self.db.transaction_exists_for_hash(tx_hash):
            logger.info(f"Deposit {tx_hash} already processed")
            return False

        user = self.db.find_user_by_wallet(from_address)
        if user is None:
            logger.warning(f"No user found for wallet {from_address}, deposit {tx_hash} skipped")
            return False

        amount = self._to_usdc(amount_raw)
        if not self.db.credit_deposit(user.id, amount, tx_hash):
            logger.info(f"Deposit {tx_hash} already processed")
            return False

        self.bet_logger.deposit_credited(user.id, amount, tx_hash)
        logger.info(f"Credited {amount} USDC to user {user.x_username}")
        return True

    async def check_missed_deposits(self, lookback_blocks: int = 1000) -> int:
        """
        Scan recent USDC transfers to the platform wallet.

        Returns:
            Number of deposits credited
        """
        current = await self.evm_client.get_block_number(self.chain.chain_id)
        from_block = max(current - lookback_blocks, 0)

        events = await self.evm_client.get_usdc_transfers_to(
            self.chain, self.platform_address, from_block, current
        )
        logger.info(f"Found {len(events)} transfers to platform wallet in blocks {from_block}-{current}")

        credited = 0
        for event in events:
            if self.process_deposit(event.from_address, event.amount_raw, event.tx_hash):
                credited += 1
        return credited

    async def process_withdrawal(self, user_id: int, amount: float) -> WithdrawalResult:
        """Send amount USDC to the user's linked wallet and debit their balance."""
        if amount <= 0:
            return WithdrawalResult(success=False, error="Invalid amount")

        user = self.db.get_user(user_id)
        if user is None:
            return WithdrawalResult(success=False, error="User not found")
        if not user.wallet_address:
            return WithdrawalResult(success=False, error="No wallet address linked")
        if user.balance_usdc < amount:
            return WithdrawalResult(success=False, error="Insufficient balance")

        try:
            result = await self.evm_client.transfer_usdc(
                self.chain, user.wallet_address, self._to_raw(amount)
            )
        except Exception as e:
            logger.error(f"Error processing withdrawal: {e}")
            return WithdrawalResult(success=False, error=str(e))

        if not result.success:
            return WithdrawalResult(success=False, tx_hash=result.tx_hash, error=result.error)

        self.db.debit_withdrawal(user.id, amount, result.tx_hash)
        self.bet_logger.withdrawal_sent(user.id, amount, result.tx_hash)
        logger.info(f"Withdrawal complete: {amount} USDC to {user.wallet_address}")

        return WithdrawalResult(success=True, tx_hash=result.tx_hash)

    async def get_platform_balance(self) -> float:
        raw = await self.evm_client.get_usdc_balance(self.chain, self.platform_address)
        return self._to_usdc(raw)

    def get_total_user_balances(self) -> float:
        return self.db.total_user_balances()
