# Custodial deposits and withdrawals
from .service import WalletService, WithdrawalResult

__all__ = ["WalletService", "WithdrawalResult"]
