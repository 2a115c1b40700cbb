"""
Formatting and validation helpers shared by the bot replies.
"""

import math
from dataclasses import dataclass
from typing import Optional


@dataclass
class AmountValidation:
    valid: bool
    error: Optional[str] = None


def format_usdc(amount: float) -> str:
    """Format a USDC amount with two decimals."""
    return f"${amount:.2f}"


def format_large_number(num: float) -> str:
    """Format a dollar figure with a K/M suffix."""
    if num >= 1_000_000:
        return f"${num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"${num / 1_000:.1f}K"
    return f"${num:.0f}"


def validate_bet_amount(amount: float, min_bet: float, max_bet: float) -> AmountValidation:
    """Check a bet amount against the platform limits."""
    if amount is None or math.isnan(amount) or amount <= 0:
        return AmountValidation(False, "Invalid amount")
    if amount < min_bet:
        return AmountValidation(False, f"Minimum bet is {format_usdc(min_bet)}")
    if amount > max_bet:
        return AmountValidation(False, f"Maximum bet is {format_usdc(max_bet)}")
    return AmountValidation(True)


def calculate_shares(amount: float, price: float) -> float:
    """Shares bought for amount at price."""
    return amount / price


def short_id(full_id: str) -> str:
    """Short market id shown in replies."""
    return full_id[:8]
