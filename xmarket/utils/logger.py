"""
Structured logging for xmarket.
Supports JSON logging for log aggregation.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['timestamp'] = self.formatTime(record, self.datefmt)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Whether to emit JSON lines
        logger_name: Optional specific logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name or "xmarket")
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger with the given name."""
    return logging.getLogger(f"xmarket.{name}")


class BetLogger:
    """Specialized logger for money-moving events."""

    def __init__(self):
        self.logger = get_logger("ledger")

    def bet_placed(self, bet_id: int, user_id: int, market_id: str, side: str, amount: float):
        """Log when a pending bet is recorded."""
        self.logger.info(
            "Bet placed",
            extra={
                "event": "bet_placed",
                "bet_id": bet_id,
                "user_id": user_id,
                "market_id": market_id,
                "side": side,
                "amount_usdc": amount
            }
        )

    def bet_filled(self, bet_id: int, order_id: str, price: float, shares: float):
        """Log when the executor confirms a fill."""
        self.logger.info(
            "Bet filled",
            extra={
                "event": "bet_filled",
                "bet_id": bet_id,
                "order_id": order_id,
                "fill_price": price,
                "shares": shares
            }
        )

    def bet_failed(self, bet_id: int, reason: str, error: Optional[str] = None):
        """Log when a bet ends in the failed state."""
        self.logger.error(
            "Bet failed",
            extra={
                "event": "bet_failed",
                "bet_id": bet_id,
                "reason": reason,
                "error": error
            }
        )

    def bridge_completed(self, from_chain: str, to_chain: str, amount: float, tx_hashes: list[str]):
        """Log when a bridge transfer lands on the destination chain."""
        self.logger.info(
            "Bridge completed",
            extra={
                "event": "bridge_completed",
                "from_chain": from_chain,
                "to_chain": to_chain,
                "amount_usdc": amount,
                "tx_hashes": tx_hashes
            }
        )

    def deposit_credited(self, user_id: int, amount: float, tx_hash: str):
        """Log when a deposit is credited to a user balance."""
        self.logger.info(
            "Deposit credited",
            extra={
                "event": "deposit_credited",
                "user_id": user_id,
                "amount_usdc": amount,
                "tx_hash": tx_hash
            }
        )

    def withdrawal_sent(self, user_id: int, amount: float, tx_hash: str):
        """Log when a withdrawal transfer is confirmed."""
        self.logger.info(
            "Withdrawal sent",
            extra={
                "event": "withdrawal_sent",
                "user_id": user_id,
                "amount_usdc": amount,
                "tx_hash": tx_hash
            }
        )
