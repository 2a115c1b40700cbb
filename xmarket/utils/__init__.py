# Utilities
from .logger import setup_logging, get_logger, BetLogger
from .retry import retryable_call, is_transient_error

__all__ = ["setup_logging", "get_logger", "BetLogger", "retryable_call", "is_transient_error"]
