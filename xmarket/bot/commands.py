"""
Command parsing for bot mentions.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CommandType(Enum):
    FIND = "find"
    BET = "bet"
    BALANCE = "balance"
    POSITIONS = "positions"
    UNKNOWN = "unknown"


@dataclass
class ParsedCommand:
    type: CommandType
    query: Optional[str] = None
    amount: Optional[float] = None
    side: Optional[str] = None  # yes or no
    market_id: Optional[str] = None  # short id without the leading #


MENTION_PATTERN = re.compile(r"@\w+")
FIND_PATTERN = re.compile(r"find\s+(.+)", re.IGNORECASE)
BET_PATTERN = re.compile(r"bet\s+(\d+(?:\.\d+)?)\s*(usdc)?\s+(yes|no)(?:\s+#(\w+))?", re.IGNORECASE)
BALANCE_PATTERN = re.compile(r"balance", re.IGNORECASE)
POSITIONS_PATTERN = re.compile(r"positions", re.IGNORECASE)


def parse_command(text: str) -> ParsedCommand:
    """Parse the text of a mention into a command."""
    clean = MENTION_PATTERN.sub("", text).strip()

    match = FIND_PATTERN.search(clean)
    if match:
        return ParsedCommand(type=CommandType.FIND, query=match.group(1).strip())

    match = BET_PATTERN.search(clean)
    if match:
        return ParsedCommand(
            type=CommandType.BET,
            amount=float(match.group(1)),
            side=match.group(3).lower(),
            market_id=match.group(4)
        )

    if BALANCE_PATTERN.search(clean):
        return ParsedCommand(type=CommandType.BALANCE)

    if POSITIONS_PATTERN.search(clean):
        return ParsedCommand(type=CommandType.POSITIONS)

    return ParsedCommand(type=CommandType.UNKNOWN)
