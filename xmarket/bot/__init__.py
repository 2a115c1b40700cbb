# Social bot commands
from .commands import CommandType, ParsedCommand, parse_command
from .handler import CommandHandler

__all__ = ["CommandType", "ParsedCommand", "parse_command", "CommandHandler"]
