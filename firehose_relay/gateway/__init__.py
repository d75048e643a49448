"""Downstream fan-out gateway."""

from .hub import COMMANDS, FanoutGateway
from .messages import MessageFormatter

__all__ = ["COMMANDS", "FanoutGateway", "MessageFormatter"]
