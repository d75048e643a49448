"""Upstream feed connection management."""

from .connector import UpstreamConnector
from .manager import UpstreamConnectionManager

__all__ = ["UpstreamConnectionManager", "UpstreamConnector"]
