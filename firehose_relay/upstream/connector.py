"""WebSocket connector wrapper with timeout configuration."""

from typing import Any, Optional

import websockets

from firehose_relay.models.config import RelayConfig


class UpstreamConnector:
    """
    Opens upstream WebSocket connections via `websockets.connect`.

    Provides:
    - Configurable opening and closing handshake timeouts
    - Bounded frame size
    - The User-Agent header the Bluesky relays expect from this viewer
    """

    def __init__(
        self,
        open_timeout: float = 10.0,
        close_timeout: float = 5.0,
        max_message_size: Optional[int] = 4 * 1024 * 1024,
        user_agent: str = "bsky-firehose-viewer/1.0.0",
    ):
        """
        Initialize connector.

        Args:
            open_timeout: Opening handshake timeout in seconds
            close_timeout: Closing handshake timeout in seconds
            max_message_size: Largest accepted frame in bytes (None for unlimited)
            user_agent: Value of the User-Agent header
        """
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout
        self.max_message_size = max_message_size
        self.user_agent = user_agent

    @classmethod
    def from_config(cls, config: RelayConfig) -> "UpstreamConnector":
        return cls(
            open_timeout=config.open_timeout,
            close_timeout=config.close_timeout,
            max_message_size=config.max_message_size,
            user_agent=config.user_agent,
        )

    async def connect(self, url: str) -> Any:
        """
        Open a connection.

        Args:
            url: ws:// or wss:// URL

        Returns:
            Open connection; iterate it for messages, `await close()` it when done

        Raises:
            OSError: If the TCP connection fails
            asyncio.TimeoutError: If the opening handshake times out
            websockets.exceptions.WebSocketException: On handshake rejection
        """
        return await websockets.connect(
            url,
            open_timeout=self.open_timeout,
            close_timeout=self.close_timeout,
            max_size=self.max_message_size,
            user_agent_header=self.user_agent,
        )
