import asyncio
from asyncio.transports import BaseTransport, DatagramTransport
import logging
from typing import Optional, Tuple, cast

_LOGGER = logging.getLogger(__name__)


class AIONanoleafStreamingProtocol(asyncio.DatagramProtocol):
    """A asyncio.DatagramProtocol carrying external control frames to a device.

    The device never answers on this channel, frames are fire and forget.
    """

    def __init__(self, destination: Tuple[str, int]) -> None:
        self.destination = destination
        self.transport: Optional[DatagramTransport] = None

    def connection_made(self, transport: BaseTransport) -> None:
        """Handle connection made."""
        self.transport = cast(DatagramTransport, transport)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Handle connection lost."""
        _LOGGER.debug("%s: Streaming connection lost: %s", self.destination, exc)
        self.transport = None

    def error_received(self, exc: Exception) -> None:
        """Handle error."""
        _LOGGER.debug("%s: Streaming error: %s", self.destination, exc)

    @property
    def is_open(self) -> bool:
        return self.transport is not None and not self.transport.is_closing()

    def send(self, data: bytes) -> None:
        """Send one frame to the device."""
        assert self.transport is not None
        _LOGGER.debug(
            "%s => %s (%d)",
            self.destination,
            " ".join(f"0x{x:02X}" for x in data),
            len(data),
        )
        self.transport.sendto(data)

    def close(self) -> None:
        """Close the transport."""
        if self.transport is not None:
            self.transport.close()
            self.transport = None
