"""Pushes status records to every attached update-channel subscriber."""

import asyncio
import logging

from waybar_timer.models import StatusRecord

logger = logging.getLogger(__name__)


class Broadcaster:
    """Set of live subscriber connections.

    Delivery is best effort: a subscriber whose write fails (or does not
    drain within ``write_timeout``) is closed and dropped, and delivery
    carries on with the rest. Nothing is buffered for later subscribers.
    """

    def __init__(self, write_timeout: float = 2.0):
        self.write_timeout = write_timeout
        self.subscribers: list[asyncio.StreamWriter] = []

    def __len__(self) -> int:
        return len(self.subscribers)

    async def attach(self, writer: asyncio.StreamWriter, snapshot: StatusRecord) -> bool:
        """Add a subscriber and send it the current snapshot."""
        self.subscribers.append(writer)
        logger.debug("Subscriber attached (%d total)", len(self.subscribers))

        if await self._send(writer, _encode(snapshot)):
            return True
        self._evict(len(self.subscribers) - 1)
        return False

    async def publish(self, snapshot: StatusRecord) -> None:
        """Send one record to every subscriber, evicting the ones that fail."""
        data = _encode(snapshot)
        index = 0
        while index < len(self.subscribers):
            if await self._send(self.subscribers[index], data):
                index += 1
            else:
                # The last subscriber takes the evicted slot and is tried next
                self._evict(index)

    def close_all(self) -> None:
        for writer in self.subscribers:
            writer.close()
        self.subscribers.clear()

    async def _send(self, writer: asyncio.StreamWriter, data: bytes) -> bool:
        try:
            writer.write(data)
            await asyncio.wait_for(writer.drain(), timeout=self.write_timeout)
        except (OSError, TimeoutError) as e:
            logger.debug("Subscriber write failed: %r", e)
            return False
        return True

    def _evict(self, index: int) -> None:
        writer = self.subscribers[index]
        self.subscribers[index] = self.subscribers[-1]
        self.subscribers.pop()
        writer.close()
        logger.debug("Subscriber evicted (%d left)", len(self.subscribers))


def _encode(snapshot: StatusRecord) -> bytes:
    return (snapshot.to_line() + "\n").encode()
