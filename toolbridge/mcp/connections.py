"""
Event-stream connection manager and broadcast channel.

Each open ``GET /events`` stream is a ``Connection`` with an output sink.
The manager is the only owner of connections; a broadcast writes one
complete frame per sink and drops any sink whose write fails.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

import structlog

from .protocol import EventFrame

logger = structlog.get_logger(__name__)

CONNECTED_EVENT = "connected"


class SinkClosedError(RuntimeError):
    """Raised when writing to a sink that can no longer accept frames."""


class OutputSink(Protocol):
    """Anything that can accept encoded event-stream frames."""

    async def send(self, frame: str) -> None:
        ...

    def close(self) -> None:
        ...


class QueueSink:
    """
    Bounded in-memory sink drained by the HTTP response generator.

    A frame is enqueued whole, so frames from concurrent broadcasts never
    interleave. A full queue means the listener stopped reading; the write
    fails and the manager drops the connection.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: str) -> None:
        if self._closed:
            raise SinkClosedError("sink is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull as exc:
            raise SinkClosedError("listener is not keeping up") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        while True:
            try:
                self._queue.put_nowait(None)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames until the sink is closed."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


@dataclass
class Connection:
    id: str
    sink: OutputSink = field(repr=False)
    connected_at: float = field(default_factory=time.time)


class ConnectionManager:
    """Tracks open event-stream listeners keyed by connection id."""

    def __init__(self, *, queue_size: int = 100) -> None:
        self._connections: Dict[str, Connection] = {}
        self._queue_size = queue_size

    @property
    def count(self) -> int:
        return len(self._connections)

    @property
    def queue_size(self) -> int:
        return self._queue_size

    def ids(self) -> List[str]:
        return list(self._connections)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    async def connect(self, sink: Optional[OutputSink] = None) -> Connection:
        """
        Register a new listener and send it the ``connected`` handshake.

        Args:
            sink: Output sink; a ``QueueSink`` is created when omitted

        Returns:
            The registered connection. If the handshake write fails the
            connection is already removed again.
        """
        connection = Connection(
            id=uuid.uuid4().hex,
            sink=sink if sink is not None else QueueSink(self._queue_size),
        )
        self._connections[connection.id] = connection
        logger.info("Event stream connected", connection_id=connection.id, connections=self.count)

        frame = EventFrame(event=CONNECTED_EVENT, data={"connection_id": connection.id}).encode()
        await self._deliver(connection, frame)
        return connection

    def disconnect(self, connection_id: str) -> bool:
        """Remove a connection and close its sink. Safe to call twice."""
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return False
        try:
            connection.sink.close()
        except Exception as exc:
            logger.warning("Failed to close sink", connection_id=connection_id, error=str(exc))
        logger.info("Event stream disconnected", connection_id=connection_id, connections=self.count)
        return True

    async def broadcast(self, event: str, data: Any = None) -> int:
        """
        Write ``{event, data}`` to every connection registered right now.

        Returns:
            Number of connections the frame was delivered to.
        """
        frame = EventFrame(event=event, data=data).encode()
        targets = list(self._connections.values())
        if not targets:
            return 0
        delivered = await asyncio.gather(
            *(self._deliver(connection, frame) for connection in targets)
        )
        sent = sum(1 for ok in delivered if ok)
        logger.debug("Broadcast event", event_name=event, delivered=sent, targets=len(targets))
        return sent

    def close_all(self) -> int:
        """Close every listener; used when the server stops."""
        closed = 0
        for connection_id in list(self._connections):
            if self.disconnect(connection_id):
                closed += 1
        return closed

    async def _deliver(self, connection: Connection, frame: str) -> bool:
        # Skip connections removed after the broadcast snapshot was taken
        if connection.id not in self._connections:
            return False
        try:
            await connection.sink.send(frame)
        except Exception as exc:
            logger.warning(
                "Dropping event-stream listener after failed write",
                connection_id=connection.id,
                error=str(exc),
            )
            self.disconnect(connection.id)
            return False
        return True
