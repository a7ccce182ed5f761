"""Syncwatch relay connection: join a room and exchange room events."""
from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import socketio

from syncwatch.echo import EchoSuppressor
from syncwatch.mpv_controller import MpvError
from syncwatch.protocol import (
    EVENT_JOIN, EVENT_MESSAGE,
    MediaPlayerEvent, ProtocolError, RoomEvent, make_join,
)

logger = logging.getLogger("syncwatch.connection")

# Messages emitted right after the client reports "connected" can be dropped
# before the relay side has finished the handshake.
DEFAULT_SETTLE_DELAY = 0.5


@dataclass
class Connection:
    """A joined relay session."""
    client: socketio.Client
    room_name: str
    display_name: str

    @property
    def connected(self) -> bool:
        return bool(self.client.connected)


class RelayTransport:
    """
    Owns the Socket.IO client lifecycle and the room event send/receive path.

    The receive handler runs on Socket.IO worker threads, one per message. It applies
    remote events to the player directly and uses the shared EchoSuppressor so
    the pause notification it causes is not sent back to the room.
    """

    def __init__(self, player, suppressor: EchoSuppressor,
                 settle_delay: float = DEFAULT_SETTLE_DELAY,
                 client_factory: Callable[..., Any] = socketio.Client,
                 sleep: Callable[[float], None] = time.sleep):
        self.player = player
        self.suppressor = suppressor
        self.settle_delay = settle_delay
        self._client_factory = client_factory
        self._sleep = sleep
        # engineio dispatches each inbound message on its own thread
        self._apply_lock = threading.Lock()

    def connect_and_join(self, server_url: str, display_name: str, room_name: str) -> Connection:
        """Connect, wait for the handshake to settle, then join the room.

        Connection and join errors propagate; they are fatal to the session.
        """
        client = self._client_factory(reconnection=False)
        client.on(EVENT_MESSAGE, self._handle_message)
        client.on("connect", lambda: logger.info("Connected to relay %s", server_url))
        client.on("disconnect", lambda *args: logger.warning("Disconnected from relay %s", server_url))

        logger.info("Connecting to %s", server_url)
        client.connect(server_url, transports=["websocket"])

        self._sleep(self.settle_delay)

        logger.info("Joining room %r as %r", room_name, display_name)
        try:
            client.emit(EVENT_JOIN, make_join(display_name, room_name))
        except Exception:
            client.disconnect()
            raise
        return Connection(client=client, room_name=room_name, display_name=display_name)

    def send_event(self, connection: Connection, event: RoomEvent) -> None:
        """Emit a room event. Send errors propagate to the caller."""
        payload = event.to_dict()
        logger.debug("Emitting %s event: %s", event.event_type.value, payload)
        connection.client.emit(EVENT_MESSAGE, payload)

    def close(self, connection: Optional[Connection]) -> None:
        if connection is None:
            return
        try:
            connection.client.disconnect()
        except Exception as e:
            logger.warning("Error during disconnect: %s", e)

    def _handle_message(self, *payloads: Any) -> None:
        """Socket.IO "message" handler; never raises."""
        logger.debug("Received payload: %r", payloads)

        if not payloads:
            logger.warning("Received empty payload")
            return

        first = payloads[0]
        if isinstance(first, (bytes, bytearray)):
            logger.warning("Received non-text payload")
            return

        try:
            event = RoomEvent.from_dict(first)
        except ProtocolError as e:
            logger.warning("Failed to parse RoomEvent from payload: %s", e)
            return

        try:
            self.apply_event(event)
        except MpvError as e:
            logger.error("Failed to apply %s event: %s", event.event_type.value, e)

    def apply_event(self, event: RoomEvent) -> None:
        """Seek to the event position, then mirror its pause state."""
        with self._apply_lock:
            self._apply_locked(event)

    def _apply_locked(self, event: RoomEvent) -> None:
        self.player.set_property("time-pos", event.current_time)

        paused = event.event_type is MediaPlayerEvent.PAUSE
        if self.player.get_property("pause") == paused:
            # mpv does not notify for an unchanged value
            logger.debug("Pause already %s; nothing to absorb", paused)
            return

        self.suppressor.absorb_one()
        try:
            self.player.set_property("pause", paused)
        except MpvError:
            # no notification will arrive for a failed write
            self.suppressor.try_consume()
            raise
        logger.info("Applied remote %s at %.3fs", event.event_type.value, event.current_time)
