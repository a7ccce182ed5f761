"""Syncwatch session: enable/disable lifecycle and the mpv event loop."""
from __future__ import annotations
import logging
from typing import Optional

from syncwatch.config import SyncwatchConfig
from syncwatch.connection import Connection, RelayTransport
from syncwatch.echo import EchoSuppressor
from syncwatch.mpv_controller import ClientMessage, MpvError, PropertyChange, Shutdown
from syncwatch.protocol import MediaPlayerEvent, RoomEvent

logger = logging.getLogger("syncwatch.session")

# observe_property reply id for the pause property
PAUSE_PROPERTY_ID = 1

TOGGLE_BINDING = ("key-binding", "toggle", "u--")
OSD_DURATION_MS = 2000


class SyncSession:
    """Forwards local pause/unpause to the room while enabled."""

    def __init__(self, player, transport: RelayTransport, config: SyncwatchConfig,
                 suppressor: EchoSuppressor):
        self.player = player
        self.transport = transport
        self.config = config
        self.suppressor = suppressor
        self.is_enabled = False
        self.connection: Optional[Connection] = None

    @property
    def name(self) -> str:
        return self.config.name

    def start(self) -> None:
        """Connect, join and run the event loop until mpv shuts down.

        Raises if the relay connection or join fails.
        """
        if self.config.enable_on_start:
            self.enable()

        self._register_toggle_key()

        self.connection = self.transport.connect_and_join(
            self.config.server_url, self.config.name, self.config.room_name
        )
        try:
            self.run()
        finally:
            self.transport.close(self.connection)

    def run(self) -> None:
        while True:
            event = self.player.wait_event()
            if event is None:
                continue
            if isinstance(event, Shutdown):
                logger.info("Shutdown received")
                break
            try:
                if isinstance(event, PropertyChange) and event.id == PAUSE_PROPERTY_ID:
                    if self.is_enabled:
                        self.handle_pause_unpause(event.data)
                    else:
                        logger.debug("Dropping pause change queued before disable")
                elif isinstance(event, ClientMessage):
                    self.handle_client_message(event.args)
            except Exception as e:
                logger.error("Error handling event: %s", e)

    def enable(self) -> None:
        logger.debug("Enabling syncwatch")
        if self.is_enabled:
            return
        self.is_enabled = True

        # Nothing is observed while disabled, so any count left is stale.
        # Observing fires exactly one unconditional notification.
        while self.suppressor.try_consume():
            pass
        self.suppressor.absorb_one()
        try:
            self.player.observe_property(PAUSE_PROPERTY_ID, "pause")
        except MpvError as e:
            logger.error("Failed to observe pause property: %s", e)
            self.suppressor.try_consume()

        self._osd("syncwatch enabled")

    def disable(self) -> None:
        logger.debug("Disabling syncwatch")
        if not self.is_enabled:
            return
        self.is_enabled = False

        try:
            self.player.unobserve_property(PAUSE_PROPERTY_ID)
        except MpvError as e:
            logger.error("Failed to unobserve pause property: %s", e)

        self._osd("syncwatch disabled")

    def toggle(self) -> None:
        if self.is_enabled:
            self.disable()
        else:
            self.enable()

    def handle_pause_unpause(self, is_paused) -> None:
        if not isinstance(is_paused, bool):
            logger.warning("Pause property change with non-bool data: %r", is_paused)
            return

        logger.debug("Pause state changed: %s", is_paused)

        if self.suppressor.try_consume():
            logger.debug("Ignoring pause/unpause event")
            return

        current_time = self.player.get_property("time-pos")
        if current_time is None:
            logger.warning("No playback position; dropping %s", "pause" if is_paused else "play")
            return

        if self.connection is None:
            logger.warning("No connection to relay server")
            return

        event = RoomEvent(
            location=self.config.room_name,
            event_type=MediaPlayerEvent.PAUSE if is_paused else MediaPlayerEvent.PLAY,
            element=0,
            current_time=max(0.0, float(current_time)),
            playback_rate=0.0,
        )
        self.transport.send_event(self.connection, event)

    def handle_client_message(self, args: list[str]) -> None:
        logger.debug("Received client message: %s", " ".join(args))
        if tuple(args[:len(TOGGLE_BINDING)]) == TOGGLE_BINDING:
            self.toggle()

    def _register_toggle_key(self) -> None:
        key = self.config.toggle_key
        if not key:
            return
        try:
            self.player.keybind(key, "script-message " + " ".join(TOGGLE_BINDING))
            logger.info("Toggle bound to %s", key)
        except MpvError as e:
            logger.error("Failed to bind toggle key %s: %s", key, e)

    def _osd(self, text: str) -> None:
        try:
            self.player.show_text(text, OSD_DURATION_MS)
        except MpvError as e:
            logger.warning("Failed to show OSD message %r: %s", text, e)
