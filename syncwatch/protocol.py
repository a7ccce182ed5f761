"""Syncwatch room protocol definitions."""
from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Any


# ---- Socket.IO event names ----
EVENT_JOIN = "join"
EVENT_MESSAGE = "message"


class ProtocolError(ValueError):
    """Raised when a payload is not a valid room event."""


class MediaPlayerEvent(str, enum.Enum):
    PLAY = "play"
    PAUSE = "pause"
    SEEKED = "seeked"


@dataclass(frozen=True)
class RoomEvent:
    location: str
    event_type: MediaPlayerEvent
    element: int
    current_time: float
    playback_rate: float

    def to_dict(self) -> dict[str, Any]:
        if self.current_time < 0:
            raise ProtocolError(f"currentTime must be non-negative, got {self.current_time}")
        return {
            "location": self.location,
            "type": self.event_type.value,
            "element": self.element,
            "currentTime": float(self.current_time),
            "playbackRate": float(self.playback_rate),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> RoomEvent:
        """Decode a wire payload. Unknown or missing fields are a hard failure."""
        if not isinstance(raw, dict):
            raise ProtocolError(f"expected a JSON object, got {type(raw).__name__}")
        try:
            location = raw["location"]
            type_raw = raw["type"]
            element = raw["element"]
            current_time = raw["currentTime"]
            playback_rate = raw["playbackRate"]
        except KeyError as e:
            raise ProtocolError(f"missing field {e.args[0]!r}") from None

        try:
            event_type = MediaPlayerEvent(type_raw)
        except ValueError:
            raise ProtocolError(f"unknown event type {type_raw!r}") from None

        if not isinstance(location, str):
            raise ProtocolError("location must be a string")
        # bool is an int subclass; reject it explicitly
        if isinstance(element, bool) or not isinstance(element, int) or element < 0:
            raise ProtocolError("element must be a non-negative integer")
        for field_name, value in (("currentTime", current_time), ("playbackRate", playback_rate)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ProtocolError(f"{field_name} must be a number")

        return cls(
            location=location,
            event_type=event_type,
            element=element,
            current_time=float(current_time),
            playback_rate=float(playback_rate),
        )


def make_join(name: str, room: str) -> dict[str, str]:
    return {"name": name, "room": room}
