"""Fakes for mpv and the Socket.IO client."""
import queue

import pytest
from socketio import exceptions as sio_exceptions

from syncwatch.config import SyncwatchConfig
from syncwatch.echo import EchoSuppressor
from syncwatch.mpv_controller import MpvError, PropertyChange, Shutdown


class FakePlayer:
    """In-memory mpv: property writes notify observers only on change, like mpv."""

    def __init__(self, time_pos=0.0, paused=False, suppressor=None):
        self.props = {"time-pos": time_pos, "pause": paused}
        self.observed = {}
        self.osd = []
        self.keybinds = []
        self.events = queue.Queue()
        self.failing = set()
        self.suppressor = suppressor
        self.pending_at_pause_write = []

    def get_property(self, name):
        if name in self.failing:
            raise MpvError(f"get_property {name}: property unavailable")
        return self.props.get(name)

    def set_property(self, name, value):
        if name in self.failing:
            raise MpvError(f"set_property {name}: property unavailable")
        if name == "pause" and self.suppressor is not None:
            self.pending_at_pause_write.append(self.suppressor.pending)
        old = self.props.get(name)
        self.props[name] = value
        if old != value:
            self._notify(name, value)

    def observe_property(self, observe_id, name):
        if "observe" in self.failing:
            raise MpvError("observe_property: error")
        self.observed[observe_id] = name
        self.events.put(PropertyChange(observe_id, name, self.props.get(name)))

    def unobserve_property(self, observe_id):
        self.observed.pop(observe_id, None)

    def show_text(self, text, duration_ms=2000):
        self.osd.append(text)

    def keybind(self, key, command):
        self.keybinds.append((key, command))

    def wait_event(self, timeout=None):
        try:
            return self.events.get(timeout=1.0)
        except queue.Empty:
            return Shutdown()

    def user_pause(self, paused):
        self.set_property("pause", paused)

    def _notify(self, name, value):
        for observe_id, observed_name in self.observed.items():
            if observed_name == name:
                self.events.put(PropertyChange(observe_id, name, value))


class FakeSocketClient:
    def __init__(self, log, fail_connect=False, **kwargs):
        self.kwargs = kwargs
        self.log = log
        self.fail_connect = fail_connect
        self.handlers = {}
        self.connected = False

    def on(self, event, handler):
        self.handlers[event] = handler

    def connect(self, url, transports=None):
        self.log.append(("connect", url))
        if self.fail_connect:
            raise sio_exceptions.ConnectionError("connection refused")
        self.connected = True

    def emit(self, event, data=None):
        if not self.connected:
            raise sio_exceptions.BadNamespaceError("/ is not a connected namespace.")
        self.log.append(("emit", event, data))

    def disconnect(self):
        self.connected = False
        self.log.append(("disconnect",))

    def deliver(self, *payloads):
        self.handlers["message"](*payloads)

    @property
    def emitted(self):
        return [(entry[1], entry[2]) for entry in self.log if entry[0] == "emit"]


class FakeClientFactory:
    def __init__(self, fail_connect=False):
        self.log = []
        self.clients = []
        self.fail_connect = fail_connect

    def __call__(self, **kwargs):
        client = FakeSocketClient(self.log, fail_connect=self.fail_connect, **kwargs)
        self.clients.append(client)
        return client

    def sleep(self, seconds):
        self.log.append(("sleep", seconds))


@pytest.fixture
def suppressor():
    return EchoSuppressor()


@pytest.fixture
def player(suppressor):
    return FakePlayer(time_pos=0.0, paused=False, suppressor=suppressor)


@pytest.fixture
def client_factory():
    return FakeClientFactory()


@pytest.fixture
def config():
    return SyncwatchConfig(
        enable_on_start=True,
        server_url="http://relay.test:3000",
        name="alice",
        room_name="room1",
        toggle_key="alt+y",
        settle_delay_ms=500,
    )
