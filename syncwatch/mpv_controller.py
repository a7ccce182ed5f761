"""Syncwatch mpv controller via JSON IPC socket."""
from __future__ import annotations
import json
import logging
import os
import queue
import socket
import subprocess
import tempfile
import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence, Union

logger = logging.getLogger("syncwatch.mpv")

_REQUEST_ID = 0
_REQUEST_ID_LOCK = threading.Lock()


def _next_id() -> int:
    global _REQUEST_ID
    with _REQUEST_ID_LOCK:
        _REQUEST_ID += 1
        return _REQUEST_ID


class MpvError(Exception):
    """An mpv IPC command failed, timed out, or the socket is gone."""


@dataclass
class Shutdown:
    pass


@dataclass
class PropertyChange:
    id: int
    name: str
    data: Any = None


@dataclass
class ClientMessage:
    args: list[str] = field(default_factory=list)


MpvEvent = Union[Shutdown, PropertyChange, ClientMessage]


class MpvController:
    """
    Controls mpv via JSON IPC socket.

    Either spawns mpv as a subprocess (start) or attaches to an mpv that was
    launched with --input-ipc-server (attach). A reader thread splits the
    socket stream into command responses, which resolve pending requests,
    and events, which are queued for wait_event. Command methods are safe
    to call from any thread.
    """

    def __init__(self, socket_path: Optional[str] = None, mpv_binary: str = "mpv",
                 command_timeout: float = 3.0):
        self._socket_path = socket_path or str(
            Path(tempfile.gettempdir()) / f"syncwatch_mpv_{os.getpid()}.sock"
        )
        self._mpv_binary = mpv_binary
        self._command_timeout = command_timeout
        self._proc: Optional[subprocess.Popen] = None
        self._sock: Optional[socket.socket] = None
        self._write_lock = threading.Lock()
        self._pending: dict[int, Future] = {}
        self._pending_lock = threading.Lock()
        self._events: "queue.Queue[MpvEvent]" = queue.Queue()
        self._connected = False
        self._read_thread: Optional[threading.Thread] = None

    @property
    def socket_path(self) -> str:
        return self._socket_path

    def start(self, media: Sequence[str] = ()) -> bool:
        """Start mpv subprocess and connect to its IPC socket."""
        if os.path.exists(self._socket_path):
            os.unlink(self._socket_path)

        cmd = [
            self._mpv_binary,
            "--idle=yes",
            "--force-window=yes",
            "--no-terminal",
            f"--input-ipc-server={self._socket_path}",
            *media,
        ]
        try:
            self._proc = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            logger.info("mpv started (pid=%d)", self._proc.pid)
        except FileNotFoundError:
            logger.error("%s not found; install mpv to use syncwatch", self._mpv_binary)
            return False

        for _ in range(50):
            time.sleep(0.1)
            if os.path.exists(self._socket_path):
                break
        else:
            logger.error("mpv IPC socket did not appear")
            return False

        return self.attach()

    def attach(self) -> bool:
        """Connect to the IPC socket of a running mpv."""
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self._socket_path)
        except OSError as e:
            sock.close()
            logger.error("Failed to connect to mpv socket %s: %s", self._socket_path, e)
            return False
        self.attach_socket(sock)
        return True

    def attach_socket(self, sock: socket.socket) -> None:
        self._sock = sock
        self._connected = True
        self._read_thread = threading.Thread(
            target=self._read_loop, name="mpv-ipc-reader", daemon=True
        )
        self._read_thread.start()
        logger.info("Connected to mpv IPC socket")

    def _read_loop(self) -> None:
        """Read responses and events from mpv until the socket closes."""
        stream = self._sock.makefile("rb")
        try:
            for line in stream:
                self._handle_line(line)
        except (OSError, ValueError) as e:
            logger.debug("mpv read error: %s", e)
        finally:
            self._connected = False
            self._fail_pending(MpvError("mpv IPC connection closed"))
            self._events.put(Shutdown())
            logger.info("mpv IPC reader stopped")

    def _handle_line(self, line: bytes) -> None:
        try:
            data = json.loads(line.decode("utf-8").strip())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Unparseable line from mpv: %s", e)
            return
        if not isinstance(data, dict):
            return
        if "event" in data:
            event = self._translate_event(data)
            if event is not None:
                self._events.put(event)
        elif "request_id" in data:
            with self._pending_lock:
                fut = self._pending.pop(data["request_id"], None)
            if fut and not fut.done():
                fut.set_result(data)

    @staticmethod
    def _translate_event(data: dict) -> Optional[MpvEvent]:
        event = data.get("event")
        if event == "shutdown":
            return Shutdown()
        if event == "property-change":
            return PropertyChange(id=data.get("id", 0), name=data.get("name", ""), data=data.get("data"))
        if event == "client-message":
            return ClientMessage(args=[str(a) for a in data.get("args", [])])
        return None

    def _fail_pending(self, exc: Exception) -> None:
        with self._pending_lock:
            pending, self._pending = self._pending, {}
        for fut in pending.values():
            if not fut.done():
                fut.set_exception(exc)

    def command(self, *args: Any) -> Any:
        """Send a command to mpv and return its data; raises MpvError on failure."""
        if not self._connected or not self._sock:
            raise MpvError("not connected to mpv")
        req_id = _next_id()
        payload = json.dumps({"command": list(args), "request_id": req_id}) + "\n"
        fut: Future = Future()
        with self._pending_lock:
            self._pending[req_id] = fut
        try:
            with self._write_lock:
                self._sock.sendall(payload.encode("utf-8"))
            result = fut.result(timeout=self._command_timeout)
        except FutureTimeoutError:
            raise MpvError(f"mpv command timed out: {args[0] if args else ''}") from None
        except OSError as e:
            raise MpvError(f"mpv command error: {e}") from e
        finally:
            with self._pending_lock:
                self._pending.pop(req_id, None)

        error = result.get("error", "success")
        if error != "success":
            raise MpvError(f"{args[0] if args else ''}: {error}")
        return result.get("data")

    def get_property(self, name: str) -> Any:
        return self.command("get_property", name)

    def set_property(self, name: str, value: Any) -> None:
        self.command("set_property", name, value)

    def observe_property(self, observe_id: int, name: str) -> None:
        self.command("observe_property", observe_id, name)

    def unobserve_property(self, observe_id: int) -> None:
        self.command("unobserve_property", observe_id)

    def show_text(self, text: str, duration_ms: int = 2000) -> None:
        self.command("show-text", text, duration_ms)

    def keybind(self, key: str, command: str) -> None:
        self.command("keybind", key, command)

    def wait_event(self, timeout: Optional[float] = None) -> Optional[MpvEvent]:
        """Block until the next mpv event. Returns None on timeout."""
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None

    def stop_subprocess(self) -> None:
        """Close the IPC socket and terminate mpv if we spawned it."""
        self._connected = False
        if self._sock:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._sock.close()
        if self._proc:
            self._proc.terminate()
            try:
                self._proc.wait(timeout=3)
            except subprocess.TimeoutExpired:
                self._proc.kill()
            if os.path.exists(self._socket_path):
                os.unlink(self._socket_path)
        logger.info("mpv stopped")

    @property
    def is_connected(self) -> bool:
        return self._connected
