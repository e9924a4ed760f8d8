# link.py
"""Text command / acknowledgment links to the vehicle."""
from __future__ import annotations

import logging
import socket
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, List, Optional, Protocol, Tuple

import serial

from drone_tracking.config import LinkConfig

logger = logging.getLogger(__name__)


# ------------------------ Exceptions ---------------------------
class LinkError(RuntimeError):
    """Raised when the link cannot send or receive."""


class LinkTimeout(LinkError):
    """Raised when a blocking request gets no reply in time."""


# ------------------------- Protocol ----------------------------
class CommandLink(Protocol):
    def send(self, text: str) -> None: ...

    def try_receive(self) -> Optional[str]: ...

    def close(self) -> None: ...


def _wait_for_reply(link: "CommandLink", text: str, timeout: float, poll_s: float) -> str:
    deadline = time.monotonic() + timeout
    link.send(text)
    while time.monotonic() < deadline:
        reply = link.try_receive()
        if reply is not None:
            return reply
        time.sleep(poll_s)
    raise LinkTimeout(f"Timeout waiting for response to {text!r}")


# ------------------------ Tello / UDP ---------------------------
@dataclass(slots=True)
class _UdpCfg:
    host: str
    port: int
    local_port: int
    timeout: float = 5.0


class TelloLink:
    """Tello SDK text protocol: one UDP datagram per command, one reply each."""

    def __init__(
        self,
        host: str = "192.168.10.1",
        port: int = 8889,
        local_port: int = 8889,
        timeout: float = 5.0,
    ):
        self._cfg = _UdpCfg(host, port, local_port, timeout)
        self._sock: Optional[socket.socket] = None

    # ---------------- Socket plumbing ----------------
    def open(self) -> None:
        if self._sock is not None:
            return
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind(("", self._cfg.local_port))
        except OSError as exc:
            sock.close()
            raise LinkError(f"Cannot bind UDP port {self._cfg.local_port}: {exc}") from exc
        sock.setblocking(False)
        self._sock = sock
        logger.info("[Link] Tello link on :%d -> %s:%d",
                    self._cfg.local_port, self._cfg.host, self._cfg.port)

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
        self._sock = None

    def is_open(self) -> bool:
        return self._sock is not None

    # ------------------ Public API -------------------
    def send(self, text: str) -> None:
        if self._sock is None:
            raise LinkError("Tello link is not open")
        try:
            self._sock.sendto(text.encode("utf-8"), (self._cfg.host, self._cfg.port))
        except OSError as exc:
            raise LinkError(f"Failed to send {text!r}: {exc}") from exc

    def try_receive(self) -> Optional[str]:
        if self._sock is None:
            raise LinkError("Tello link is not open")
        try:
            data, _addr = self._sock.recvfrom(1518)
        except (BlockingIOError, InterruptedError):
            return None
        except OSError as exc:
            raise LinkError(f"Receive failed: {exc}") from exc
        return data.decode("utf-8", errors="replace").strip()

    def request(self, text: str, timeout: Optional[float] = None, poll_s: float = 0.01) -> str:
        """Send and wait for the reply. Only for start-up/shutdown, never per frame."""
        return _wait_for_reply(self, text, self._cfg.timeout if timeout is None else timeout, poll_s)

    # ---------------- Context / repr ---------------
    def __enter__(self) -> "TelloLink":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"<TelloLink {self._cfg.host}:{self._cfg.port} ({state})>"


# -------------------------- Serial ------------------------------
@dataclass(slots=True)
class _SerialCfg:
    port: str
    baudrate: int = 115_200
    timeout: float = 2.0


class SerialLink:
    """Line-oriented ASCII protocol over a serial port (rovers, turret firmware)."""

    def __init__(
        self,
        port: str | Path,
        baudrate: int = 115_200,
        timeout: float = 2.0,
        *,
        eol: str = "\n",
    ):
        self._cfg = _SerialCfg(str(port), baudrate, timeout)
        self._eol = eol.encode()
        self._ser: Optional[serial.Serial] = None
        self._rx = bytearray()
        self._lock = threading.Lock()

    # ---------------- Serial plumbing ----------------
    def open(self) -> None:
        if self._ser and self._ser.is_open:
            return
        try:
            self._ser = serial.Serial(
                port=self._cfg.port,
                baudrate=self._cfg.baudrate,
                timeout=0,
                write_timeout=self._cfg.timeout,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
            )
        except serial.SerialException as exc:
            raise LinkError(f"Cannot open {self._cfg.port}: {exc}") from exc
        time.sleep(0.2)
        if self._ser.is_open:
            self._ser.reset_input_buffer()
        logger.info("[Link] Serial link on %s @ %d", self._cfg.port, self._cfg.baudrate)

    def close(self) -> None:
        if self._ser and self._ser.is_open:
            self._ser.close()
        self._ser = None
        self._rx.clear()

    def is_open(self) -> bool:
        return bool(self._ser and self._ser.is_open)

    # ------------------ Public API -------------------
    def send(self, text: str) -> None:
        if not self.is_open():
            raise LinkError("Serial port is not open")
        with self._lock:
            try:
                self._ser.write(text.encode() + self._eol)
                self._ser.flush()
            except serial.SerialException as exc:
                raise LinkError(f"Failed to send {text!r}: {exc}") from exc

    def try_receive(self) -> Optional[str]:
        """Return one complete line if available, without blocking."""
        if not self.is_open():
            raise LinkError("Serial port is not open")
        with self._lock:
            try:
                waiting = self._ser.in_waiting
                if waiting:
                    self._rx.extend(self._ser.read(waiting))
            except serial.SerialException as exc:
                raise LinkError(f"Receive failed: {exc}") from exc
            idx = self._rx.find(self._eol)
            if idx < 0:
                return None
            raw = bytes(self._rx[:idx])
            del self._rx[: idx + len(self._eol)]
        line = raw.decode(errors="replace").strip()
        return line or None

    def request(self, text: str, timeout: Optional[float] = None, poll_s: float = 0.01) -> str:
        return _wait_for_reply(self, text, self._cfg.timeout if timeout is None else timeout, poll_s)

    # ---------------- Context / repr ---------------
    def __enter__(self) -> "SerialLink":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"<SerialLink port={self._cfg.port!r} ({state})>"


# -------------------------- Dry run -----------------------------
class DryRunLink:
    """Logs commands instead of moving anything; acknowledges on the next poll."""

    def __init__(self, reply: str = "ok"):
        self.reply = reply
        self.sent: List[str] = []
        self._pending: Deque[str] = deque()
        self._open = True

    def open(self) -> None:
        self._open = True

    def send(self, text: str) -> None:
        if not self._open:
            raise LinkError("Dry-run link is closed")
        logger.info("[Link] (dry run) %s", text)
        self.sent.append(text)
        self._pending.append(self.reply)

    def try_receive(self) -> Optional[str]:
        return self._pending.popleft() if self._pending else None

    def request(self, text: str, timeout: Optional[float] = None, poll_s: float = 0.0) -> str:
        self.send(text)
        return self._pending.popleft()

    def close(self) -> None:
        self._open = False
        self._pending.clear()

    def is_open(self) -> bool:
        return self._open


def build_link(cfg: LinkConfig) -> Tuple[str, "CommandLink"]:
    """Return ``(label, link)`` for the configured kind; the link is not opened."""
    if cfg.kind == "tello":
        return "tello", TelloLink(cfg.tello_host, cfg.tello_port, cfg.local_port, cfg.timeout_s)
    if cfg.kind == "serial":
        return "serial", SerialLink(cfg.serial_port, cfg.baudrate, cfg.timeout_s)
    return "dry-run", DryRunLink()
