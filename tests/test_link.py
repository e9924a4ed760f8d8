from __future__ import annotations

import socket
import time

import pytest

from drone_tracking.config import LinkConfig
from drone_tracking.link import (
    DryRunLink,
    LinkError,
    LinkTimeout,
    SerialLink,
    TelloLink,
    build_link,
)


class FakeSerial:
    def __init__(self, incoming: bytes = b"") -> None:
        self.is_open = True
        self.incoming = bytearray(incoming)
        self.written = bytearray()

    @property
    def in_waiting(self) -> int:
        return len(self.incoming)

    def read(self, n: int) -> bytes:
        data = bytes(self.incoming[:n])
        del self.incoming[:n]
        return data

    def write(self, data: bytes) -> int:
        self.written.extend(data)
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False


def _serial_link(incoming: bytes = b"") -> tuple[SerialLink, FakeSerial]:
    link = SerialLink("/dev/null")
    fake = FakeSerial(incoming)
    link._ser = fake
    return link, fake


def test_dry_run_acknowledges_on_next_poll() -> None:
    link = DryRunLink()
    assert link.try_receive() is None
    link.send("left 30")
    assert link.sent == ["left 30"]
    assert link.try_receive() == "ok"
    assert link.try_receive() is None
    assert link.request("takeoff") == "ok"


def test_dry_run_refuses_after_close() -> None:
    link = DryRunLink()
    link.close()
    with pytest.raises(LinkError):
        link.send("up 20")


def test_serial_send_appends_eol() -> None:
    link, fake = _serial_link()
    link.send("forward 20")
    assert bytes(fake.written) == b"forward 20\n"


def test_serial_receive_returns_complete_lines_only() -> None:
    link, fake = _serial_link(b"o")
    assert link.try_receive() is None
    fake.incoming.extend(b"k\r\nerr")
    assert link.try_receive() == "ok"
    assert link.try_receive() is None
    fake.incoming.extend(b"or\n")
    assert link.try_receive() == "error"


def test_serial_closed_port_raises() -> None:
    link = SerialLink("/dev/null")
    with pytest.raises(LinkError):
        link.send("land")
    with pytest.raises(LinkError):
        link.try_receive()


def test_serial_request_times_out() -> None:
    link, _ = _serial_link()
    with pytest.raises(LinkTimeout):
        link.request("command", timeout=0.05)


def test_tello_link_requires_open() -> None:
    link = TelloLink()
    assert not link.is_open()
    with pytest.raises(LinkError):
        link.send("command")
    with pytest.raises(LinkError):
        link.try_receive()


def test_tello_link_round_trip_over_loopback() -> None:
    vehicle = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    vehicle.bind(("127.0.0.1", 0))
    vehicle.settimeout(2.0)
    try:
        with TelloLink("127.0.0.1", vehicle.getsockname()[1], local_port=0) as link:
            assert link.try_receive() is None
            link.send("command")
            data, addr = vehicle.recvfrom(1024)
            assert data == b"command"
            vehicle.sendto(b"ok\r\n", addr)

            reply = None
            deadline = time.monotonic() + 2.0
            while reply is None and time.monotonic() < deadline:
                reply = link.try_receive()
                time.sleep(0.01)
            assert reply == "ok"
        assert not link.is_open()
    finally:
        vehicle.close()


def test_build_link_picks_implementation() -> None:
    assert build_link(LinkConfig(kind="dry-run"))[0] == "dry-run"
    label, link = build_link(LinkConfig(kind="tello"))
    assert label == "tello" and isinstance(link, TelloLink)
    label, link = build_link(LinkConfig(kind="serial", serial_port="/dev/ttyUSB0"))
    assert label == "serial" and isinstance(link, SerialLink)
