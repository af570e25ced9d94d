"""Plain TCP helpers: connecting with retries, listening and framed messages."""

from __future__ import annotations

import logging
import random
import socket
import struct
import time
from typing import Optional, Tuple, Union

log = logging.getLogger(__name__)

RETRIES = 10
_LENGTH = struct.Struct("<q")

Port = Union[str, int]


class NetworkError(OSError):
    """A network operation failed."""


def _addrinfo(host: Optional[str], port: Port, passive: bool):
    flags = socket.AI_PASSIVE if passive and host is None else 0
    try:
        infos = socket.getaddrinfo(
            host, str(port), socket.AF_UNSPEC, socket.SOCK_STREAM, 0, flags
        )
    except socket.gaierror as exc:
        raise NetworkError(f"Couldn't open {host}:{port}! (Err: {exc})") from exc
    if not infos:
        raise NetworkError(f"Couldn't open {host}:{port}!")
    return infos[0]


def random_sleep(timeout_secs: int) -> float:
    """Sleep a random time below ``timeout_secs + 1`` seconds; return it."""
    delay = random.randint(0, timeout_secs) + random.randrange(1_000_000) / 1e6
    time.sleep(delay)
    return delay


def connect_to_addr(host: str, port: Port, retries: int = RETRIES) -> socket.socket:
    """Connect to ``host:port``, retrying after random pauses."""
    if retries < 1:
        raise ValueError("retries must be at least 1")
    family, socktype, proto, _, address = _addrinfo(host, port, passive=False)
    last_error: Optional[OSError] = None
    for attempt in range(1, retries + 1):
        sock = socket.socket(family, socktype, proto)
        try:
            sock.connect(address)
            return sock
        except OSError as exc:
            sock.close()
            last_error = exc
            log.warning("Connection attempt %d to %s:%s failed: %s", attempt, host, port, exc)
            random_sleep(10)
    raise NetworkError(
        f"Failed to connect to {host}:{port}! (Err: {last_error}; "
        "this may mean that the connection was refused.)"
    )


def listen_at_addr(host: Optional[str], port: Port) -> socket.socket:
    """Open a listening socket at ``host:port``; ``None`` listens on all addresses."""
    family, socktype, proto, _, address = _addrinfo(host, port, passive=True)
    try:
        sock = socket.socket(family, socktype, proto)
    except OSError as exc:
        raise NetworkError(f"Couldn't open socket for {host}:{port}: {exc}") from exc
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        last_error: Optional[OSError] = None
        for step in (lambda: sock.bind(address), lambda: sock.listen(socket.SOMAXCONN)):
            for _ in range(RETRIES):
                try:
                    step()
                    break
                except OSError as exc:
                    last_error = exc
            else:
                raise NetworkError(f"Couldn't listen at {host}:{port}: {last_error}")
    except OSError:
        sock.close()
        raise
    return sock


def accept_connection(sock: socket.socket) -> Tuple[socket.socket, str, int]:
    """Accept one connection; return it with the peer's address and port."""
    try:
        conn, peer = sock.accept()
    except OSError as exc:
        raise NetworkError(f"Connection accept failed: {exc}") from exc
    return conn, peer[0], peer[1]


def send_all(sock: socket.socket, data: bytes) -> int:
    """Send every byte of ``data``; return the number sent."""
    try:
        sock.sendall(data)
    except OSError as exc:
        raise NetworkError(f"Network IO failure: {exc}") from exc
    return len(data)


def recv_exact(sock: socket.socket, length: int) -> bytes:
    """Receive exactly ``length`` bytes."""
    if length < 0:
        raise ValueError("length must be non-negative")
    buffer = bytearray()
    while len(buffer) < length:
        try:
            chunk = sock.recv(length - len(buffer))
        except OSError as exc:
            raise NetworkError(f"Network IO failure: {exc}") from exc
        if not chunk:
            raise NetworkError("Network IO failure: connection closed")
        buffer.extend(chunk)
    return bytes(buffer)


def send_msg(sock: socket.socket, data: bytes) -> int:
    """Send ``data`` preceded by its length as a 64-bit integer."""
    send_all(sock, _LENGTH.pack(len(data)) + bytes(data))
    return len(data)


def recv_msg(sock: socket.socket) -> bytes:
    """Receive one length-prefixed message."""
    (length,) = _LENGTH.unpack(recv_exact(sock, _LENGTH.size))
    if length < 0:
        raise NetworkError(f"invalid message length {length}")
    return recv_exact(sock, length)