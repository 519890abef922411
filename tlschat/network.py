"""Socket creation, binding, listening, accepting and connecting."""

from __future__ import annotations

import errno
import socket
import sys
from typing import Union

DEFAULT_BACKLOG = 10


class NetworkError(OSError):
    """A socket operation failed; the sockets involved have been closed."""


def _fail(message: str, *sockets: socket.socket | None) -> NetworkError:
    for sock in sockets:
        if sock is not None:
            sock.close()
    return NetworkError(message)


def create_socket(use_ipv6: bool = False, is_udp: bool = False) -> socket.socket:
    """A new IPv4 or IPv6, TCP or UDP socket."""
    family = socket.AF_INET6 if use_ipv6 else socket.AF_INET
    kind = socket.SOCK_DGRAM if is_udp else socket.SOCK_STREAM
    try:
        return socket.socket(family, kind)
    except OSError as exc:
        raise NetworkError("Fail to create a socket.") from exc


def bind_socket(sock: socket.socket, port: int, use_ipv6: bool = False) -> None:
    """Bind to every local address on the given port, with address reuse enabled."""
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    except OSError as exc:
        raise _fail("setsockopt(SO_REUSEADDR) failed", sock) from exc
    version = "IPv6" if use_ipv6 else "IPv4"
    host = "::" if use_ipv6 else ""
    try:
        sock.bind((host, port))
    except OSError as exc:
        reasons = {
            errno.EACCES: "Permission denied",
            errno.EADDRINUSE: "Address already in use",
            errno.EADDRNOTAVAIL: "Address not available",
        }
        reason = reasons.get(exc.errno)
        if reason is not None:
            message = f"Error: {reason} when binding {version} socket on port {port}"
        else:
            message = f"Failed to bind {version} socket: {exc.strerror or exc}"
        raise _fail(message, sock) from exc


def listen_on_socket(sock: socket.socket, backlog: int = DEFAULT_BACKLOG) -> None:
    """Start listening for connections."""
    try:
        sock.listen(backlog)
    except OSError as exc:
        if exc.errno == errno.EOPNOTSUPP:
            message = "EOPNOTSUPP: listen operation not supported on this socket"
        else:
            message = "Failed to listen on socket"
        raise _fail(message, sock) from exc


def accept_connection(sock: socket.socket) -> tuple[socket.socket, tuple]:
    """Accept one client; return its socket and address."""
    try:
        client, address = sock.accept()
    except OSError as exc:
        raise _fail("Failed to accept client connection", sock) from exc
    if client.family in (socket.AF_INET, socket.AF_INET6):
        print(f"Accepted connection from {address[0]}:{address[1]}")
    return client, address


def connect_to_server(
    hostname: str, port: Union[str, int], use_ipv6: bool = False
) -> socket.socket:
    """Resolve the host and connect to the first address that accepts a TCP connection."""
    family = socket.AF_INET6 if use_ipv6 else socket.AF_INET
    try:
        candidates = socket.getaddrinfo(hostname, port, family, socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise NetworkError(f"getaddrinfo error: {exc.strerror or exc}") from exc
    for cand_family, cand_type, cand_proto, _, address in candidates:
        sock = socket.socket(cand_family, cand_type, cand_proto)
        try:
            sock.connect(address)
        except OSError as exc:
            sock.close()
            print(f"Failed to connect: {exc.strerror or exc}", file=sys.stderr)
            continue
        print(f"Connected to server at {hostname}:{port}")
        return sock
    raise NetworkError(f"Unable to connect to server at {hostname}:{port}")