"""
Daemon address resolution
Turns tcp://host:port[/path] and unix:///path/to/socket into a transport
"""

import errno
import http.client
import os
import select
import socket
import sys
import threading
import time
from dataclasses import dataclass
from typing import Optional, Tuple, Union
from urllib.parse import urlsplit

from .exceptions import InvalidAddress, SocketPathTooLong, UnsupportedProtocol

# Connect timeout applied to every new Unix socket connection
DEFAULT_TIMEOUT = 32

# Size of sockaddr_un.sun_path
MAX_UNIX_PATH = 108 if sys.platform.startswith('linux') else 104

# How often a pending connect rechecks for abort
DIAL_POLL_INTERVAL = 0.05

_PENDING = {errno.EINPROGRESS, errno.EALREADY, errno.EAGAIN, errno.EWOULDBLOCK}


def dial(family: int, address, timeout: Optional[float],
         aborted: threading.Event) -> socket.socket:
    """
    Connect a new stream socket

    The connect is non-blocking so that another thread can give up on it
    by setting aborted.

    Raises:
        ConnectionAbortedError: aborted was set before the connect finished
        socket.timeout: timeout passed first
        OSError: connect failed
    """
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        _connect(sock, address, timeout, aborted)
    except OSError:
        sock.close()
        raise
    return sock


def _connect(sock: socket.socket, address, timeout: Optional[float],
             aborted: threading.Event):
    deadline = None if timeout is None else time.monotonic() + timeout
    sock.setblocking(False)
    while True:
        if aborted.is_set():
            raise ConnectionAbortedError("dial aborted")

        err = sock.connect_ex(address)
        if err in (0, errno.EISCONN):
            return
        if err not in _PENDING:
            raise OSError(err, os.strerror(err))

        wait = DIAL_POLL_INTERVAL
        if deadline is not None:
            left = deadline - time.monotonic()
            if left <= 0:
                raise socket.timeout("timed out")
            wait = min(wait, left)

        if err in (errno.EAGAIN, errno.EWOULDBLOCK):
            # Unix socket backlog is full, nothing to select on
            aborted.wait(wait)
        else:
            select.select([], [sock], [], wait)


def dial_tcp(host: str, port: int, timeout: Optional[float],
             aborted: threading.Event) -> socket.socket:
    """Dial each address host resolves to until one connects"""
    last_error = None
    for family, _, _, _, address in socket.getaddrinfo(host, port, 0, socket.SOCK_STREAM):
        try:
            sock = dial(family, address, timeout, aborted)
        except ConnectionAbortedError:
            raise
        except OSError as e:
            last_error = e
            continue
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return sock
    raise last_error or OSError(f"no addresses for {host}")


class UnixHTTPConnection(http.client.HTTPConnection):
    """HTTP connection over Unix socket"""

    def __init__(self, socket_path: str, timeout: Optional[float] = None,
                 connect_timeout: float = DEFAULT_TIMEOUT):
        super().__init__('docker', timeout=timeout)
        self.socket_path = socket_path
        self.connect_timeout = connect_timeout
        self.aborted = threading.Event()

    def connect(self):
        """Connect to Unix socket"""
        sock = dial(socket.AF_UNIX, self.socket_path, self.connect_timeout, self.aborted)
        sock.settimeout(self.timeout)
        self.sock = sock


class TCPHTTPConnection(http.client.HTTPConnection):
    """HTTP connection over TCP whose connect can be aborted"""

    def __init__(self, host: str, port: Optional[int] = None,
                 timeout: Optional[float] = None):
        super().__init__(host, port, timeout=timeout)
        self.aborted = threading.Event()

    def connect(self):
        sock = dial_tcp(self.host, self.port, self.timeout, self.aborted)
        sock.settimeout(self.timeout)
        self.sock = sock


class TCPHTTPSConnection(http.client.HTTPSConnection):
    """HTTPS connection over TCP whose connect can be aborted"""

    def __init__(self, host: str, port: Optional[int] = None,
                 timeout: Optional[float] = None):
        super().__init__(host, port, timeout=timeout)
        self.aborted = threading.Event()

    def connect(self):
        sock = dial_tcp(self.host, self.port, self.timeout, self.aborted)
        sock.settimeout(self.timeout)
        self.sock = self._context.wrap_socket(sock, server_hostname=self.host)


@dataclass(frozen=True)
class TCPTransport:
    """Plain TCP dialing to host:port"""

    host: str
    port: Optional[int] = None
    disable_compression = False

    def new_connection(self, scheme: str,
                       timeout: Optional[float] = None) -> http.client.HTTPConnection:
        if scheme == 'https':
            return TCPHTTPSConnection(self.host, self.port, timeout=timeout)
        return TCPHTTPConnection(self.host, self.port, timeout=timeout)


@dataclass(frozen=True)
class UnixTransport:
    """Every connection dials the same local socket; host and scheme are ignored"""

    socket_path: str
    disable_compression = True

    def new_connection(self, scheme: str,
                       timeout: Optional[float] = None) -> http.client.HTTPConnection:
        connect_timeout = DEFAULT_TIMEOUT
        if timeout is not None:
            connect_timeout = min(connect_timeout, timeout)
        return UnixHTTPConnection(self.socket_path, timeout=timeout,
                                  connect_timeout=connect_timeout)


Transport = Union[TCPTransport, UnixTransport]


def parse_host(host: str) -> Tuple[Transport, str, str]:
    """
    Parse a daemon address

    urlsplit cannot be used on the whole address because it mangles
    unix:///path, so the scheme is split off by hand first.

    Args:
        host: Address such as tcp://127.0.0.1:2375 or unix:///var/run/docker.sock

    Returns:
        (transport, effective host, base path)

    Raises:
        InvalidAddress: No scheme separator or unusable tcp address
        UnsupportedProtocol: Scheme other than tcp or unix
        SocketPathTooLong: Socket path exceeds MAX_UNIX_PATH
    """
    protocol, sep, addr = host.partition('://')
    if not sep:
        raise InvalidAddress(f"unable to parse docker host `{host}`")

    if protocol == 'tcp':
        parsed = urlsplit('tcp://' + addr)
        try:
            port = parsed.port
        except ValueError as e:
            raise InvalidAddress(f"invalid port in docker host `{host}`: {e}") from e
        if not parsed.hostname:
            raise InvalidAddress(f"missing host in docker host `{host}`")
        netloc = parsed.netloc.rpartition('@')[2]
        return TCPTransport(parsed.hostname, port), netloc, parsed.path

    if protocol == 'unix':
        if len(addr.encode('utf-8')) > MAX_UNIX_PATH:
            raise SocketPathTooLong(f"Unix socket path {addr!r} is too long")
        return UnixTransport(addr), addr, ''

    raise UnsupportedProtocol(f"Protocol {protocol} not supported")
