"""Shared test fixtures: mock Docker daemons over a Unix socket and over TCP."""

import errno
import http.server
import os
import shutil
import socket
import socketserver
import tempfile
import threading
from typing import Callable, List, NamedTuple

import pytest


class RecordedRequest(NamedTuple):
    method: str
    path: str
    headers: dict
    body: bytes


class DaemonHandler(http.server.BaseHTTPRequestHandler):
    """Records each request, then hands the response over to the server's behavior"""

    def do_POST(self):
        length = int(self.headers.get('Content-Length') or 0)
        body = self.rfile.read(length) if length else b''
        self.server.requests.append(
            RecordedRequest(self.command, self.path, dict(self.headers.items()), body)
        )
        try:
            self.server.behavior(self)
        except OSError:
            # client went away (cancelled call)
            pass

    def log_message(self, format, *args):
        pass


class UnixDaemonServer(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True


class TCPDaemonServer(http.server.ThreadingHTTPServer):
    daemon_threads = True


class MockDaemon:
    def __init__(self, server, host: str):
        self.server = server
        self.host = host
        self.partial_sent = threading.Event()
        self.release = threading.Event()
        server.requests = []

    @property
    def requests(self) -> List[RecordedRequest]:
        return self.server.requests


# ---------------------------------------------------------------------------
# Daemon behaviors
# ---------------------------------------------------------------------------


def respond_ok(handler):
    body = b'{"status":"Status: Image is up to date"}\n'
    handler.send_response(200)
    handler.send_header('Content-Type', 'application/json')
    handler.send_header('Content-Length', str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def respond_chunked(connection_close: bool):
    """HTTP/1.1 200 with a chunked progress stream, optionally with Connection: close"""
    def behavior(handler):
        handler.protocol_version = 'HTTP/1.1'
        handler.send_response(200)
        handler.send_header('Content-Type', 'application/json')
        handler.send_header('Transfer-Encoding', 'chunked')
        if connection_close:
            handler.send_header('Connection', 'close')
        handler.end_headers()
        for line in (b'{"status":"Pulling fs layer","id":"a1b2"}\n',
                     b'{"status":"Status: Downloaded newer image"}\n'):
            handler.wfile.write(b'%x\r\n%s\r\n' % (len(line), line))
        handler.wfile.write(b'0\r\n\r\n')
        handler.wfile.flush()
        handler.close_connection = True
    return behavior


def respond_error(status: int, body: bytes, content_type: str = 'text/plain'):
    def behavior(handler):
        handler.send_response(status)
        handler.send_header('Content-Type', content_type)
        handler.send_header('Content-Length', str(len(body)))
        handler.end_headers()
        handler.wfile.write(body)
    return behavior


def respond_streamed(daemon: MockDaemon):
    """200 first, then progress until released; the body ends when the connection closes"""
    def behavior(handler):
        handler.send_response(200)
        handler.send_header('Content-Type', 'application/json')
        handler.end_headers()
        handler.wfile.write(b'{"status":"Pulling fs layer","id":"a1b2"}\n')
        handler.wfile.flush()
        daemon.partial_sent.set()
        daemon.release.wait(10)
        handler.wfile.write(b'{"status":"Download complete","id":"a1b2"}\n')
        handler.wfile.write(b'{"status":"Status: Downloaded newer image"}\n')
        handler.wfile.flush()
    return behavior


def respond_hang(daemon: MockDaemon):
    """Never answers until released"""
    def behavior(handler):
        daemon.partial_sent.set()
        daemon.release.wait(10)
        respond_ok(handler)
    return behavior


def respond_truncated(status: int):
    """Announces more body than it sends"""
    def behavior(handler):
        handler.send_response(status)
        handler.send_header('Content-Length', '100')
        handler.end_headers()
        handler.wfile.write(b'short')
        handler.wfile.flush()
    return behavior


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def socket_dir():
    # tmp_path can exceed the sun_path limit
    path = tempfile.mkdtemp(prefix='dd')
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture()
def make_daemon(socket_dir):
    """Factory starting a mock daemon; behavior is a callable or a callable(daemon) factory."""
    daemons: List[MockDaemon] = []

    def factory(behavior: Callable = respond_ok, transport: str = 'unix',
                base_path: str = '', needs_daemon: bool = False) -> MockDaemon:
        if transport == 'unix':
            socket_path = os.path.join(socket_dir, f'docker{len(daemons)}.sock')
            server = UnixDaemonServer(socket_path, DaemonHandler)
            daemon = MockDaemon(server, f'unix://{socket_path}')
        else:
            server = TCPDaemonServer(('127.0.0.1', 0), DaemonHandler)
            host, port = server.server_address[:2]
            daemon = MockDaemon(server, f'tcp://{host}:{port}{base_path}')

        server.behavior = behavior(daemon) if needs_daemon else behavior
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        daemons.append(daemon)
        return daemon

    yield factory

    for daemon in daemons:
        daemon.release.set()
        daemon.server.shutdown()
        daemon.server.server_close()


@pytest.fixture()
def unix_daemon(make_daemon) -> MockDaemon:
    return make_daemon(respond_ok)


def _fill_backlog(family: int, address, count: int = 64) -> List[socket.socket]:
    """Queue non-blocking connects until the listener stops accepting more"""
    fillers = []
    for _ in range(count):
        filler = socket.socket(family, socket.SOCK_STREAM)
        filler.setblocking(False)
        fillers.append(filler)
        if filler.connect_ex(address) not in (0, errno.EINPROGRESS):
            break
    return fillers


@pytest.fixture()
def full_unix_socket(socket_dir):
    """Path of a Unix socket that never accepts and whose backlog is full"""
    path = os.path.join(socket_dir, 'full.sock')
    listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    listener.bind(path)
    listener.listen(0)
    fillers = _fill_backlog(socket.AF_UNIX, path)
    yield path
    for sock in fillers + [listener]:
        sock.close()


@pytest.fixture()
def full_tcp_listener():
    """tcp:// address of a listener that never accepts and whose backlog is full"""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(('127.0.0.1', 0))
    listener.listen(0)
    address = listener.getsockname()
    fillers = _fill_backlog(socket.AF_INET, address, count=8)
    yield f'tcp://{address[0]}:{address[1]}'
    for sock in fillers + [listener]:
        sock.close()
