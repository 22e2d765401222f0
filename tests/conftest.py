"""Shared fixtures and helpers for chatclient tests.

The tests do not need a running chat server.  Session and shell tests use
FakeConnection, an in-memory stand-in for ChatConnection whose inbound
side is fed by the test.  Transport tests use a loopback listener or
socket.socketpair().

Usage:
    pytest tests/ -v
"""

import os
import queue
import socket
import sys
import threading
import time

import pytest

# Add the client library to the path so tests can import chatclient
_client_dir = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "client",
)
if _client_dir not in sys.path:
    sys.path.insert(0, _client_dir)

from chatclient import ConnectionClosedError, Session


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------

class FakeConnection:
    """In-memory duplex connection.

    write() records each command in ``writes``.  read() blocks until the
    test calls feed(); hangup() makes the pending read fail as if the
    server closed the connection.
    """

    def __init__(self):
        self.writes = []
        self.closed = False
        self.fail_writes = False
        self._inbound = queue.Queue()

    def connect(self):
        pass

    def write(self, command):
        if self.closed or self.fail_writes:
            raise ConnectionClosedError("Socket error: broken pipe")
        self.writes.append(command)
        return len(command.encode("utf-8"))

    def read(self):
        item = self._inbound.get()
        if item is None:
            # Keep later reads failing too
            self._inbound.put(None)
            raise ConnectionClosedError("Connection closed by server")
        return item

    def feed(self, text):
        self._inbound.put(text)

    def hangup(self):
        self._inbound.put(None)

    def close(self):
        if not self.closed:
            self.closed = True
            self._inbound.put(None)


def wait_until(predicate, timeout=2.0):
    """Poll predicate until it is true.  Returns its final value."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class Background:
    """Run a callable on a thread and keep its result or exception."""

    def __init__(self, func, *args):
        self.result = None
        self.error = None
        self.thread = threading.Thread(
            target=self._run, args=(func,) + args, daemon=True)
        self.thread.start()

    def _run(self, func, *args):
        try:
            self.result = func(*args)
        except BaseException as e:
            self.error = e

    def join(self, timeout=2.0):
        self.thread.join(timeout)
        return not self.thread.is_alive()

    @property
    def running(self):
        return self.thread.is_alive()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_conn():
    conn = FakeConnection()
    yield conn
    conn.close()


@pytest.fixture
def inbound():
    """List that collects everything the Receiver prints."""
    return []


@pytest.fixture
def session(fake_conn, inbound):
    """A registered Session with its Receiver running on fake_conn."""
    sess = Session("alice", fake_conn)
    sess.register()
    sess.start(inbound.append)
    yield sess
    sess.close()


@pytest.fixture
def loopback_server():
    """Listen on a loopback port and accept one client in the background.

    Yields ``(host, port, accepted)`` where *accepted* is a list that
    receives the server-side socket once the client connects.
    """
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    listener.settimeout(5)
    host, port = listener.getsockname()
    accepted = []

    def accept():
        try:
            sock, _addr = listener.accept()
        except OSError:
            return
        sock.settimeout(5)
        accepted.append(sock)

    t = threading.Thread(target=accept, daemon=True)
    t.start()
    yield host, port, accepted
    t.join(5)
    for sock in accepted:
        sock.close()
    listener.close()


@pytest.fixture
def socket_pair():
    """Yield a connected (client, server) socket pair."""
    client, server = socket.socketpair()
    client.settimeout(5)
    server.settimeout(5)
    yield client, server
    client.close()
    server.close()
