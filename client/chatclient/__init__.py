"""chatclient -- interactive client for a line-command chat server.

Provides ChatConnection, the duplex transport to the chat server, plus
the session coordinator used by the interactive shell.

Usage::

    with ChatConnection("127.0.0.1", 55555) as conn:
        session = Session("alice", conn)
        session.register()
        session.start(print)
        session.list_peers()
        session.exit()
"""

import logging
import socket
from typing import Optional

from .protocol import (
    BUFF_SIZE, ConnectionClosedError, ProtocolError, decode_unit,
    recv_unit, send_command,
)
from .session import Session, SyncGate


__all__ = [
    "ChatConnection",
    "ConnectionClosedError",
    "ProtocolError",
    "Session",
    "SyncGate",
]

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Connection class
# ---------------------------------------------------------------------------

class ChatConnection:
    """A duplex connection to the chat server.

    Can be used as a context manager::

        with ChatConnection("127.0.0.1") as conn:
            conn.write("ls")
            print(conn.read())

    Or managed manually::

        conn = ChatConnection("127.0.0.1")
        conn.connect()
        try:
            conn.write("ls")
        finally:
            conn.close()

    write() and read() may be called concurrently from two threads; the
    socket is not locked because there is one reader and one writer.
    """

    def __init__(
        self,
        host: str,
        port: int = 55555,
        timeout: int = 30,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self._sock = None  # type: Optional[socket.socket]

    # -- Context manager ---------------------------------------------------

    def __enter__(self) -> "ChatConnection":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        self.close()
        return None

    def __repr__(self) -> str:
        state = "connected" if self._sock is not None else "disconnected"
        return "ChatConnection({!r}, port={}, {})".format(
            self.host, self.port, state)

    # -- Connection lifecycle ----------------------------------------------

    def connect(self) -> None:
        """Open the TCP connection.

        The timeout applies to connecting only; afterwards reads block
        until the server sends data.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect((self.host, self.port))
        except Exception:
            sock.close()
            raise
        sock.settimeout(None)
        self._sock = sock
        log.info("Connected to %s:%d", self.host, self.port)

    def shutdown(self) -> None:
        """Shut down both directions without releasing the socket.

        Unblocks a read pending in another thread.
        """
        if self._sock is None:
            return
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected
            pass

    def close(self) -> None:
        """Close the socket.  Safe to call more than once."""
        if self._sock is None:
            return
        self.shutdown()
        try:
            self._sock.close()
        except OSError:
            pass
        self._sock = None
        log.info("Disconnected from %s:%d", self.host, self.port)

    @property
    def connected(self) -> bool:
        return self._sock is not None

    # -- I/O -----------------------------------------------------------------

    def write(self, command: str) -> int:
        """Write one command to the server.  Returns the bytes written."""
        sock = self._sock
        if sock is None:
            raise ConnectionClosedError("Not connected")
        nbytes = send_command(sock, command)
        log.debug("-> %r (%d bytes)", command, nbytes)
        return nbytes

    def read(self) -> str:
        """Block until the server sends data and return it as text.

        Raises ConnectionClosedError when the server closes the connection.
        """
        sock = self._sock
        if sock is None:
            raise ConnectionClosedError("Not connected")
        data = recv_unit(sock, BUFF_SIZE)
        log.debug("<- %r", data)
        return decode_unit(data)
