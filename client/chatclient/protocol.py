"""Wire protocol helpers for the chatclient.

The chat server protocol has no framing: each write is one command and
each read is treated as one inbound unit.  Commands are plain words with
space-separated arguments and carry no line terminator.  All wire
communication uses UTF-8.
"""

import socket

ENCODING = "utf-8"

# Size of one read from the server, and of the operator's input buffer.
BUFF_SIZE = 256

USERNAME_MAX_SIZE = 20

LS_REQUEST = "ls"
EXIT_NOTICE = "exit"


class ProtocolError(Exception):
    """Raised on wire protocol failures."""


class ConnectionClosedError(ProtocolError):
    """Raised when the server closed the connection or the socket failed."""


def format_register(name: str) -> str:
    """Build the one-time registration command for *name*."""
    return "register username {}".format(name)


def format_send(recipient: str, body: str) -> str:
    """Build a direct message command.

    The body is sent as-is and may contain spaces.
    """
    return "send {} {}".format(recipient, body)


def send_command(sock: socket.socket, command: str) -> int:
    """Send a command to the server as a single write.

    Returns the number of bytes written.  Raises ConnectionClosedError if
    the socket fails.
    """
    data = command.encode(ENCODING)
    try:
        sock.sendall(data)
    except OSError as e:
        raise ConnectionClosedError("Socket error: {}".format(e))
    return len(data)


def recv_unit(sock: socket.socket, bufsize: int = BUFF_SIZE) -> bytes:
    """Block until the server sends data and return it.

    Returns at most *bufsize* bytes.  Raises ConnectionClosedError on EOF
    or socket error instead of returning an empty read.
    """
    try:
        data = sock.recv(bufsize)
    except OSError as e:
        raise ConnectionClosedError("Socket error: {}".format(e))
    if not data:
        raise ConnectionClosedError("Connection closed by server")
    return data


def decode_unit(data: bytes) -> str:
    """Decode inbound bytes for display, replacing undecodable bytes."""
    return data.decode(ENCODING, errors="replace")
