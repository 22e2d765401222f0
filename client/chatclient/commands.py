"""Operator command parsing for the chatclient shell.

One line of operator input decodes to one of the command variants below.
Parsing never raises: input that does not match the grammar becomes an
Invalid command, which the shell reports and discards.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .protocol import BUFF_SIZE, ENCODING, USERNAME_MAX_SIZE

USAGE = "syntax: [command] [optional recipient] [optional msg]"

# Encoded length limit; one byte of the input buffer holds the terminator.
MAX_COMMAND_LENGTH = BUFF_SIZE - 1


@dataclass(frozen=True)
class Exit:
    pass


@dataclass(frozen=True)
class ListPeers:
    pass


@dataclass(frozen=True)
class SendDirect:
    recipient: str
    body: str


@dataclass(frozen=True)
class Invalid:
    raw_input: str
    reason: str = "bad command"


Command = Union[Exit, ListPeers, SendDirect, Invalid]


def _parse_send(line: str) -> Command:
    """Split ``send <recipient> <body>`` at its first two spaces."""
    if not line.startswith("send "):
        return Invalid(line, "send needs a recipient and a message")
    recipient, sep, body = line[len("send "):].partition(" ")
    if not recipient or not sep or not body:
        return Invalid(line, "send needs a recipient and a message")
    return SendDirect(recipient, body)


def parse_command(line: str) -> Optional[Command]:
    """Translate one line of operator input into a command.

    Returns None for empty input.  The body of a ``send`` is the rest of
    the line after the recipient, spaces included.  Input whose encoded
    form is longer than MAX_COMMAND_LENGTH bytes is rejected rather than
    truncated.

    Examples:
      "ls"                    -> ListPeers()
      "send bob hello there"  -> SendDirect("bob", "hello there")
      "send bob"              -> Invalid("send bob", ...)
    """
    line = line.rstrip("\r\n").lstrip()
    if not line.strip():
        return None
    if len(line.encode(ENCODING)) > MAX_COMMAND_LENGTH:
        return Invalid(line, "command too long (max {} bytes)".format(
            MAX_COMMAND_LENGTH))

    word = line.split(None, 1)[0]
    if word == "exit":
        return Exit()
    if word == "ls":
        return ListPeers()
    if word == "send":
        return _parse_send(line)
    return Invalid(line)


def validate_username(name: str) -> str:
    """Check a display name and return it stripped.

    Raises ValueError if the name is empty, longer than USERNAME_MAX_SIZE
    or contains whitespace.
    """
    name = name.strip()
    if not name:
        raise ValueError("username must not be empty")
    if len(name) > USERNAME_MAX_SIZE:
        raise ValueError("username must be at most {} characters".format(
            USERNAME_MAX_SIZE))
    if any(ch.isspace() for ch in name):
        raise ValueError("username must not contain spaces")
    return name
