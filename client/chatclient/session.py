"""Session coordination between the command loop and the receiver thread.

The operator's command loop writes to the connection; a Receiver thread
is the only reader.  The one synchronous command, ``ls``, writes its
request and then suspends on a SyncGate until the Receiver has printed
the next inbound unit and signaled the gate.

Any inbound data resolves a pending ``ls``, not only the peer list.  The
server protocol carries no correlation, so a chat message that arrives
first releases the wait and the peer list is printed later.
"""

import logging
import threading
from typing import Callable, Optional

from .protocol import (
    EXIT_NOTICE, LS_REQUEST, ConnectionClosedError, format_register,
    format_send,
)

log = logging.getLogger(__name__)


class SyncGate:
    """Single-slot wake condition shared by the command loop and Receiver.

    Each signal() advances a generation counter.  request() records the
    generation before sending, so it only resumes on a signal that comes
    after its own request was written.  Inbound data consumed by an
    earlier request never satisfies a later one.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._generation = 0
        self._closed = False
        self._reason = None

    @property
    def closed(self):
        return self._closed

    @property
    def reason(self):
        """Why the gate was closed, or None while it is open."""
        return self._reason

    def request(self, send, timeout=None):
        # type: (Callable[[], object], Optional[float]) -> bool
        """Call send() under the gate lock and wait for the next signal.

        Returns True when signaled, False if *timeout* seconds elapse
        first.  Raises ConnectionClosedError if the gate is closed before
        or during the wait.
        """
        with self._cond:
            if self._closed:
                raise ConnectionClosedError(self._reason)
            start = self._generation
            send()
            signaled = self._cond.wait_for(
                lambda: self._generation != start or self._closed,
                timeout)
            if self._generation != start:
                return True
            if self._closed:
                raise ConnectionClosedError(self._reason)
            return bool(signaled)

    def signal(self):
        """Wake the waiting request, if there is one."""
        with self._cond:
            self._generation += 1
            self._cond.notify()

    def close(self, reason="Connection closed"):
        """Close the gate and release every waiter with an error."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._reason = reason
            self._cond.notify_all()


class Receiver(threading.Thread):
    """Background thread that drains the connection.

    Every inbound unit is passed to *output* and then signals the gate.
    When the connection is lost the gate is closed and *on_closed* is
    called with the reason, unless stop() was called first.
    """

    def __init__(self, conn, gate, output, on_closed=None):
        super().__init__(name="chat-receiver", daemon=True)
        self.conn = conn
        self.gate = gate
        self.output = output
        self.on_closed = on_closed
        self._stopping = threading.Event()

    def run(self):
        reason = "Connection closed"
        try:
            while not self._stopping.is_set():
                text = self.conn.read()
                self.output(text)
                self.gate.signal()
        except ConnectionClosedError as e:
            reason = str(e) or reason
        finally:
            self.gate.close(reason)
        if self._stopping.is_set():
            return
        log.warning("Receiver stopped: %s", reason)
        if self.on_closed is not None:
            self.on_closed(reason)

    def stop(self):
        """Ask the thread to finish.  The caller must unblock the read."""
        self._stopping.set()


class Session:
    """The operator's session: display name, connection and wake gate.

    Created once after the operator picks a name.  register() must be
    called before start(); start() launches the Receiver.
    """

    def __init__(self, name, conn, reply_timeout=None):
        # type: (str, object, Optional[float]) -> None
        self.name = name
        self.conn = conn
        self.reply_timeout = reply_timeout
        self.gate = SyncGate()
        self.receiver = None  # type: Optional[Receiver]
        self._registered = False

    def __repr__(self):
        return "Session({!r}, {!r})".format(self.name, self.conn)

    @property
    def closed(self):
        return self.gate.closed

    # -- Lifecycle ---------------------------------------------------------

    def register(self):
        """Send the registration command.  No reply is awaited."""
        if self._registered:
            raise RuntimeError("Session {!r} is already registered".format(
                self.name))
        self.conn.write(format_register(self.name))
        self._registered = True
        log.info("Registered as %s", self.name)

    def start(self, output, on_closed=None):
        # type: (Callable[[str], None], Optional[Callable[[str], None]]) -> Receiver
        """Start the Receiver thread and return it."""
        if not self._registered:
            raise RuntimeError("register() must be called before start()")
        if self.receiver is not None:
            raise RuntimeError("Receiver already started")
        self.receiver = Receiver(self.conn, self.gate, output, on_closed)
        self.receiver.start()
        return self.receiver

    def close(self, join_timeout=2.0):
        """Stop the Receiver, join it and close the connection.

        Safe to call more than once.
        """
        receiver = self.receiver
        if receiver is not None:
            receiver.stop()
        # Shutting the socket down unblocks the Receiver's pending read
        self.conn.close()
        self.gate.close("Session closed")
        if receiver is not None and receiver is not threading.current_thread():
            receiver.join(join_timeout)
            if receiver.is_alive():
                log.warning("Receiver did not stop within %.1fs", join_timeout)

    # -- Commands ----------------------------------------------------------

    def list_peers(self, timeout=None):
        # type: (Optional[float]) -> bool
        """Request the peer list and wait for the Receiver to signal.

        *timeout* defaults to the session's reply_timeout; None waits
        forever.  Returns False if the wait timed out.  Raises
        ConnectionClosedError if the connection is lost while waiting.
        """
        if timeout is None:
            timeout = self.reply_timeout
        return self.gate.request(
            lambda: self.conn.write(LS_REQUEST), timeout)

    def send_direct(self, recipient, body):
        # type: (str, str) -> int
        """Send a direct message.  Returns the number of bytes written."""
        return self.conn.write(format_send(recipient, body))

    def exit(self):
        """Tell the server we are leaving and close the session."""
        try:
            self.conn.write(EXIT_NOTICE)
        except ConnectionClosedError as e:
            log.info("Exit notice not delivered: %s", e)
        finally:
            self.close()
