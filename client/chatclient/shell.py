"""Interactive shell for chatclient."""

import cmd
import os
import sys

from . import ChatConnection, ConnectionClosedError, Session
from .colors import ColorWriter
from .commands import (
    USAGE, Exit, Invalid, ListPeers, SendDirect, parse_command,
    validate_username,
)
from .protocol import USERNAME_MAX_SIZE

WELCOME = "Welcome to chat client console. Please enter commands"

COMMAND_WORDS = ("exit", "ls", "send")

# Returned by the input reader on Ctrl-D or Ctrl-C at the prompt.  Typed
# text is always a str, so no line can be mistaken for it.
END_OF_INPUT = object()


# ---------------------------------------------------------------------------
# Interactive shell
# ---------------------------------------------------------------------------

class ChatShell(cmd.Cmd):
    """Operator console: reads commands and writes them to the server.

    Runs on the main thread.  Inbound messages are printed by the
    session's Receiver thread as they arrive.
    """

    intro = ""  # Set dynamically after registration
    prompt = "[]$ "

    def __init__(self, host, port, name=None, reply_timeout=None,
                 timeout=30):
        super().__init__()
        self.host = host
        self.port = port
        self.name = name
        self.reply_timeout = reply_timeout
        self.timeout = timeout
        self.session = None
        self.cw = ColorWriter()

    # -- Lifecycle ---------------------------------------------------------

    def preloop(self):
        """Connect, pick a name, register and start receiving."""
        conn = ChatConnection(self.host, self.port, self.timeout)
        try:
            conn.connect()
        except OSError as e:
            print("Failed to connect to {}:{}: {}".format(
                self.host, self.port, e), file=sys.stderr)
            raise SystemExit(1)

        # Configure readline
        try:
            import readline
            histfile = os.path.expanduser("~/.chatclient_history")
            try:
                readline.read_history_file(histfile)
            except (FileNotFoundError, OSError):
                pass
            import atexit
            atexit.register(readline.write_history_file, histfile)
        except ImportError:
            pass

        if self.name is None:
            try:
                self.name = self._ask_username()
            except KeyboardInterrupt:
                conn.close()
                raise
            if self.name is None:
                conn.close()
                raise SystemExit(0)

        self.session = Session(self.name, conn, self.reply_timeout)
        try:
            self.session.register()
        except ConnectionClosedError as e:
            print(self.cw.error("Registration failed: {}".format(e)),
                  file=sys.stderr)
            conn.close()
            raise SystemExit(1)
        self.session.start(self._show_inbound, self._connection_lost)

        print(self.cw.bold(WELCOME))
        print(USAGE)
        self._update_prompt()

    def postloop(self):
        """Stop the Receiver and disconnect when the REPL exits."""
        self.close()
        print(self.cw.dim("Disconnected."))

    def close(self):
        if self.session is not None:
            self.session.close()

    def cmdloop(self, intro=None):
        """Run the REPL.

        Same shape as cmd.Cmd.cmdloop, except that the end of input is
        passed to onecmd() as END_OF_INPUT instead of the line "EOF", so
        typing the word EOF is just another bad command.
        """
        self.preloop()
        if self.use_rawinput and self.completekey:
            try:
                import readline
                self.old_completer = readline.get_completer()
                readline.set_completer(self.complete)
                readline.parse_and_bind(self.completekey + ": complete")
            except ImportError:
                pass
        try:
            if intro is not None:
                self.intro = intro
            if self.intro:
                self.stdout.write(str(self.intro) + "\n")
            stop = None
            while not stop:
                if self.cmdqueue:
                    line = self.cmdqueue.pop(0)
                else:
                    line = self._read_line()
                line = self.precmd(line)
                stop = self.onecmd(line)
                stop = self.postcmd(stop, line)
            self.postloop()
        finally:
            if self.use_rawinput and self.completekey:
                try:
                    import readline
                    readline.set_completer(self.old_completer)
                except ImportError:
                    pass

    def _read_line(self):
        """Read one line of operator input.

        Returns END_OF_INPUT on Ctrl-D, or on Ctrl-C at the prompt.
        """
        if self.use_rawinput:
            try:
                return input(self.prompt)
            except (EOFError, KeyboardInterrupt):
                return END_OF_INPUT
        self.stdout.write(self.prompt)
        self.stdout.flush()
        line = self.stdin.readline()
        if not line:
            return END_OF_INPUT
        return line.rstrip("\r\n")

    def _update_prompt(self):
        self.prompt = "[{}]$ ".format(self.name or "")

    def _ask_username(self):
        """Prompt until a valid display name is entered.

        Returns None if input ends first (Ctrl-D).
        """
        while True:
            print("Enter a username (max {} characters, no spaces):".format(
                USERNAME_MAX_SIZE))
            try:
                raw = input()
            except EOFError:
                print()
                return None
            try:
                return validate_username(raw)
            except ValueError as e:
                print(self.cw.error("Invalid username: {}".format(e)))

    # -- Receiver callbacks (run on the Receiver thread) -------------------

    def _show_inbound(self, text):
        print(text, flush=True)

    def _connection_lost(self, reason):
        print(self.cw.error("Connection lost: {}".format(reason)),
              flush=True)

    # -- Dispatch ----------------------------------------------------------

    def onecmd(self, line):
        """Parse one line of input and run it.

        Returns True to end the loop.
        """
        if line is END_OF_INPUT:
            print()
            return self.do_exit()
        if self.session is None or self.session.closed:
            print(self.cw.error("Not connected."))
            return True
        command = parse_command(line)
        if command is None:
            return self.emptyline()
        handlers = {
            Exit: self.do_exit,
            ListPeers: self.do_ls,
            SendDirect: self.do_send,
            Invalid: self.default,
        }
        try:
            return handlers[type(command)](command)
        except ConnectionClosedError as e:
            print(self.cw.error("Connection error: {}".format(e)))
            return True

    def emptyline(self):
        """Do nothing on empty input (override cmd.Cmd's default repeat)."""
        return False

    def default(self, command):
        """Report a command that does not match the grammar."""
        print(self.cw.error(command.reason), file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return False

    def completenames(self, text, *ignored):
        return [w for w in COMMAND_WORDS if w.startswith(text)]

    # -- Commands ----------------------------------------------------------

    def do_exit(self, command=None):
        """Tell the server we are leaving and end the session."""
        if self.session is not None:
            self.session.exit()
        return True

    def do_ls(self, command):
        """List connected users.

        Blocks until the server's reply has been printed.  Ctrl-C abandons
        the wait without closing the connection."""
        try:
            replied = self.session.list_peers()
        except KeyboardInterrupt:
            print()
            print(self.cw.warning("Stopped waiting for the user list."))
            return False
        if not replied:
            print(self.cw.warning("No reply from server within {}s.".format(
                self.session.reply_timeout)))
        return False

    def do_send(self, command):
        """Send a direct message to one user.  Does not wait for a reply."""
        self.session.send_direct(command.recipient, command.body)
        return False
