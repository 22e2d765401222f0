"""ANSI terminal color support for chatclient shell output."""

import os
import sys


def _supports_color():
    """Detect whether the terminal supports ANSI color."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CHATCLIENT_COLOR", "").lower() == "never":
        return False
    if os.environ.get("CHATCLIENT_COLOR", "").lower() == "always":
        return True
    if not hasattr(sys.stdout, "isatty"):
        return False
    if not sys.stdout.isatty():
        return False
    # Windows Terminal natively supports ANSI; legacy consoles do not
    if sys.platform == "win32":
        return bool(os.environ.get("WT_SESSION"))
    return True


# ANSI escape sequences
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[31m"
YELLOW = "\033[33m"


class ColorWriter:
    """Colorize operator-facing text, falling back to plain text.

    Inbound chat text is never passed through here; it is printed as the
    server sent it.

    Usage:
        cw = ColorWriter()
        cw.error("bad command")           # red
        cw.warning("No reply yet")        # yellow
        cw.dim("Connected to ...")        # dim
        cw.bold("[alice]$ ")              # bold
    """

    def __init__(self, force_color=None):
        if force_color is not None:
            self.enabled = force_color
        else:
            self.enabled = _supports_color()

    def _wrap(self, code, text):
        if self.enabled:
            return "{}{}{}".format(code, text, RESET)
        return text

    def error(self, text):
        return self._wrap(RED, text)

    def warning(self, text):
        return self._wrap(YELLOW, text)

    def dim(self, text):
        return self._wrap(DIM, text)

    def bold(self, text):
        return self._wrap(BOLD, text)
