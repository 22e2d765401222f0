"""CLI entry point for the chatclient.

Usage::

    chatclient --host 127.0.0.1 --port 55555
    chatclient --name alice
    python -m chatclient --reply-timeout 10 -v
"""

import argparse
import configparser
import logging
import os
import sys

from .commands import validate_username

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 55555


def _default_config_path():
    """Return the path to chatclient.conf in the client directory."""
    client_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(client_dir, "chatclient.conf")


def _fail(message):
    print("Error: {}".format(message), file=sys.stderr)
    sys.exit(1)


def _load_config(path, explicit):
    """Load settings from a config file.

    Args:
        path: File path to read.
        explicit: True if the user passed --config (errors are fatal).

    Returns a dict with keys 'host', 'port', 'name', 'reply_timeout'
    (any may be None).
    """
    if not os.path.exists(path):
        if explicit:
            _fail("config file not found: {}".format(path))
        return {}

    config = configparser.ConfigParser()
    try:
        config.read(path)
    except configparser.Error as e:
        if explicit:
            _fail("failed to parse config file: {}".format(e))
        print("Warning: failed to parse config file: {}".format(e),
              file=sys.stderr)
        return {}

    result = {}

    # Host
    host = config.get("connection", "host", fallback=None)
    if host is not None:
        host = host.strip() or None
    result["host"] = host

    # Port
    try:
        port = config.getint("connection", "port", fallback=None)
    except ValueError as e:
        if explicit:
            _fail("invalid port in config file: {}".format(e))
        print("Warning: invalid port in config file: {}".format(e),
              file=sys.stderr)
        port = None
    result["port"] = port

    # Display name
    name = config.get("session", "name", fallback=None)
    if name is not None:
        name = name.strip() or None
    result["name"] = name

    # Reply timeout for ls
    try:
        reply_timeout = config.getfloat("session", "reply_timeout",
                                        fallback=None)
    except ValueError as e:
        if explicit:
            _fail("invalid reply_timeout in config file: {}".format(e))
        print("Warning: invalid reply_timeout in config file: {}".format(e),
              file=sys.stderr)
        reply_timeout = None
    result["reply_timeout"] = reply_timeout

    return result


def _positive_float(value):
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            "must be a number, got: {!r}".format(value))
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return number


def build_parser(env_host=None, env_port=None):
    """Build the argument parser.  Env values only feed the help text."""
    parser = argparse.ArgumentParser(
        prog="chatclient",
        description="Interactive chat server client",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Server hostname or IP (default: {})".format(
            env_host if env_host is not None else DEFAULT_HOST),
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Server port (default: {})".format(
            env_port if env_port is not None else DEFAULT_PORT),
    )
    parser.add_argument(
        "--name",
        default=None,
        help="Display name to register (prompted for if omitted)",
    )
    parser.add_argument(
        "--reply-timeout",
        type=_positive_float,
        default=None,
        metavar="SECONDS",
        help="Stop waiting for an 'ls' reply after SECONDS "
             "(default: wait forever)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Config file path (default: client/chatclient.conf)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log protocol traffic to stderr",
    )
    return parser


def resolve_settings(args, env_host, env_port, cfg):
    """Merge settings: CLI > env > config > default.

    Returns a dict with keys 'host', 'port', 'name', 'reply_timeout'.
    """
    if args.host is not None:
        host = args.host
    elif env_host is not None:
        host = env_host
    elif cfg.get("host") is not None:
        host = cfg["host"]
    else:
        host = DEFAULT_HOST

    if args.port is not None:
        port = args.port
    elif env_port is not None:
        port = env_port
    elif cfg.get("port") is not None:
        port = cfg["port"]
    else:
        port = DEFAULT_PORT

    name = args.name if args.name is not None else cfg.get("name")
    if args.reply_timeout is not None:
        reply_timeout = args.reply_timeout
    else:
        reply_timeout = cfg.get("reply_timeout")

    return {
        "host": host,
        "port": port,
        "name": name,
        "reply_timeout": reply_timeout,
    }


def main() -> None:
    """Parse arguments and run the interactive shell."""
    env_host = os.environ.get("CHATCLIENT_HOST") or None
    env_port_str = os.environ.get("CHATCLIENT_PORT")
    env_port = None
    if env_port_str:
        try:
            env_port = int(env_port_str)
        except ValueError:
            _fail("CHATCLIENT_PORT must be an integer, got: {!r}".format(
                env_port_str))

    args = build_parser(env_host, env_port).parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config_path = args.config if args.config else _default_config_path()
    cfg = _load_config(config_path, bool(args.config))
    settings = resolve_settings(args, env_host, env_port, cfg)

    name = settings["name"]
    if name is not None:
        try:
            name = validate_username(name)
        except ValueError as e:
            _fail("invalid name: {}".format(e))

    from .shell import ChatShell
    sh = ChatShell(settings["host"], settings["port"], name=name,
                   reply_timeout=settings["reply_timeout"])
    try:
        sh.cmdloop()
    except KeyboardInterrupt:
        print()
        sh.do_exit()


if __name__ == "__main__":
    main()
