"""
Web Playback: URI Command Codec

Both directions of the bridge speak the same textual format:

    nativewebsample://ACTION;arg1;arg2;...;

Every argument, the last one included, is followed by ``;``.  There is no
escaping, so an argument may never contain the separator - ``encode`` refuses
such values instead of producing an ambiguous command.

The final ``;`` terminates the body.  Any other empty segment is a real
(empty) argument and is kept as-is.
"""

from collections import namedtuple

URI_SCHEME = "nativewebsample"
URI_PREFIX = URI_SCHEME + "://"
SEPARATOR = ";"

# Web -> native
ACTION_LOAD_VIDEO = "ACTION_LOAD_VIDEO"
ACTION_PLAY_PAUSE_VIDEO = "ACTION_PLAY_PAUSE_VIDEO"
ACTION_REWIND_VIDEO = "ACTION_REWIND_VIDEO"
ACTION_FASTFORWARD_VIDEO = "ACTION_FASTFORWARD_VIDEO"

# Native -> web
DATA_DURATION = "DATA_DURATION"
DATA_CURRENT_POSITION = "DATA_CURRENT_POSITION"
DATA_PLAY_STATE = "DATA_PLAY_STATE"
DATA_BUFFERING_PERCENT = "DATA_BUFFERING_PERCENT"
KEY_EVENT = "KEY_EVENT"

PLAY_STATE_PLAYING = "PLAYING"
PLAY_STATE_PAUSED = "PAUSED"


Command = namedtuple("Command", ["action", "args"])
"""A decoded command: action name plus a tuple of positional string args."""


def encode(action: str, args=(), prefix: str = URI_PREFIX) -> str:
    """Build ``<prefix><ACTION>;<arg>;...;``.

    Raises ValueError if the action or any argument contains the separator.
    """
    action = str(action)
    if not action or SEPARATOR in action:
        raise ValueError(f"invalid action name: {action!r}")
    parts = [action]
    for a in args:
        s = str(a)
        if SEPARATOR in s:
            raise ValueError(f"argument for {action} contains '{SEPARATOR}': {s!r}")
        parts.append(s)
    return prefix + "".join(p + SEPARATOR for p in parts)


def decode(uri, prefix: str = URI_PREFIX):
    """Parse a command URI.

    Returns a ``Command`` or ``None`` when the string is not recognized
    (missing prefix, empty body).
    """
    if not isinstance(uri, str) or not uri.startswith(prefix):
        return None
    body = uri[len(prefix):]
    if body.endswith(SEPARATOR):
        body = body[:-1]
    if not body:
        return None
    parts = body.split(SEPARATOR)
    if not parts or not parts[0]:
        return None
    return Command(parts[0], tuple(parts[1:]))
