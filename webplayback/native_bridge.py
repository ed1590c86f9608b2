"""
Web Playback: Native-bound Bridge

The page calls ``AppInterface.handleURI(uri)`` over QWebChannel.  This object
decodes the URI and dispatches it to a ``PlaybackActions`` listener (the
session controller in production).

Malformed input is tolerated, never reported back to the page:
  - unknown scheme / empty body / unknown action -> dropped
  - wrong argument count for a known action      -> dropped
  - non-numeric seek seconds                      -> ValueError propagates

Every action validates its own arity; a bad ACTION_REWIND_VIDEO never affects
a later, well-formed one.
"""

import re
from typing import Protocol

from PySide6.QtCore import QObject, Slot

import uri_codec


class PlaybackActions(Protocol):
    """What the page is allowed to ask the native side to do."""

    def loadVideo(self, url: str, autoPlay: bool) -> None:
        ...

    def playPauseVideo(self) -> None:
        ...

    def fastForwardVideo(self, skipMs: int) -> None:
        ...

    def rewindVideo(self, skipMs: int) -> None:
        ...


def _strip_trailing_empty(args):
    """Drop empty trailing args (``url;;`` style padding from the page)."""
    args = list(args)
    while args and args[-1] == "":
        args.pop()
    return args


_SECONDS_RE = re.compile(r"[+-]?[0-9]+")


def _seconds_to_ms(raw: str) -> int:
    # Wire carries whole ASCII-decimal seconds, the engine works in milliseconds
    if not _SECONDS_RE.fullmatch(raw):
        raise ValueError(f"seek seconds must be a decimal integer, got {raw!r}")
    return int(raw) * 1000


class NativeBridge(QObject):
    """JS -> native entry point, registered on the web channel as ``AppInterface``."""

    def __init__(self, listener: PlaybackActions, prefix: str = uri_codec.URI_PREFIX, parent=None):
        super().__init__(parent)
        self._listener = listener
        self._prefix = prefix
        self._handlers = {
            uri_codec.ACTION_LOAD_VIDEO: self._handle_load,
            uri_codec.ACTION_PLAY_PAUSE_VIDEO: self._handle_play_pause,
            uri_codec.ACTION_REWIND_VIDEO: self._handle_rewind,
            uri_codec.ACTION_FASTFORWARD_VIDEO: self._handle_fast_forward,
        }

    @Slot(str)
    def handleURI(self, uri):
        cmd = uri_codec.decode(uri, self._prefix)
        if cmd is None:
            return
        handler = self._handlers.get(cmd.action)
        if handler is None:
            return
        # Arity below counts the action itself, e.g. LOAD is [_, url, autoPlay?]
        handler([cmd.action] + _strip_trailing_empty(cmd.args))

    # ── actions ─────────────────────────────────────────────────────────

    def _handle_load(self, parts):
        if len(parts) < 2 or len(parts) > 3:
            return
        auto_play = len(parts) == 3 and parts[2].lower() == "true"
        self._listener.loadVideo(parts[1], auto_play)

    def _handle_play_pause(self, _parts):
        self._listener.playPauseVideo()

    def _handle_rewind(self, parts):
        if len(parts) != 2:
            return
        self._listener.rewindVideo(_seconds_to_ms(parts[1]))

    def _handle_fast_forward(self, parts):
        if len(parts) != 2:
            return
        self._listener.fastForwardVideo(_seconds_to_ms(parts[1]))
