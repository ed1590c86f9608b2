"""
Web Playback: Web-bound Dispatcher

Native -> page relay.  ``send(action, args)`` encodes a command URI and runs
``<receiver>.handleUri('<uri>')`` inside the page.

Page APIs are only safe on the GUI thread, and the poller / mpv callbacks are
not.  Every script therefore goes through a queued signal to this object,
which lives on the GUI thread; Qt's event queue keeps delivery in emit order.
Nothing is merged, dropped or reordered here.
"""

from PySide6.QtCore import QObject, Qt, Signal, Slot

import uri_codec

DATA_RECEIVER = "fullscreenPage"
KEY_RECEIVER = "androidKeyHandler"


def _js_quote(s: str) -> str:
    """Escape for a single-quoted JS string literal."""
    return s.replace("\\", "\\\\").replace("'", "\\'")


def build_script(receiver: str, uri: str) -> str:
    return f"{receiver}.handleUri('{_js_quote(uri)}');"


class WebDispatcher(QObject):
    """Serialises native state pushes onto the page's thread."""

    _scriptQueued = Signal(str)

    def __init__(self, run_javascript, receiver: str = DATA_RECEIVER,
                 key_receiver: str = KEY_RECEIVER,
                 prefix: str = uri_codec.URI_PREFIX, parent=None):
        super().__init__(parent)
        self._run_javascript = run_javascript
        self._receiver = receiver
        self._key_receiver = key_receiver
        self._prefix = prefix
        # Always queued, even from the GUI thread, so order == enqueue order
        self._scriptQueued.connect(self._deliver, Qt.ConnectionType.QueuedConnection)

    def send(self, action, args=()):
        """Queue ``action`` with its string args for delivery to the page."""
        uri = uri_codec.encode(action, [str(a) for a in args], self._prefix)
        self._post(build_script(self._receiver, uri))

    def handleKeyInjection(self, keycode):
        """Forward a raw host key code to the page's key handler."""
        uri = uri_codec.encode(uri_codec.KEY_EVENT, [str(int(keycode))], self._prefix)
        self._post(build_script(self._key_receiver, uri))

    def _post(self, script):
        try:
            self._scriptQueued.emit(script)
        except RuntimeError:
            # Underlying C++ object already deleted (window closing)
            print("[dispatch] Dropped script, dispatcher is gone")

    @Slot(str)
    def _deliver(self, script):
        self._run_javascript(script)
