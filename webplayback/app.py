"""
Web Playback: App Shell

PySide6 host for a web UI that drives native video playback.
One window, two layers stacked on top of each other:
  - bottom: plain QWidget whose winId() mpv renders into
  - top:    QWebEngineView with a transparent background (the web UI)

Handles:
  - QWebChannel wiring: NativeBridge is exposed to page scripts as
    ``AppInterface`` (handleURI)
  - Appending ``embedded=true`` to every navigation the page makes
  - D-pad key forwarding into the page (KEY_EVENT)
  - Back navigation through the page history before closing
  - Quit cleanup (poller stop, mpv shutdown)
"""

import argparse
import os
import sys
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from PySide6.QtCore import QEvent, QObject, Qt, QUrl
from PySide6.QtGui import QColor, QKeySequence, QShortcut
from PySide6.QtWebChannel import QWebChannel
from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineScript
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import QApplication, QMainWindow, QStackedLayout, QWidget

import settings as settings_module
import storage
from native_bridge import NativeBridge
from playback_engine import MpvEngine
from session_controller import PlaybackSessionController
from web_dispatcher import WebDispatcher

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

APP_NAME = "WebPlayback"
EMBEDDED_PARAM = "embedded=true"

# Host key -> key code understood by the page's key handler
DPAD_KEYCODES = {
    Qt.Key.Key_Return: 23,   # centre
    Qt.Key.Key_Enter: 23,
    Qt.Key.Key_Up: 19,
    Qt.Key.Key_Down: 20,
    Qt.Key.Key_Left: 21,
    Qt.Key.Key_Right: 22,
}

BACK_KEYS = frozenset({Qt.Key.Key_Back, Qt.Key.Key_Escape})


def with_embedded_flag(url: str) -> str:
    """Tell the page it is running inside the native shell."""
    parts = urlsplit(url)
    if EMBEDDED_PARAM in parts.query.split("&"):
        return url
    query = f"{parts.query}&{EMBEDDED_PARAM}" if parts.query else EMBEDDED_PARAM
    return urlunsplit(parts._replace(query=query))


def pick_user_data_dir() -> str:
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return str(base / APP_NAME)


# ---------------------------------------------------------------------------
# Content surface (QWebEngineView as seen by the session controller)
# ---------------------------------------------------------------------------

class WebViewSurface(QObject):
    """
    Adapts QWebEngineView to session_controller.ContentSurface.

    The current URL is cached from urlChanged so the identity check can run
    on mpv's event thread without touching the view.
    """

    def __init__(self, view: QWebEngineView, parent=None):
        super().__init__(parent)
        self._view = view
        self._url = view.url().toString()
        view.urlChanged.connect(self._on_url_changed)

    def _on_url_changed(self, url: QUrl):
        self._url = url.toString()

    def current_identity(self) -> str:
        return self._url

    def can_go_back(self) -> bool:
        return self._view.history().canGoBack()

    def go_back(self):
        self._view.back()

    def reload(self):
        self._view.reload()

    def run_javascript(self, script: str):
        self._view.page().runJavaScript(script)


# ---------------------------------------------------------------------------
# WebEngine page: embedded flag on navigation, optional console echo
# ---------------------------------------------------------------------------

class PlaybackWebPage(QWebEnginePage):

    def __init__(self, parent=None, verbose=False):
        super().__init__(parent)
        self._verbose = verbose

    def acceptNavigationRequest(self, url, nav_type, is_main_frame):
        link = nav_type == QWebEnginePage.NavigationType.NavigationTypeLinkClicked
        if not (is_main_frame and link):
            return super().acceptNavigationRequest(url, nav_type, is_main_frame)
        raw = url.toString()
        if raw.startswith(("http://", "https://", "file://")):
            flagged = with_embedded_flag(raw)
            if flagged != raw:
                self.setUrl(QUrl(flagged))
                self.setBackgroundColor(QColor(Qt.GlobalColor.transparent))
                return False
        return super().acceptNavigationRequest(url, nav_type, is_main_frame)

    def javaScriptConsoleMessage(self, level, message, line, source):
        if self._verbose:
            print(f"[app] js: {message} ({source}:{line})")


# ---------------------------------------------------------------------------
# QWebChannel wiring
# ---------------------------------------------------------------------------

HANDLER_SHIM_JS = r"""
(function() {
  new QWebChannel(qt.webChannelTransport, function(channel) {
    window['%(name)s'] = channel.objects['%(name)s'];
  });
})();
"""


def _read_qrc_text(path: str) -> str:
    """Read a Qt resource file (qrc://) as UTF-8 text."""
    from PySide6.QtCore import QFile, QIODevice
    f = QFile(path)
    if f.open(QIODevice.OpenModeFlag.ReadOnly):
        data = bytes(f.readAll()).decode("utf-8", errors="replace")
        f.close()
        return data
    return ""


def setup_bridge(web_view: QWebEngineView, bridge: NativeBridge, handler_name: str) -> QWebChannel:
    """
    Expose ``bridge`` to page scripts as ``window.<handler_name>``.
    Call this BEFORE loading the page.
    """
    channel = QWebChannel(web_view)
    channel.registerObject(handler_name, bridge)
    web_view.page().setWebChannel(channel)

    qwc_js = _read_qrc_text(":/qtwebchannel/qwebchannel.js")
    shim = HANDLER_SHIM_JS % {"name": handler_name}
    # Keep newlines - flattening breaks // comments
    combined = qwc_js + "\n" + shim if qwc_js else shim

    script = QWebEngineScript()
    script.setName("webplayback_handler_shim")
    script.setSourceCode(combined)
    script.setInjectionPoint(QWebEngineScript.InjectionPoint.DocumentCreation)
    script.setWorldId(QWebEngineScript.ScriptWorldId.MainWorld)
    script.setRunsOnSubFrames(False)
    web_view.page().scripts().insert(script)
    return channel


# ---------------------------------------------------------------------------
# Main Window
# ---------------------------------------------------------------------------

class PlaybackWindow(QMainWindow):

    def __init__(self, cfg: settings_module.BridgeSettings, dev_tools: bool = False):
        super().__init__()
        self._cfg = cfg
        self._dev_tools = dev_tools
        self._dev_tools_view: QWebEngineView | None = None

        self.setWindowTitle(APP_NAME)
        self.setMinimumSize(800, 600)
        self.resize(1280, 720)
        self.setStyleSheet("background-color: #000000;")

        # --- Layers: video below, web UI on top ---
        root = QWidget()
        layout = QStackedLayout(root)
        layout.setStackingMode(QStackedLayout.StackingMode.StackAll)
        self.setCentralWidget(root)

        self._video_host = QWidget()
        self._video_host.setAttribute(Qt.WidgetAttribute.WA_NativeWindow)
        self._video_host.setStyleSheet("background-color: #000000;")

        self._web_view = QWebEngineView()
        self._web_page = PlaybackWebPage(self._web_view, verbose=cfg.verbose)
        self._web_view.setPage(self._web_page)
        self._web_page.setBackgroundColor(QColor(Qt.GlobalColor.transparent))

        layout.addWidget(self._web_view)
        layout.addWidget(self._video_host)
        layout.setCurrentWidget(self._web_view)

        # --- Bridge wiring ---
        self._surface = WebViewSurface(self._web_view, self)
        self._dispatcher = WebDispatcher(
            self._surface.run_javascript,
            receiver=cfg.data_receiver,
            key_receiver=cfg.key_receiver,
            prefix=cfg.uri_prefix,
            parent=self,
        )
        self._engine = MpvEngine(wid_fn=lambda: int(self._video_host.winId()))
        self._controller = PlaybackSessionController(
            self._engine,
            self._dispatcher,
            self._surface,
            update_period_ms=cfg.update_period_ms,
            verbose=cfg.verbose,
        )
        self._bridge = NativeBridge(self._controller, prefix=cfg.uri_prefix, parent=self)
        self._channel = setup_bridge(self._web_view, self._bridge, cfg.handler_name)

        # Keys reach the web view's focus proxy, not this window
        QApplication.instance().installEventFilter(self)

        self._web_view.load(QUrl(with_embedded_flag(cfg.init_url)))
        self._web_view.setFocus()

    @property
    def controller(self) -> PlaybackSessionController:
        return self._controller

    # --- Keys ---

    def eventFilter(self, obj, event):
        et = event.type()
        if et not in (QEvent.Type.KeyPress, QEvent.Type.KeyRelease):
            return False
        key = event.key()

        if et == QEvent.Type.KeyRelease and key in BACK_KEYS:
            self.on_back_pressed()
            return True
        if self._dev_tools and et == QEvent.Type.KeyRelease and key == Qt.Key.Key_R:
            self._controller.refresh()

        if self._cfg.consume_dpad and key in DPAD_KEYCODES:
            if et == QEvent.Type.KeyRelease and not event.isAutoRepeat():
                self._dispatcher.handleKeyInjection(DPAD_KEYCODES[key])
            return True
        return False

    def on_back_pressed(self):
        """Step back through page history; close when there is none."""
        if self._surface.can_go_back():
            self._controller.goBack()
            return
        self.close()

    # --- DevTools ---

    def toggle_dev_tools(self):
        if not self._dev_tools:
            return
        if self._dev_tools_view is None:
            self._dev_tools_view = QWebEngineView()
            self._web_page.setDevToolsPage(self._dev_tools_view.page())
        if self._dev_tools_view.isVisible():
            self._dev_tools_view.hide()
        else:
            self._dev_tools_view.show()

    def closeEvent(self, event):
        """Stop updates and shut mpv down before quitting."""
        QApplication.instance().removeEventFilter(self)
        try:
            self._controller.release()
        except Exception as e:
            print(f"[app] Release failed: {e}")
        super().closeEvent(event)


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Web UI with native video playback")
    parser.add_argument("--url", dest="init_url", default=None,
                        help="Page to load on start")
    parser.add_argument("--update-ms", dest="update_period_ms", type=int, default=None,
                        help="Interval between position/play-state pushes to the page")
    parser.add_argument("--consume-dpad", dest="consume_dpad",
                        action=argparse.BooleanOptionalAction, default=None,
                        help="Forward arrow/enter keys to the page as KEY_EVENT")
    parser.add_argument("--verbose", action="store_true", default=None,
                        help="Log session transitions and page console output")
    parser.add_argument("--dev-tools", action="store_true", default=False,
                        help="Enable DevTools (F12) and R to reload")
    return parser.parse_known_args(argv)


def load_settings(args) -> settings_module.BridgeSettings:
    if not os.path.isfile(storage.data_path(settings_module.SETTINGS_FILE)):
        try:
            settings_module.save(settings_module.BridgeSettings())
        except OSError as e:
            print(f"[settings] Could not write defaults: {e}")
    cfg = settings_module.load()
    return cfg.merged(
        init_url=args.init_url or os.environ.get("WEBPLAYBACK_URL") or None,
        update_period_ms=args.update_period_ms,
        consume_dpad=args.consume_dpad,
        verbose=args.verbose,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    args, _unknown = parse_args()
    dev_tools = args.dev_tools or os.environ.get("WEBPLAYBACK_DEVTOOLS") == "1"

    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)

    user_data = pick_user_data_dir()
    storage.init_data_dir(user_data)
    print(f"[app] userData: {user_data}")

    cfg = load_settings(args)
    print(f"[app] Loading {cfg.init_url} (updates every {cfg.update_period_ms}ms)")

    win = PlaybackWindow(cfg, dev_tools=dev_tools)
    if dev_tools:
        QShortcut(QKeySequence("F12"), win, win.toggle_dev_tools)
    win.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
