"""
Web Playback: Playback Session Controller

Owns the single ``Session`` and sits between the page (via NativeBridge /
WebDispatcher), the update poller and the playback engine.

    IDLE -> LOADING -> PREPARED -> PLAYING <-> PAUSED
    any state -> LOADING on loadVideo (poller stopped first)

Three threads touch this object: the GUI thread (page commands), the poller
thread (onPerformUpdate) and the engine's event thread (prepare / buffering).
All session reads and writes happen under ``self._lock``.

The engine cannot cancel a prepare.  A completion is honoured only if it
belongs to the latest load and the page that asked for it is still showing;
anything else is dropped.
"""

import threading
from functools import partial
from typing import Protocol

import uri_codec
from playback_engine import EngineError
from session import PlaybackSnapshot, Session, SessionState
from update_poller import DEFAULT_INTERVAL_MS, UpdatePoller


class ContentSurface(Protocol):
    """The web view as seen by the controller."""

    def current_identity(self) -> str:
        ...

    def can_go_back(self) -> bool:
        ...

    def go_back(self) -> None:
        ...

    def reload(self) -> None:
        ...


class PlaybackSessionController:
    """Implements ``native_bridge.PlaybackActions`` on top of a PlaybackEngine."""

    def __init__(self, engine, dispatcher, content: ContentSurface,
                 update_period_ms=DEFAULT_INTERVAL_MS,
                 poller_factory=UpdatePoller, verbose=False):
        self._engine = engine
        self._dispatcher = dispatcher
        self._content = content
        self._update_period_ms = update_period_ms
        self._poller_factory = poller_factory
        self._verbose = verbose

        self._lock = threading.RLock()
        self._session = Session()
        self._poller = None
        self._load_generation = 0
        self._buffering_percent = 0

        self._engine.set_callbacks(partial(self._on_prepared, 0), self.onBufferingUpdate)

    # ── introspection ───────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._session.state

    @property
    def session(self) -> Session:
        """Copy of the current session record."""
        with self._lock:
            s = self._session
            return Session(s.state, s.source_url, s.origin_page_identity, s.auto_play_requested)

    @property
    def poller_running(self) -> bool:
        with self._lock:
            return self._poller is not None

    def snapshot(self) -> PlaybackSnapshot:
        with self._lock:
            return PlaybackSnapshot(
                duration_ms=self._engine.duration(),
                position_ms=self._engine.current_position(),
                is_playing=self._engine.is_playing(),
                buffering_percent=self._buffering_percent,
            )

    # ── PlaybackActions (called from the page via NativeBridge) ─────────

    def loadVideo(self, url, autoPlay):
        with self._lock:
            s = self._session
            s.auto_play_requested = bool(autoPlay)
            if url is None:
                if s.prepared:
                    self._set_state(SessionState.IDLE)
                return

            self._log(f"loadVideo url={url} autoPlay={bool(autoPlay)}")
            self._stop_poller()
            self._load_generation += 1
            gen = self._load_generation
            self._buffering_percent = 0

            s.source_url = url
            s.origin_page_identity = self._content.current_identity()
            self._set_state(SessionState.LOADING)

            try:
                self._engine.reset()
                self._push_reset()
                self._engine.set_callbacks(partial(self._on_prepared, gen), self.onBufferingUpdate)
                self._engine.set_source(url)
                self._engine.prepare_async()
            except (EngineError, ValueError, OSError) as e:
                # Stays LOADING; the page gets no error signal
                print(f"[session] loadVideo failed for {url}: {type(e).__name__}: {e}")

    def playPauseVideo(self):
        with self._lock:
            if not self._session.prepared:
                return
            if self._engine.is_playing():
                self._pause()
            else:
                self._play()

    def fastForwardVideo(self, skipMs):
        with self._lock:
            self._engine.seek_to(self._engine.current_position() + skipMs)

    def rewindVideo(self, skipMs):
        with self._lock:
            self._engine.seek_to(self._engine.current_position() - skipMs)

    # ── host shell ──────────────────────────────────────────────────────

    def goBack(self):
        """Navigate the page back and drop playback of the page we left."""
        self._content.go_back()
        with self._lock:
            if self._engine.is_playing():
                self._engine.reset()
                self._set_state(SessionState.IDLE)
            if not self._engine.is_playing():
                self._stop_poller()

    def refresh(self):
        self._content.reload()

    def release(self):
        """Host is going away (paused/closed): stop updates and free the engine."""
        with self._lock:
            if self._session.prepared:
                self._set_state(SessionState.IDLE)
            self._stop_poller()
        # Outside the lock: mpv joins its event thread, which may be
        # waiting on the lock inside a prepare/buffering callback
        self._engine.release()

    # ── engine / poller callbacks ───────────────────────────────────────

    def _on_prepared(self, generation):
        with self._lock:
            s = self._session
            if generation != self._load_generation or s.state is not SessionState.LOADING:
                self._log(f"Ignoring stale prepare (load #{generation})")
                return
            current = self._content.current_identity()
            if s.origin_page_identity != current:
                self._log(f"Ignoring prepare for {s.origin_page_identity}, page is now {current}")
                return

            self._set_state(SessionState.PREPARED)
            self._send(uri_codec.DATA_DURATION, self._engine.duration() // 1000)
            self._push_position()

            auto_play = s.auto_play_requested
            s.auto_play_requested = False
            if auto_play:
                self._play()

    def onBufferingUpdate(self, percent):
        with self._lock:
            if not self._session.prepared:
                return
            self._buffering_percent = max(0, min(100, int(percent)))
            self._send(uri_codec.DATA_BUFFERING_PERCENT, self._buffering_percent)

    def onPerformUpdate(self):
        with self._lock:
            if not self._session.prepared:
                return
            self._push_position()
            self._push_play_state()

    # ── internals ───────────────────────────────────────────────────────

    def _play(self):
        if self._engine.is_playing() or not self._session.prepared:
            return
        if self._poller is None:
            self._poller = self._poller_factory(self.onPerformUpdate)
            self._poller.start(self._update_period_ms)
        self._engine.play()
        self._set_state(SessionState.PLAYING)

    def _pause(self):
        if not self._engine.is_playing() or not self._session.prepared:
            return
        # Poller keeps running while paused
        self._engine.pause()
        self._set_state(SessionState.PAUSED)

    def _stop_poller(self):
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

    def _set_state(self, new_state):
        old = self._session.state
        self._session.state = new_state
        if old is not new_state:
            self._log(f"{old.name} -> {new_state.name}")

    def _push_reset(self):
        self._push_position()
        self._send(uri_codec.DATA_DURATION, 0)
        self._push_play_state()

    def _push_position(self):
        pos = 0
        if self._session.prepared:
            pos = self._engine.current_position() // 1000
        self._send(uri_codec.DATA_CURRENT_POSITION, pos)

    def _push_play_state(self):
        state = uri_codec.PLAY_STATE_PAUSED
        if self._engine.is_playing():
            state = uri_codec.PLAY_STATE_PLAYING
        self._send(uri_codec.DATA_PLAY_STATE, state)

    def _send(self, action, *args):
        self._dispatcher.send(action, [str(a) for a in args])

    def _log(self, msg):
        if self._verbose:
            print(f"[session] {msg}")
