"""
Web Playback: Playback Engine

The session controller only talks to the ``PlaybackEngine`` protocol below.
``MpvEngine`` is the production implementation: libmpv via python-mpv,
rendering into a native widget that sits underneath the transparent web view.

All positions and durations cross this boundary in milliseconds.
``on_prepared`` and ``on_buffering_update`` fire on mpv's event thread.
"""

import os
from typing import Callable, Optional, Protocol


class EngineError(RuntimeError):
    """Raised when the engine rejects a source or is in the wrong state."""


class PlaybackEngine(Protocol):

    def set_callbacks(self, on_prepared: Callable[[], None],
                      on_buffering_update: Callable[[int], None]) -> None:
        ...

    def reset(self) -> None:
        ...

    def set_source(self, url: str) -> None:
        ...

    def prepare_async(self) -> None:
        ...

    def play(self) -> None:
        ...

    def pause(self) -> None:
        ...

    def seek_to(self, position_ms: int) -> None:
        ...

    def current_position(self) -> int:
        ...

    def duration(self) -> int:
        ...

    def is_playing(self) -> bool:
        ...

    def release(self) -> None:
        ...


def _seconds_to_ms(value) -> int:
    try:
        return int(float(value) * 1000) if value is not None else 0
    except (TypeError, ValueError):
        return 0


class MpvEngine:
    """libmpv playback bound to a native window id.

    mpv is created lazily on the first ``set_source`` so the shell can build
    its widgets before a window id exists.
    """

    def __init__(self, wid_fn: Optional[Callable[[], int]] = None, volume: int = 100):
        self._wid_fn = wid_fn
        self._volume = volume
        self._mpv = None
        self._source = None
        self._prepared = False
        self._on_prepared = None
        self._pending_prepared = None
        self._on_buffering_update = None

    def set_callbacks(self, on_prepared, on_buffering_update):
        self._on_prepared = on_prepared
        self._on_buffering_update = on_buffering_update

    # ── mpv lifecycle ───────────────────────────────────────────────────

    def _ensure_mpv(self):
        if self._mpv is not None:
            return self._mpv
        try:
            import mpv as _mpv_mod
        except (ImportError, OSError) as e:
            raise EngineError(f"python-mpv not available: {e}") from e

        opts = dict(
            input_default_bindings=False,
            input_vo_keyboard=False,
            osc=False,
            keep_open="yes",
            idle="yes",
            hwdec="auto",
            volume=self._volume,
        )
        if self._wid_fn is not None:
            opts["wid"] = str(int(self._wid_fn()))
        try:
            player = _mpv_mod.MPV(**opts)
        except Exception as e:
            raise EngineError(f"mpv init failed: {e}") from e

        player.observe_property("cache-buffering-state", self._on_cache_buffering)

        @player.event_callback("file-loaded")
        def _on_file_loaded(_evt):
            pending = self._pending_prepared
            if pending is None:
                return
            source, callback = pending
            # A load superseded by reset() can still deliver its file-loaded;
            # only the file mpv is actually on now counts
            if player.path != source:
                print(f"[engine] Dropping file-loaded for {player.path!r}, waiting on {source!r}")
                return
            self._pending_prepared = None
            self._prepared = True
            if callback is not None:
                callback()

        self._mpv = player
        print(f"[engine] mpv ready (wid={opts.get('wid', 'none')})")
        return player

    def _on_cache_buffering(self, _name, value):
        if value is None or not self._prepared:
            return
        if self._on_buffering_update is not None:
            self._on_buffering_update(int(value))

    # ── PlaybackEngine ──────────────────────────────────────────────────

    def reset(self):
        self._prepared = False
        self._pending_prepared = None
        self._source = None
        if self._mpv is None:
            return
        try:
            self._mpv.pause = True
            self._mpv.command("stop")
        except Exception as e:
            raise EngineError(f"reset failed: {e}") from e

    def set_source(self, url):
        if not url:
            raise EngineError("empty media source")
        looks_local = "://" not in url
        if looks_local and not os.path.exists(url):
            raise EngineError(f"media file not found: {url}")
        self._ensure_mpv()
        self._source = url

    def prepare_async(self):
        if self._source is None:
            raise EngineError("prepare_async() called before set_source()")
        try:
            # Load paused; file-loaded marks the source as prepared and fires
            # the callback that was current when this load was started
            self._pending_prepared = (self._source, self._on_prepared)
            self._mpv.pause = True
            self._mpv.loadfile(self._source)
        except Exception as e:
            raise EngineError(f"loadfile failed: {e}") from e

    def play(self):
        if self._mpv is not None and self._prepared:
            self._mpv.pause = False

    def pause(self):
        if self._mpv is not None and self._prepared:
            self._mpv.pause = True

    def seek_to(self, position_ms):
        if self._mpv is None or not self._prepared:
            return
        # mpv treats negative absolute seeks as "from the end"; clamp instead
        target = max(0, int(position_ms))
        dur = self.duration()
        if dur > 0:
            target = min(target, dur)
        try:
            self._mpv.seek(target / 1000.0, reference="absolute")
        except Exception as e:
            print(f"[engine] seek to {target}ms failed: {e}")

    def current_position(self):
        if self._mpv is None or not self._prepared:
            return 0
        return _seconds_to_ms(self._mpv.time_pos)

    def duration(self):
        if self._mpv is None or not self._prepared:
            return 0
        return _seconds_to_ms(self._mpv.duration)

    def is_playing(self):
        if self._mpv is None or not self._prepared:
            return False
        try:
            return not self._mpv.pause and not self._mpv.idle_active
        except Exception:
            return False

    def release(self):
        self._prepared = False
        player, self._mpv = self._mpv, None
        if player is not None:
            player.terminate()
