"""
Web Playback: Playback State Poller

Calls ``on_perform_update`` every ``interval_ms`` on a daemon thread so the
page gets position / play-state updates at a rate the renderer can absorb,
instead of on every engine tick.

One poller per playing session.  ``start`` on a running poller raises; the
controller is responsible for stop-before-restart.  ``stop`` is idempotent and
cooperative: the loop re-checks the stop event after every wait, so at most a
callback that is already running can finish after ``stop`` returns.
"""

import threading

DEFAULT_INTERVAL_MS = 900


class UpdatePoller:

    def __init__(self, on_perform_update, name="webplayback-poller"):
        self._on_perform_update = on_perform_update
        self._name = name
        self._stop = threading.Event()
        self._thread = None
        self._interval_s = DEFAULT_INTERVAL_MS / 1000.0

    @property
    def running(self) -> bool:
        return (self._thread is not None and self._thread.is_alive()
                and not self._stop.is_set())

    def start(self, interval_ms=DEFAULT_INTERVAL_MS):
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("poller already started; stop() it first")
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self._interval_s = interval_ms / 1000.0
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()

    def join(self, timeout=None):
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout)

    def _loop(self):
        while True:
            # wait() returns True as soon as stop() is called
            if self._stop.wait(self._interval_s):
                break
            if self._stop.is_set():
                break
            try:
                self._on_perform_update()
            except Exception as e:
                print(f"[poller] Update callback failed: {e}")
