import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "webplayback"))

from PySide6.QtCore import QCoreApplication  # noqa: E402


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


def drain():
    """Run queued slot calls posted to this thread."""
    for _ in range(5):
        QCoreApplication.sendPostedEvents()
        QCoreApplication.processEvents()


class FakeEngine:
    """In-memory PlaybackEngine; prepares complete only when the test says so."""

    def __init__(self, duration_ms=120000):
        self.duration_ms = duration_ms
        self.position_ms = 0
        self.playing = False
        self.prepared = False
        self.fail_on_source = None
        self.released = False
        self.reset_count = 0
        self.sources = []
        self.seeks = []
        self.pending = []
        self._on_prepared = None
        self._on_buffering = None

    def set_callbacks(self, on_prepared, on_buffering_update):
        self._on_prepared = on_prepared
        self._on_buffering = on_buffering_update

    def reset(self):
        self.reset_count += 1
        self.playing = False
        self.prepared = False
        self.position_ms = 0

    def set_source(self, url):
        if self.fail_on_source is not None:
            raise self.fail_on_source
        self.sources.append(url)

    def prepare_async(self):
        self.pending.append(self._on_prepared)

    def complete_prepare(self, index=-1):
        callback = self.pending.pop(index)
        self.prepared = True
        callback()

    def buffering(self, percent):
        self._on_buffering(percent)

    def play(self):
        self.playing = True

    def pause(self):
        self.playing = False

    def seek_to(self, position_ms):
        self.seeks.append((self.position_ms, position_ms))
        self.position_ms = max(0, min(position_ms, self.duration_ms))

    def current_position(self):
        return self.position_ms

    def duration(self):
        return self.duration_ms if self.prepared else 0

    def is_playing(self):
        return self.playing

    def release(self):
        self.released = True
        self.playing = False


class FakeSurface:

    def __init__(self, identity="http://ui/videos?embedded=true"):
        self.identity = identity
        self.history = []
        self.back_calls = 0
        self.reloads = 0

    def navigate(self, identity):
        self.history.append(self.identity)
        self.identity = identity

    def current_identity(self):
        return self.identity

    def can_go_back(self):
        return bool(self.history)

    def go_back(self):
        self.back_calls += 1
        if self.history:
            self.identity = self.history.pop()

    def reload(self):
        self.reloads += 1


class RecordingDispatcher:

    def __init__(self):
        self.sent = []

    def send(self, action, args=()):
        self.sent.append((action, list(args)))

    def actions(self):
        return [a for a, _ in self.sent]

    def clear(self):
        self.sent.clear()


class FakePoller:
    instances = []

    def __init__(self, on_perform_update):
        self.on_perform_update = on_perform_update
        self.interval_ms = None
        self.started = False
        self.stopped = False
        FakePoller.instances.append(self)

    def start(self, interval_ms):
        assert not self.started, "poller started twice"
        self.started = True
        self.interval_ms = interval_ms

    def stop(self):
        self.stopped = True


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def pollers():
    FakePoller.instances = []
    yield FakePoller.instances
    FakePoller.instances = []


@pytest.fixture
def controller(engine, dispatcher, surface, pollers):
    from session_controller import PlaybackSessionController
    return PlaybackSessionController(
        engine, dispatcher, surface,
        update_period_ms=900,
        poller_factory=FakePoller,
    )
