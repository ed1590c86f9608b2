"""Session and snapshot data for one load-to-unload media lifecycle."""

from dataclasses import dataclass
from enum import Enum


class SessionState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    PREPARED = "prepared"
    PLAYING = "playing"
    PAUSED = "paused"


# States in which the engine has a prepared source
READY_STATES = frozenset({SessionState.PREPARED, SessionState.PLAYING, SessionState.PAUSED})


@dataclass
class Session:
    state: SessionState = SessionState.IDLE
    source_url: str = ""
    origin_page_identity: str = ""
    auto_play_requested: bool = False

    @property
    def prepared(self) -> bool:
        return self.state in READY_STATES


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Read-only view sampled from the engine; never stored."""

    duration_ms: int = 0
    position_ms: int = 0
    is_playing: bool = False
    buffering_percent: int = 0
