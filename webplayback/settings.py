"""
Web Playback: Settings

Defaults below, optionally overridden by ``bridge_settings.json`` in the user
data directory, then by the command line (see app.py).  A missing or broken
file never stops the shell; bad values fall back per key.
"""

from dataclasses import dataclass, fields, replace

import storage
import uri_codec
import update_poller
import web_dispatcher

SETTINGS_FILE = "bridge_settings.json"

DEFAULT_INIT_URL = "http://localhost:8080/index.html"
HANDLER_NAME = "AppInterface"
MIN_UPDATE_PERIOD_MS = 50


@dataclass
class BridgeSettings:
    init_url: str = DEFAULT_INIT_URL
    uri_prefix: str = uri_codec.URI_PREFIX
    handler_name: str = HANDLER_NAME
    data_receiver: str = web_dispatcher.DATA_RECEIVER
    key_receiver: str = web_dispatcher.KEY_RECEIVER
    update_period_ms: int = update_poller.DEFAULT_INTERVAL_MS
    consume_dpad: bool = True
    verbose: bool = False

    def merged(self, **overrides) -> "BridgeSettings":
        """Copy with every non-None override applied."""
        clean = {k: v for k, v in overrides.items() if v is not None}
        return _normalized(replace(self, **clean))


def _normalized(s: BridgeSettings) -> BridgeSettings:
    if s.update_period_ms < MIN_UPDATE_PERIOD_MS:
        s.update_period_ms = MIN_UPDATE_PERIOD_MS
    return s


def from_dict(raw) -> BridgeSettings:
    defaults = BridgeSettings()
    if not isinstance(raw, dict):
        return defaults
    values = {}
    for f in fields(BridgeSettings):
        if f.name not in raw:
            continue
        v = raw[f.name]
        want = type(getattr(defaults, f.name))
        # bool is an int subclass; don't let true/false pass as a period
        if want is int and (isinstance(v, bool) or not isinstance(v, int)):
            print(f"[settings] Ignoring {f.name}={v!r} (expected int)")
            continue
        if not isinstance(v, want):
            print(f"[settings] Ignoring {f.name}={v!r} (expected {want.__name__})")
            continue
        values[f.name] = v
    return _normalized(replace(defaults, **values))


def load() -> BridgeSettings:
    """Read settings from the data dir; defaults when absent or unreadable."""
    raw = storage.read_json(storage.data_path(SETTINGS_FILE), None)
    return from_dict(raw)


def save(s: BridgeSettings):
    storage.write_json_sync(
        storage.data_path(SETTINGS_FILE),
        {f.name: getattr(s, f.name) for f in fields(BridgeSettings)},
    )
