import pytest

from native_bridge import NativeBridge
from playback_engine import EngineError
from session import SessionState

URL = "http://x/a.mp4"

RESET = [
    ("DATA_CURRENT_POSITION", ["0"]),
    ("DATA_DURATION", ["0"]),
    ("DATA_PLAY_STATE", ["PAUSED"]),
]


def prepared(controller, engine, dispatcher, auto_play=False):
    controller.loadVideo(URL, auto_play)
    engine.complete_prepare()
    dispatcher.clear()


def test_starts_idle(controller):
    assert controller.state is SessionState.IDLE
    assert not controller.poller_running


def test_load_records_session_and_pushes_reset(controller, engine, dispatcher, surface):
    controller.loadVideo(URL, True)

    s = controller.session
    assert s.state is SessionState.LOADING
    assert s.source_url == URL
    assert s.origin_page_identity == surface.identity
    assert s.auto_play_requested is True
    assert engine.reset_count == 1
    assert engine.sources == [URL]
    assert len(engine.pending) == 1
    assert dispatcher.sent == RESET


def test_prepare_pushes_duration_and_position(controller, engine, dispatcher):
    engine.duration_ms = 125500
    controller.loadVideo(URL, False)
    dispatcher.clear()

    engine.complete_prepare()

    assert controller.state is SessionState.PREPARED
    assert dispatcher.sent == [
        ("DATA_DURATION", ["125"]),
        ("DATA_CURRENT_POSITION", ["0"]),
    ]
    assert not engine.playing
    assert not controller.poller_running


def test_autoplay_starts_playback_and_poller(controller, engine, pollers):
    controller.loadVideo(URL, True)
    engine.complete_prepare()

    assert controller.state is SessionState.PLAYING
    assert engine.playing
    assert len(pollers) == 1
    assert pollers[0].started and pollers[0].interval_ms == 900
    assert controller.session.auto_play_requested is False


def test_prepare_for_page_that_navigated_away_is_ignored(controller, engine, dispatcher, surface):
    controller.loadVideo(URL, True)
    surface.navigate("http://ui/other")
    dispatcher.clear()

    engine.complete_prepare()

    assert controller.state is SessionState.LOADING
    assert dispatcher.sent == []
    assert not engine.playing


def test_prepare_from_superseded_load_is_ignored(controller, engine, surface):
    controller.loadVideo(URL, False)
    surface.navigate("http://ui/second")
    controller.loadVideo("http://x/b.mp4", False)

    engine.complete_prepare(0)
    assert controller.state is SessionState.LOADING
    assert controller.session.source_url == "http://x/b.mp4"

    engine.complete_prepare(0)
    assert controller.state is SessionState.PREPARED


@pytest.mark.parametrize("error", [EngineError("bad source"), ValueError("bad url"), OSError("io")])
def test_engine_error_on_load_is_logged_and_stays_loading(controller, engine, capsys, error):
    engine.fail_on_source = error
    controller.loadVideo(URL, True)

    assert controller.state is SessionState.LOADING
    assert engine.pending == []
    assert "[session] loadVideo failed" in capsys.readouterr().out


def test_load_with_no_url_only_clears_prepared(controller, engine, dispatcher):
    prepared(controller, engine, dispatcher)
    resets = engine.reset_count

    controller.loadVideo(None, True)

    assert controller.state is SessionState.IDLE
    assert engine.reset_count == resets
    assert dispatcher.sent == []


def test_play_pause_while_loading_is_noop(controller, engine):
    controller.loadVideo(URL, False)
    controller.playPauseVideo()
    assert controller.state is SessionState.LOADING
    assert not engine.playing


def test_play_pause_pair_returns_to_paused(controller, engine, dispatcher, pollers):
    prepared(controller, engine, dispatcher)

    controller.playPauseVideo()
    assert controller.state is SessionState.PLAYING
    assert engine.playing

    controller.playPauseVideo()
    assert controller.state is SessionState.PAUSED
    assert not engine.playing
    # The poller is left running across a pause
    assert controller.poller_running
    assert len(pollers) == 1 and not pollers[0].stopped


def test_resume_does_not_start_second_poller(controller, engine, dispatcher, pollers):
    prepared(controller, engine, dispatcher)
    controller.playPauseVideo()
    controller.playPauseVideo()
    controller.playPauseVideo()
    assert controller.state is SessionState.PLAYING
    assert len(pollers) == 1


def test_new_load_stops_previous_poller(controller, engine, dispatcher, pollers):
    prepared(controller, engine, dispatcher, auto_play=True)
    controller.loadVideo("http://x/b.mp4", True)
    assert pollers[0].stopped
    assert not controller.poller_running

    engine.complete_prepare()
    assert len(pollers) == 2 and not pollers[1].stopped


def test_seek_deltas_from_bridge(controller, engine, dispatcher):
    prepared(controller, engine, dispatcher)
    bridge = NativeBridge(controller)

    bridge.handleURI("nativewebsample://ACTION_REWIND_VIDEO;30;")
    bridge.handleURI("nativewebsample://ACTION_FASTFORWARD_VIDEO;10;")

    deltas = [target - current for current, target in engine.seeks]
    assert deltas == [-30000, 10000]


def test_fast_forward_from_current_position(controller, engine, dispatcher):
    prepared(controller, engine, dispatcher)
    engine.position_ms = 40000
    controller.fastForwardVideo(15000)
    controller.rewindVideo(5000)
    assert engine.seeks == [(40000, 55000), (55000, 50000)]


def test_bridge_load_reaches_controller(controller, engine):
    NativeBridge(controller).handleURI("nativewebsample://ACTION_LOAD_VIDEO;http://x/a.mp4;TRUE;")
    assert controller.session.auto_play_requested is True
    assert engine.sources == [URL]


def test_bridge_rejected_load_leaves_session_alone(controller, engine, dispatcher):
    NativeBridge(controller).handleURI("nativewebsample://ACTION_LOAD_VIDEO;http://x/a.mp4;false;x;")
    assert controller.state is SessionState.IDLE
    assert engine.sources == []
    assert dispatcher.sent == []


def test_perform_update_noop_until_prepared(controller, dispatcher):
    controller.onPerformUpdate()
    controller.loadVideo(URL, False)
    dispatcher.clear()
    controller.onPerformUpdate()
    assert dispatcher.sent == []


def test_perform_update_pushes_position_and_state(controller, engine, dispatcher):
    prepared(controller, engine, dispatcher)
    controller.playPauseVideo()
    engine.position_ms = 61999
    dispatcher.clear()

    controller.onPerformUpdate()

    assert dispatcher.sent == [
        ("DATA_CURRENT_POSITION", ["61"]),
        ("DATA_PLAY_STATE", ["PLAYING"]),
    ]


def test_poller_callback_is_controller_update(controller, engine, dispatcher, pollers):
    prepared(controller, engine, dispatcher, auto_play=True)
    dispatcher.clear()
    pollers[0].on_perform_update()
    assert dispatcher.actions() == ["DATA_CURRENT_POSITION", "DATA_PLAY_STATE"]


def test_buffering_only_pushed_when_prepared(controller, engine, dispatcher):
    controller.loadVideo(URL, False)
    dispatcher.clear()
    engine.buffering(40)
    assert dispatcher.sent == []

    engine.complete_prepare()
    dispatcher.clear()
    engine.buffering(40)
    engine.buffering(150)
    assert dispatcher.sent == [
        ("DATA_BUFFERING_PERCENT", ["40"]),
        ("DATA_BUFFERING_PERCENT", ["100"]),
    ]
    assert controller.snapshot().buffering_percent == 100


def test_snapshot_reads_engine(controller, engine, dispatcher):
    prepared(controller, engine, dispatcher, auto_play=True)
    engine.position_ms = 3000
    snap = controller.snapshot()
    assert snap.duration_ms == 120000
    assert snap.position_ms == 3000
    assert snap.is_playing is True


def test_go_back_while_playing_resets_engine(controller, engine, dispatcher, surface, pollers):
    surface.navigate("http://ui/watch")
    prepared(controller, engine, dispatcher, auto_play=True)
    resets = engine.reset_count

    controller.goBack()

    assert surface.back_calls == 1
    assert engine.reset_count == resets + 1
    assert pollers[0].stopped
    assert controller.state is SessionState.IDLE


def test_go_back_while_paused_only_stops_poller(controller, engine, dispatcher, surface, pollers):
    prepared(controller, engine, dispatcher, auto_play=True)
    controller.playPauseVideo()
    resets = engine.reset_count

    controller.goBack()

    assert surface.back_calls == 1
    assert engine.reset_count == resets
    assert pollers[0].stopped
    assert controller.state is SessionState.PAUSED


def test_release_stops_everything(controller, engine, dispatcher, pollers):
    prepared(controller, engine, dispatcher, auto_play=True)
    controller.release()
    assert controller.state is SessionState.IDLE
    assert pollers[0].stopped
    assert engine.released


def test_refresh_reloads_content(controller, surface):
    controller.refresh()
    assert surface.reloads == 1
