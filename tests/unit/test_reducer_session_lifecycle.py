# pylint: disable=missing-module-docstring,missing-function-docstring
from dataclasses import replace

from orchestrator.commit_scheduler import CommitPolicy
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import SessionState
from orchestrator.enums.phase import Phase

from orchestrator.events import (
    EventType,
    ClientAudio,
    ClientDisconnected,
    ClientInit,
    ClientStop,
    RemoteClosed,
    RemoteConnected,
    RemoteConnectFailed,
    RemoteError,
    RemoteSessionUpdated,
    RemoteTransportError,
)

from orchestrator.commands import (
    AppendAudio,
    CloseRemote,
    Command,
    CommitAudio,
    ConnectRemote,
    CreateResponse,
    EndSession,
    LogEvent,
    SendJSONToClient,
    SendSessionUpdate,
)


# ---------------------------------------------------------------------
# Event helpers (mirror gateway / adapter construction)
# ---------------------------------------------------------------------

def init(session_id: str = "sess_test", ts_ms: int = 0) -> ClientInit:
    return ClientInit(event_type=EventType.CLIENT_INIT, ts_ms=ts_ms, session_id=session_id)


def audio(n: int, ts_ms: int, fill: int = 1) -> ClientAudio:
    return ClientAudio(
        event_type=EventType.CLIENT_AUDIO, ts_ms=ts_ms, pcm_bytes=bytes([fill]) * n
    )


def stop(ts_ms: int = 0) -> ClientStop:
    return ClientStop(event_type=EventType.CLIENT_STOP, ts_ms=ts_ms)


def disconnected(ts_ms: int = 0) -> ClientDisconnected:
    return ClientDisconnected(event_type=EventType.CLIENT_DISCONNECTED, ts_ms=ts_ms)


def connected(ts_ms: int = 0) -> RemoteConnected:
    return RemoteConnected(event_type=EventType.REMOTE_CONNECTED, ts_ms=ts_ms)


def session_updated(ts_ms: int = 0) -> RemoteSessionUpdated:
    return RemoteSessionUpdated(event_type=EventType.REMOTE_SESSION_UPDATED, ts_ms=ts_ms)


def remote_closed(ts_ms: int = 0) -> RemoteClosed:
    return RemoteClosed(event_type=EventType.REMOTE_CLOSED, ts_ms=ts_ms, reason="closed")


def active_state(**overrides: object) -> SessionState:
    state = SessionState()
    for event in (init(), connected(), session_updated(ts_ms=0)):
        state, _ = reduce(state, event)
    assert state.phase is Phase.ACTIVE
    return replace(state, **overrides)


def of_type(cmds: tuple[Command, ...], cls: type) -> list:
    return [c for c in cmds if isinstance(c, cls)]


def client_messages(cmds: tuple[Command, ...]) -> list[SendJSONToClient]:
    return of_type(cmds, SendJSONToClient)


# ---------------------------------------------------------------------
# Connect handshake
# ---------------------------------------------------------------------

def test_init_moves_idle_to_connecting_and_connects():
    state, cmds = reduce(SessionState(), init("sess_abc"))

    assert state.phase is Phase.CONNECTING
    assert state.session_id == "sess_abc"
    assert of_type(cmds, ConnectRemote) == [ConnectRemote(session_id="sess_abc")]

    phase_logs = [
        c for c in of_type(cmds, LogEvent) if c.event["decision"] == "phase_changed"
    ]
    assert phase_logs[0].event["details"]["to_phase"] == "CONNECTING"


def test_second_init_is_ignored():
    state, _ = reduce(SessionState(), init())
    new_state, cmds = reduce(state, init("sess_other"))

    assert new_state is state
    assert not of_type(cmds, ConnectRemote)


def test_remote_connected_sends_session_update():
    state, _ = reduce(SessionState(), init())
    state, cmds = reduce(state, connected())

    assert state.phase is Phase.CONNECTING
    assert of_type(cmds, SendSessionUpdate)


def test_session_updated_activates_and_notifies_client():
    state, _ = reduce(SessionState(), init("sess_ready"))
    state, _ = reduce(state, connected())
    state, cmds = reduce(state, session_updated(ts_ms=1234))

    assert state.phase is Phase.ACTIVE
    assert state.last_commit_ts_ms == 1234

    (ready,) = client_messages(cmds)
    assert ready.message_type == "session_ready"
    assert ready.data["sessionId"] == "sess_ready"
    assert ready.data["audio_format"]["sample_rate"] == 24_000


# ---------------------------------------------------------------------
# Audio scheduling
# ---------------------------------------------------------------------

def test_audio_before_active_is_dropped():
    state, _ = reduce(SessionState(), init())
    new_state, cmds = reduce(state, audio(30_000, ts_ms=10))

    assert not of_type(cmds, AppendAudio)
    assert new_state.pending_audio == b""


def test_chunks_are_reframed_and_remainder_retained():
    state = active_state()
    appends: list[AppendAudio] = []

    for i in range(5):
        state, cmds = reduce(state, audio(5000, ts_ms=100 * (i + 1)))
        appends.extend(of_type(cmds, AppendAudio))

    assert len(appends) == 1
    assert len(appends[0].frame) == 24_000
    assert not appends[0].frame.partial
    assert appends[0].frame.sequence_num == 1
    assert len(state.pending_audio) == 1000
    assert state.bytes_since_commit == 24_000


def test_interval_elapsed_flushes_commits_and_requests_response():
    state = active_state()

    state, cmds = reduce(state, audio(24_000 + 10_000, ts_ms=2500))
    side_effects = [c for c in cmds if not isinstance(c, LogEvent)]

    assert [type(c) for c in side_effects] == [
        AppendAudio,
        AppendAudio,
        CommitAudio,
        CreateResponse,
    ]
    assert side_effects[1].frame.partial
    assert len(side_effects[1].frame) == 10_000
    assert side_effects[2].bytes_committed == 34_000

    assert state.pending_audio == b""
    assert state.bytes_since_commit == 0
    assert state.last_commit_ts_ms == 2500
    assert state.response_requested


def test_no_response_request_while_response_in_progress():
    state = active_state(response_in_progress=True, active_response_id="resp_1")

    state, cmds = reduce(state, audio(34_000, ts_ms=2500))

    assert of_type(cmds, CommitAudio)
    assert not of_type(cmds, CreateResponse)
    assert not state.response_requested


def test_no_overlapping_request_before_response_created():
    state = active_state()
    state, cmds = reduce(state, audio(34_000, ts_ms=2500))
    assert of_type(cmds, CreateResponse)

    # Next interval elapses before response.created arrived
    state, cmds = reduce(state, audio(34_000, ts_ms=5000))
    assert of_type(cmds, CommitAudio)
    assert not of_type(cmds, CreateResponse)


def test_small_remainder_is_held_after_interval():
    state = active_state()

    state, cmds = reduce(state, audio(24_000 + 500, ts_ms=3000))

    assert len(of_type(cmds, AppendAudio)) == 1
    assert not of_type(cmds, CommitAudio)
    assert len(state.pending_audio) == 500


def test_flush_without_commit_restarts_interval():
    state = active_state(
        commit_policy=CommitPolicy(flush_floor_bytes=1000, commit_floor_bytes=100_000)
    )

    state, cmds = reduce(state, audio(2000, ts_ms=2500))
    (append,) = of_type(cmds, AppendAudio)
    assert append.frame.partial
    assert not of_type(cmds, CommitAudio)
    assert state.last_commit_ts_ms == 2500

    # Remainder above the flush floor, but the interval restarted at 2500
    state, cmds = reduce(state, audio(2000, ts_ms=3000))
    assert not of_type(cmds, AppendAudio)
    assert len(state.pending_audio) == 2000

    state, cmds = reduce(state, audio(2000, ts_ms=4600))
    (append,) = of_type(cmds, AppendAudio)
    assert len(append.frame) == 4000
    assert state.bytes_since_commit == 6000
    assert state.last_commit_ts_ms == 4600


# ---------------------------------------------------------------------
# Stop
# ---------------------------------------------------------------------

def test_stop_below_commit_floor_flushes_without_commit():
    state = active_state()
    state, _ = reduce(state, audio(3000, ts_ms=100))

    state, cmds = reduce(state, stop(ts_ms=200))

    (append,) = of_type(cmds, AppendAudio)
    assert len(append.frame) == 3000
    assert append.frame.partial
    assert not of_type(cmds, CommitAudio)
    assert not of_type(cmds, CreateResponse)
    assert of_type(cmds, CloseRemote) == [CloseRemote(delay_ms=1000)]
    assert [m.message_type for m in client_messages(cmds)] == ["session_stopped"]
    assert state.phase is Phase.STOPPING


def test_stop_with_enough_audio_commits_without_response():
    state = active_state()
    state, _ = reduce(state, audio(30_000, ts_ms=100))

    state, cmds = reduce(state, stop(ts_ms=200))

    (commit,) = of_type(cmds, CommitAudio)
    assert commit.bytes_committed == 30_000
    assert not of_type(cmds, CreateResponse)
    assert state.bytes_since_commit == 0


def test_stop_twice_is_a_no_op():
    state = active_state()
    state, _ = reduce(state, stop())

    new_state, cmds = reduce(state, stop())

    assert new_state == state
    assert all(isinstance(c, LogEvent) for c in cmds)
    assert cmds[0].event["details"]["reason"] == "stop_in_stopping"


def test_stop_while_connecting_closes_immediately():
    state, _ = reduce(SessionState(), init())

    state, cmds = reduce(state, stop())

    assert state.phase is Phase.STOPPING
    assert of_type(cmds, CloseRemote) == [CloseRemote(delay_ms=0)]
    assert not of_type(cmds, AppendAudio)


def test_stop_before_init_is_ignored():
    state, cmds = reduce(SessionState(), stop())

    assert state.phase is Phase.IDLE
    assert all(isinstance(c, LogEvent) for c in cmds)


def test_client_disconnect_stops_without_client_messages():
    state = active_state()
    state, _ = reduce(state, audio(3000, ts_ms=100))

    state, cmds = reduce(state, disconnected())

    assert state.phase is Phase.STOPPING
    assert not state.client_connected
    assert of_type(cmds, AppendAudio)
    assert of_type(cmds, CloseRemote)
    assert not client_messages(cmds)


# ---------------------------------------------------------------------
# Closing
# ---------------------------------------------------------------------

def test_remote_closed_after_stop_ends_session_quietly():
    state = active_state()
    state, _ = reduce(state, stop())

    state, cmds = reduce(state, remote_closed())

    assert state.phase is Phase.CLOSED
    assert of_type(cmds, EndSession) == [EndSession(reason="stopped")]
    assert not client_messages(cmds)


def test_unexpected_remote_close_reports_error():
    state, cmds = reduce(active_state(), remote_closed())

    assert state.phase is Phase.CLOSED
    (err,) = client_messages(cmds)
    assert err.message_type == "error"
    assert of_type(cmds, EndSession)


def test_connect_failure_reports_initialization_error():
    state, _ = reduce(SessionState(), init())

    state, cmds = reduce(
        state,
        RemoteConnectFailed(
            event_type=EventType.REMOTE_CONNECT_FAILED, ts_ms=5, reason="refused"
        ),
    )

    assert state.phase is Phase.CLOSED
    (err,) = client_messages(cmds)
    assert err.data["message"] == "Failed to initialize translation session"
    assert of_type(cmds, EndSession)
    assert not of_type(cmds, CloseRemote)


def test_transport_error_closes_remote_and_session():
    state, cmds = reduce(
        active_state(),
        RemoteTransportError(
            event_type=EventType.REMOTE_TRANSPORT_ERROR, ts_ms=5, reason="broken pipe"
        ),
    )

    assert state.phase is Phase.CLOSED
    assert state.last_error == "Translation service connection error"
    assert of_type(cmds, CloseRemote) == [CloseRemote(delay_ms=0)]
    assert of_type(cmds, EndSession)


def test_fatal_remote_error_stops_session():
    state, cmds = reduce(
        active_state(),
        RemoteError(
            event_type=EventType.REMOTE_ERROR,
            ts_ms=5,
            message="Incorrect API key provided",
            code="invalid_api_key",
            error_type="invalid_request_error",
            fatal=True,
        ),
    )

    assert state.phase is Phase.STOPPING
    assert of_type(cmds, CloseRemote) == [CloseRemote(delay_ms=0)]
    (err,) = client_messages(cmds)
    assert err.data["message"] == "Translation error: Incorrect API key provided"


def test_end_session_emitted_exactly_once():
    state = active_state()
    end_sessions = 0

    for event in (stop(), remote_closed(), remote_closed(), stop(), disconnected()):
        state, cmds = reduce(state, event)
        end_sessions += len(of_type(cmds, EndSession))

    assert end_sessions == 1
    assert state.phase is Phase.CLOSED


def test_audio_after_close_is_dropped():
    state = active_state()
    state, _ = reduce(state, stop())
    state, _ = reduce(state, remote_closed())

    _, cmds = reduce(state, audio(48_000, ts_ms=9000))

    assert not of_type(cmds, AppendAudio)
