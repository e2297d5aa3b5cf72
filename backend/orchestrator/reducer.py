"""
Pure session reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (phase, event) pair is handled or explicitly ignored (logged).

Lifecycle:
    IDLE -> CONNECTING -> ACTIVE -> STOPPING -> CLOSED
Response tracking (ACTIVE):
    response_requested: response.create sent, not yet acknowledged
    response_in_progress: between response.created and response.done
"""

from __future__ import annotations

from dataclasses import replace

from audio.frame_buffer import FrameBuffer
from audio.frames import AudioFrame
from constants import MSG_SESSION_READY, MSG_SESSION_STOPPED
from orchestrator.commands import (
    AppendAudio,
    CloseRemote,
    Command,
    CommitAudio,
    ConnectRemote,
    CreateResponse,
    EndSession,
    SendSessionUpdate,
)
from orchestrator.commit_scheduler import CommitDecision, decide, decide_on_stop
from orchestrator.decision_log import ignore, log_decision, log_phase_change, logs_last
from orchestrator.enums.phase import Phase
from orchestrator.events import (
    ClientAudio,
    ClientDisconnected,
    ClientInit,
    ClientStop,
    Event,
    RemoteClosed,
    RemoteConnected,
    RemoteConnectFailed,
    RemoteError,
    RemoteSessionCreated,
    RemoteSessionUpdated,
    RemoteTransportError,
)
from orchestrator.relay import RELAY_EVENT_TYPES, relay_remote_event, to_client
from orchestrator.state_dataclass import SessionState


# =============================================================================
# Small helpers
# =============================================================================

def _response_busy(state: SessionState) -> bool:
    return state.response_in_progress or state.response_requested


def _append_frame(
    state: SessionState, pcm_bytes: bytes, *, partial: bool
) -> tuple[SessionState, AppendAudio]:
    seq = state.frames_sent + 1
    return (
        replace(
            state,
            frames_sent=seq,
            bytes_since_commit=state.bytes_since_commit + len(pcm_bytes),
        ),
        AppendAudio(
            frame=AudioFrame(sequence_num=seq, pcm_bytes=pcm_bytes, partial=partial)
        ),
    )


def _apply_commit_decision(
    state: SessionState,
    event: Event,
    decision: CommitDecision,
    remainder: bytes,
) -> tuple[SessionState, list[Command]]:
    """Turn a scheduling decision into state + flush/commit/response commands."""
    cmds: list[Command] = []
    new_state = state

    if decision.flush and remainder:
        new_state, append = _append_frame(
            replace(new_state, pending_audio=b""), remainder, partial=True
        )
        cmds.append(append)
        # Every timed flush restarts the interval, committed or not.
        new_state = replace(new_state, last_commit_ts_ms=event.ts_ms)

    if decision.commit:
        cmds.append(CommitAudio(bytes_committed=new_state.bytes_since_commit))
        new_state = replace(
            new_state,
            bytes_since_commit=0,
            last_commit_ts_ms=event.ts_ms,
            commits_issued=new_state.commits_issued + 1,
        )

    if decision.respond:
        cmds.append(CreateResponse())
        new_state = replace(new_state, response_requested=True)

    return new_state, cmds


def _close(
    state: SessionState,
    event: Event,
    *,
    source: str,
    client_error: str | None,
    close_remote: bool,
) -> tuple[SessionState, tuple[Command, ...]]:
    """Enter CLOSED. EndSession is emitted exactly once, here."""
    new_state = replace(
        state,
        phase=Phase.CLOSED,
        response_requested=False,
        response_in_progress=False,
        active_response_id=None,
        rejected_response_ids=frozenset(),
        response_audio=(),
        response_text="",
        last_error=client_error or state.last_error,
    )
    cmds: tuple[Command, ...] = ()
    if client_error is not None:
        cmds += to_client(new_state, "error", message=client_error)
    if close_remote:
        cmds += (CloseRemote(delay_ms=0),)
    cmds += (
        EndSession(reason=source),
        log_phase_change(state, new_state, event, source),
    )
    return new_state, logs_last(cmds)


# =============================================================================
# Client events
# =============================================================================

def _on_client_init(
    state: SessionState, event: ClientInit
) -> tuple[SessionState, tuple[Command, ...]]:
    if state.phase is not Phase.IDLE:
        return ignore(state, event, "already_initialized")

    new_state = replace(
        state,
        session_id=event.session_id,
        phase=Phase.CONNECTING,
        last_error=None,
    )
    return new_state, logs_last((
        ConnectRemote(session_id=event.session_id),
        log_phase_change(state, new_state, event, "client_init"),
    ))


def _on_client_audio(
    state: SessionState, event: ClientAudio
) -> tuple[SessionState, tuple[Command, ...]]:
    if state.phase is not Phase.ACTIVE:
        return ignore(state, event, f"audio_in_{state.phase.value.lower()}")

    buffer = FrameBuffer(
        state.audio_format.bytes_per_frame, retained=state.pending_audio
    )
    frames = buffer.append(event.pcm_bytes)

    cmds: list[Command] = []
    new_state = state
    for frame in frames:
        new_state, append = _append_frame(new_state, frame, partial=False)
        cmds.append(append)

    remainder = buffer.remainder
    new_state = replace(new_state, pending_audio=remainder)

    decision = decide(
        new_state.commit_policy,
        remainder_bytes=len(remainder),
        bytes_since_commit=new_state.bytes_since_commit,
        elapsed_ms=event.ts_ms - new_state.last_commit_ts_ms,
        response_busy=_response_busy(new_state),
    )
    new_state, commit_cmds = _apply_commit_decision(
        new_state, event, decision, remainder
    )
    cmds.extend(commit_cmds)

    if frames or decision.flush:
        cmds.append(
            log_decision(
                new_state,
                event,
                "audio_scheduled",
                {
                    "chunk_bytes": len(event.pcm_bytes),
                    "frames": len(frames),
                    "retained_bytes": len(new_state.pending_audio),
                    "action": decision.action.value,
                    "reason": decision.reason,
                },
            )
        )

    return new_state, logs_last(tuple(cmds))


def _on_stop(
    state: SessionState, event: ClientStop | ClientDisconnected
) -> tuple[SessionState, tuple[Command, ...]]:
    if isinstance(event, ClientDisconnected):
        state = replace(state, client_connected=False)

    if state.phase in (Phase.IDLE, Phase.STOPPING, Phase.CLOSED):
        return ignore(state, event, f"stop_in_{state.phase.value.lower()}")

    cmds: list[Command] = []
    new_state = state
    grace_ms = 0

    if state.phase is Phase.ACTIVE:
        remainder = state.pending_audio
        decision = decide_on_stop(
            state.commit_policy,
            remainder_bytes=len(remainder),
            bytes_since_commit=state.bytes_since_commit,
        )
        new_state, cmds = _apply_commit_decision(new_state, event, decision, remainder)
        cmds.append(
            log_decision(
                new_state,
                event,
                "final_flush",
                {
                    "flushed_bytes": len(remainder) if decision.flush else 0,
                    "action": decision.action.value,
                    "reason": decision.reason,
                },
            )
        )
        grace_ms = state.close_grace_ms

    new_state = replace(
        new_state,
        phase=Phase.STOPPING,
        response_requested=False,
    )
    cmds.append(CloseRemote(delay_ms=grace_ms))
    cmds.extend(to_client(new_state, "session_stopped", message=MSG_SESSION_STOPPED))
    cmds.append(
        log_phase_change(
            state,
            new_state,
            event,
            "client_stop" if isinstance(event, ClientStop) else "client_disconnected",
        )
    )
    return new_state, logs_last(tuple(cmds))


# =============================================================================
# Remote lifecycle events
# =============================================================================

def _on_remote_connected(
    state: SessionState, event: RemoteConnected
) -> tuple[SessionState, tuple[Command, ...]]:
    if state.phase is not Phase.CONNECTING:
        return ignore(state, event, "connected_outside_connecting")
    return state, (
        SendSessionUpdate(),
        log_decision(state, event, "send_session_update"),
    )


def _on_session_updated(
    state: SessionState, event: RemoteSessionUpdated
) -> tuple[SessionState, tuple[Command, ...]]:
    if state.phase is not Phase.CONNECTING:
        return ignore(state, event, "session_already_configured")

    new_state = replace(
        state,
        phase=Phase.ACTIVE,
        last_commit_ts_ms=event.ts_ms,
    )
    cmds = to_client(
        new_state,
        "session_ready",
        message=MSG_SESSION_READY,
        sessionId=new_state.session_id,
        audio_format=new_state.audio_format.as_dict(),
    )
    return new_state, logs_last(
        cmds + (log_phase_change(state, new_state, event, "session_updated"),)
    )


def _on_remote_closed(
    state: SessionState, event: RemoteClosed
) -> tuple[SessionState, tuple[Command, ...]]:
    if state.phase is Phase.STOPPING:
        return _close(
            state, event, source="stopped", client_error=None, close_remote=False
        )
    if state.phase in (Phase.CONNECTING, Phase.ACTIVE):
        return _close(
            state,
            event,
            source="remote_closed",
            client_error="Translation service connection closed",
            close_remote=False,
        )
    return ignore(state, event, f"closed_in_{state.phase.value.lower()}")


def _on_remote_failure(
    state: SessionState, event: RemoteConnectFailed | RemoteTransportError
) -> tuple[SessionState, tuple[Command, ...]]:
    if state.phase in (Phase.IDLE, Phase.CLOSED):
        return ignore(state, event, f"failure_in_{state.phase.value.lower()}")

    if isinstance(event, RemoteConnectFailed):
        source = "connect_failed"
        message = "Failed to initialize translation session"
        close_remote = False
    else:
        source = "transport_error"
        message = "Translation service connection error"
        close_remote = True

    # A stopping client already got session_stopped; do not add an error.
    client_error = None if state.phase is Phase.STOPPING else message
    new_state, cmds = _close(
        replace(state, last_error=event.reason),
        event,
        source=source,
        client_error=client_error,
        close_remote=close_remote,
    )
    return new_state, cmds + (
        log_decision(new_state, event, source, {"reason": event.reason}),
    )


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: SessionState, event: Event
) -> tuple[SessionState, tuple[Command, ...]]:
    """
    Pure reducer for the translation session state machine.

    Given the current session state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects
    """
    # ------------------------------------------------------------------
    # Client intent
    # ------------------------------------------------------------------
    if isinstance(event, ClientInit):
        return _on_client_init(state, event)

    if isinstance(event, ClientAudio):
        return _on_client_audio(state, event)

    if isinstance(event, (ClientStop, ClientDisconnected)):
        return _on_stop(state, event)

    # ------------------------------------------------------------------
    # Remote lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, RemoteConnected):
        return _on_remote_connected(state, event)

    if isinstance(event, RemoteSessionCreated):
        return state, (
            log_decision(
                state,
                event,
                "remote_session_created",
                {"remote_session_id": event.remote_session_id},
            ),
        )

    if isinstance(event, RemoteSessionUpdated):
        return _on_session_updated(state, event)

    if isinstance(event, RemoteClosed):
        return _on_remote_closed(state, event)

    if isinstance(event, (RemoteConnectFailed, RemoteTransportError)):
        return _on_remote_failure(state, event)

    # ------------------------------------------------------------------
    # Relay
    # ------------------------------------------------------------------
    if isinstance(event, RELAY_EVENT_TYPES):
        relaying = (Phase.ACTIVE, Phase.STOPPING)
        if isinstance(event, RemoteError):
            relaying = (Phase.CONNECTING, Phase.ACTIVE, Phase.STOPPING)
        if state.phase not in relaying:
            return ignore(state, event, f"relay_in_{state.phase.value.lower()}")

        new_state, cmds = relay_remote_event(state, event)

        if (
            isinstance(event, RemoteError)
            and event.fatal
            and new_state.phase is not Phase.STOPPING
        ):
            stopping = replace(new_state, phase=Phase.STOPPING)
            return stopping, logs_last(cmds + (
                CloseRemote(delay_ms=0),
                log_phase_change(new_state, stopping, event, "fatal_remote_error"),
            ))

        return new_state, cmds

    return ignore(state, event, "unhandled_event")
