"""
Event relay: remote translation events -> client notifications (pure).

Aggregation rules:
- response.created   sets response_in_progress, resets accumulators
- overlapping response.created is refused; events carrying its id are
  dropped until its own response.done
- audio delta        accumulated, NOT forwarded until response.done
- transcript delta   forwarded immediately as "translation"
- response.done      one consolidated "translated_audio" for the response
- speech start/stop  forwarded 1:1
- error              forwarded with a human-readable message

Audio is held until response.done and delivered as one clip per response.

The relay never changes the session phase; fatal errors are turned into
phase transitions by the reducer.
"""

from __future__ import annotations

from dataclasses import replace

from constants import MSG_SPEECH_STARTED, MSG_SPEECH_STOPPED
from orchestrator.commands import Command, SendJSONToClient
from orchestrator.decision_log import ignore, log_decision
from orchestrator.events import (
    Event,
    RemoteAudioDelta,
    RemoteError,
    RemoteInputTranscription,
    RemoteResponseCreated,
    RemoteResponseDone,
    RemoteSpeechStarted,
    RemoteSpeechStopped,
    RemoteTranscriptDelta,
)
from orchestrator.state_dataclass import SessionState


RELAY_EVENT_TYPES = (
    RemoteResponseCreated,
    RemoteAudioDelta,
    RemoteTranscriptDelta,
    RemoteInputTranscription,
    RemoteSpeechStarted,
    RemoteSpeechStopped,
    RemoteResponseDone,
    RemoteError,
)


def to_client(
    state: SessionState, message_type: str, **data: object
) -> tuple[Command, ...]:
    if not state.client_connected:
        return ()
    return (SendJSONToClient(message_type=message_type, data=dict(data)),)


def _belongs_to_active(state: SessionState, response_id: str) -> bool:
    # Deltas without an id are attributed to the active response.
    if not response_id or state.active_response_id is None:
        return True
    return response_id == state.active_response_id


def relay_remote_event(
    state: SessionState, event: Event
) -> tuple[SessionState, tuple[Command, ...]]:
    """Apply one remote protocol event. Caller has already gated on phase."""

    if (
        isinstance(event, (RemoteAudioDelta, RemoteTranscriptDelta, RemoteResponseDone))
        and event.response_id in state.rejected_response_ids
    ):
        if isinstance(event, RemoteResponseDone):
            state = replace(
                state,
                rejected_response_ids=state.rejected_response_ids - {event.response_id},
            )
        return ignore(state, event, "event_for_rejected_response")

    if isinstance(event, RemoteResponseCreated):
        if state.response_in_progress:
            # Upstream anomaly: overlapping responses. Keep the first,
            # drop the second and make it visible.
            rejected = replace(
                state,
                rejected_response_ids=state.rejected_response_ids
                | {event.response_id},
            )
            return rejected, (
                log_decision(
                    rejected,
                    event,
                    "duplicate_response_created",
                    {
                        "active_response_id": state.active_response_id,
                        "rejected_response_id": event.response_id,
                    },
                ),
            ) + to_client(
                rejected,
                "error",
                message="Translation error: overlapping response ignored",
            )

        new_state = replace(
            state,
            response_requested=False,
            response_in_progress=True,
            active_response_id=event.response_id,
            response_audio=(),
            response_text="",
        )
        return new_state, (
            log_decision(
                new_state,
                event,
                "response_started",
                {"response_id": event.response_id},
            ),
        )

    if isinstance(event, RemoteAudioDelta):
        if not state.response_in_progress:
            return ignore(state, event, "audio_without_response")
        if not _belongs_to_active(state, event.response_id):
            return ignore(state, event, "audio_for_inactive_response")
        if not event.pcm_bytes:
            return state, ()

        return replace(
            state,
            response_audio=state.response_audio + (event.pcm_bytes,),
        ), ()

    if isinstance(event, RemoteTranscriptDelta):
        if state.response_in_progress and not _belongs_to_active(
            state, event.response_id
        ):
            return ignore(state, event, "transcript_for_inactive_response")
        if not event.text:
            return state, ()

        new_state = replace(state, response_text=state.response_text + event.text)
        return new_state, to_client(new_state, "translation", text=event.text)

    if isinstance(event, RemoteInputTranscription):
        if not event.text:
            return state, ()
        return state, to_client(state, "transcription", text=event.text)

    if isinstance(event, RemoteSpeechStarted):
        return state, to_client(state, "speech_started", message=MSG_SPEECH_STARTED)

    if isinstance(event, RemoteSpeechStopped):
        return state, to_client(state, "speech_stopped", message=MSG_SPEECH_STOPPED)

    if isinstance(event, RemoteResponseDone):
        if not state.response_in_progress:
            return ignore(state, event, "done_without_response")
        if not _belongs_to_active(state, event.response_id):
            return ignore(state, event, "done_for_inactive_response")

        audio = b"".join(state.response_audio)
        text = state.response_text

        new_state = replace(
            state,
            response_in_progress=False,
            active_response_id=None,
            response_audio=(),
            response_text="",
            responses_completed=state.responses_completed + 1,
        )

        cmds: tuple[Command, ...] = (
            log_decision(
                new_state,
                event,
                "response_completed",
                {
                    "response_id": event.response_id,
                    "status": event.status,
                    "audio_bytes": len(audio),
                    "text_len": len(text),
                },
            ),
        )
        if audio:
            cmds += to_client(new_state, "translated_audio", audio=audio, text=text)
        return new_state, cmds

    if isinstance(event, RemoteError):
        new_state = replace(
            state,
            response_requested=False,
            last_error=event.message,
        )
        return new_state, (
            log_decision(
                new_state,
                event,
                "remote_error",
                {
                    "message": event.message,
                    "code": event.code,
                    "error_type": event.error_type,
                    "fatal": event.fatal,
                },
            ),
        ) + to_client(
            new_state, "error", message=f"Translation error: {event.message}"
        )

    return ignore(state, event, "not_a_relay_event")
