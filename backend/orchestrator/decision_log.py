"""
Reducer decision logging helpers (pure).

Every reducer decision is described by a LogEvent command; the runtime
enriches and writes it. No IO here.
"""

from __future__ import annotations

from typing import Any

from orchestrator.commands import Command, LogEvent
from orchestrator.events import Event
from orchestrator.state_dataclass import SessionState


def log_decision(
    state: SessionState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "session_id": state.session_id,
            "phase": state.phase.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "response_in_progress": state.response_in_progress,
            "bytes_since_commit": state.bytes_since_commit,
            "details": details or {},
        }
    )


def log_phase_change(
    prev: SessionState,
    new: SessionState,
    event: Event,
    source: str,
) -> LogEvent:
    return log_decision(
        new,
        event,
        "phase_changed",
        {
            "from_phase": prev.phase.value,
            "to_phase": new.phase.value,
            "source": source,
        },
    )


def logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    """Reorder so side effects run first, then logs, then phase changes."""
    non_logs: list[Command] = []
    logs: list[Command] = []
    phase_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "phase_changed":
                phase_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + phase_logs)


def ignore(
    state: SessionState, event: Event, reason: str
) -> tuple[SessionState, tuple[Command, ...]]:
    return state, (log_decision(state, event, "ignore", {"reason": reason}),)
