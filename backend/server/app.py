"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (session registry, remote adapter factory)
- Register routes
"""

from __future__ import annotations

import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.realtime.openai_realtime import OpenAIRealtimeAdapter
from config import AppConfig
from observability.logger import configure_logging, log_event
from session.gateway import EmitEvent, RemoteFactory
from session.registry import SessionRegistry

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    remote_factory: RemoteFactory | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: defaults to AppConfig.load_from_env()
        remote_factory: builds the remote peer for a session; defaults to
            the OpenAI Realtime adapter (requires OPENAI_API_KEY)
    """
    if config is None:
        config = AppConfig.load_from_env()

    if remote_factory is None:
        if not config.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY environment variable not set")
        remote_factory = build_remote_factory(config)

    configure_logging(enabled=config.enable_json_logs)

    app = FastAPI(title="Live Translation Relay")

    app.state.config = config
    app.state.registry = SessionRegistry()
    app.state.remote_factory = remote_factory

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    audio_format = config.audio_format
    log_event({
        "ts_ms": int(time.time() * 1000),
        "event_type": "APP_STARTED",
        "env": config.env,
        "realtime_model": config.realtime_model,
        "target_language": config.target_language,
        "audio_format": audio_format.as_dict(),
        "bytes_per_frame": audio_format.bytes_per_frame,
        "commit_interval_ms": config.commit_interval_ms,
    })

    return app


def build_remote_factory(config: AppConfig) -> RemoteFactory:
    """One OpenAI Realtime adapter per session, wired to that session's runtime."""
    api_key = config.openai_api_key
    assert api_key is not None, "OPENAI_API_KEY missing"

    def factory(session_id: str, emit_event: EmitEvent) -> OpenAIRealtimeAdapter:
        return OpenAIRealtimeAdapter(
            emit_event=emit_event,
            api_key=api_key,
            url=config.realtime_url,
            model=config.realtime_model,
            session_id=session_id,
        )

    return factory
