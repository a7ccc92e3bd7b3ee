"""Transcription gateway HTTP and websocket API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect

from voicegate import __version__
from voicegate.common.app_factory import create_service_app
from voicegate.common.config import GatewayConfig, load_gateway_config
from voicegate.common.health import HealthManager
from voicegate.common.structured_logging import get_logger, session_log_context
from voicegate.gateway.providers import (
    ProviderCredentials,
    ProviderRegistry,
    build_default_registry,
)
from voicegate.gateway.session import SessionDefaults, TranscriptionSession
from voicegate.gateway.storage import LocalRecordingStore, RecordingStore

SERVICE_NAME = "gateway"

logger = get_logger(__name__, service_name=SERVICE_NAME)


def create_gateway_app(
    config: GatewayConfig | None = None,
    *,
    registry: ProviderRegistry | None = None,
    store: RecordingStore | None = None,
) -> FastAPI:
    """Build the gateway app.

    Args:
        config: Gateway configuration; loaded from the environment when omitted.
        registry: Provider registry; defaults to the built-in backends bound
                  to the configured credentials.
        store: Sink for saved audio; defaults to ``RECORDINGS_DIR``.
    """
    config = config or load_gateway_config()
    registry = registry or build_default_registry(
        ProviderCredentials.from_settings(config.providers)
    )
    store = store or LocalRecordingStore(config.storage.recordings_dir)
    defaults = SessionDefaults.from_config(config)
    health = HealthManager(SERVICE_NAME)

    def _startup() -> None:
        health.register_dependency(
            "stt_providers", lambda: bool(registry.available_providers())
        )
        available = [entry["name"] for entry in registry.available_providers()]
        if not available:
            logger.warning("gateway.no_providers_available", registered=registry.names())
        logger.info(
            "gateway.configured",
            providers=available,
            default_model=defaults.default_model,
            audio_format=defaults.audio_format,
            sample_rate=defaults.sample_rate,
        )
        health.mark_startup_complete()

    app = create_service_app(
        SERVICE_NAME,
        __version__,
        title="voicegate transcription gateway",
        startup_callback=_startup,
        health_manager=health,
    )
    app.state.config = config
    app.state.provider_registry = registry
    app.state.recording_store = store
    app.state.session_defaults = defaults

    @app.get("/stt/providers")
    async def list_providers(request: Request) -> dict[str, Any]:
        providers: ProviderRegistry = request.app.state.provider_registry
        return {
            "providers": providers.available_providers(),
            "defaultModel": request.app.state.session_defaults.default_model,
        }

    @app.websocket("/ws")
    async def transcription_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        session = TranscriptionSession(
            websocket.send_json,
            registry=websocket.app.state.provider_registry,
            store=websocket.app.state.recording_store,
            defaults=websocket.app.state.session_defaults,
        )
        client = websocket.client
        logger.info(
            "gateway.connection_accepted",
            session_id=session.session_id,
            client=f"{client.host}:{client.port}" if client else None,
        )
        with session_log_context(session.session_id):
            try:
                await session.open()
                while True:
                    message = await websocket.receive()
                    if message["type"] == "websocket.disconnect":
                        break
                    if message.get("bytes") is not None:
                        await session.handle_binary(message["bytes"])
                    elif message.get("text") is not None:
                        await session.handle_text(message["text"])
            except WebSocketDisconnect:
                logger.info("gateway.connection_lost", session_id=session.session_id)
            finally:
                await session.close()

    return app


__all__ = ["SERVICE_NAME", "create_gateway_app"]
