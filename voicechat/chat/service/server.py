"""Aggregate app for the voice chat transports.

Run for development with:
    python -m voicechat.chat.service.server
or:
    uvicorn voicechat.chat.service.server:app --reload
"""
from __future__ import annotations

import logging

from fastapi import FastAPI

from voicechat.chat.service.http_transport import router as http_router
from voicechat.chat.service.ws_transport import router as ws_router
from voicechat.common.error_envelope import register_error_handlers
from voicechat.common.health import SERVICE_VERSION, router as health_router
from voicechat.config import runtime_config


def create_app() -> FastAPI:
    app = FastAPI(title="Voice Chat", version=SERVICE_VERSION)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(http_router)
    app.include_router(ws_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=runtime_config.get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "voicechat.chat.service.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=runtime_config.get_log_level().lower(),
    )
