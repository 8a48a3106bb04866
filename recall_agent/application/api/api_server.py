from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from recall_agent.application.container import ServiceContainer
from recall_agent.application.websocket import ws_server
from recall_agent.domain.models.errors import (
    ProviderError,
    RecallAgentError,
    StorageError,
    Unauthorized,
)
from recall_agent.infrastructure.config.settings import Settings, get_settings
from recall_agent.infrastructure.observability.logging import metrics, setup_logging
from recall_agent.infrastructure.providers.base import EmbeddingProvider, GenerationProvider
from recall_agent.infrastructure.security.user_store import DuplicateUser
from .route import agent, auth

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR = (
    (Unauthorized, 401),
    (DuplicateUser, 400),
    (ProviderError, 502),
    (StorageError, 500),
)


async def recall_error_handler(request: Request, exc: RecallAgentError) -> JSONResponse:
    """Map the error taxonomy onto HTTP responses"""

    status_code = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break

    logger.warning("Request failed", path=request.url.path, error_code=exc.error_code, status_code=status_code)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.message, "error_code": exc.error_code}
    )


def create_app(
    settings: Optional[Settings] = None,
    embedding_provider: Optional[EmbeddingProvider] = None,
    generation_provider: Optional[GenerationProvider] = None
) -> FastAPI:
    """Build the HTTP/WebSocket application around a fresh service container"""

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    services = ServiceContainer(settings, embedding_provider, generation_provider)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.start()
        logger.info("Server started", service=settings.service_name)
        yield
        await services.stop()
        logger.info("Server shutdown")

    app = FastAPI(title="Recall Agent Server", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RecallAgentError, recall_error_handler)

    app.include_router(auth.router)
    app.include_router(agent.router)
    app.include_router(ws_server.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            **ws_server.describe_connections(services.connection_manager),
            "metrics": metrics.get_metrics_summary(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


def main():
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
