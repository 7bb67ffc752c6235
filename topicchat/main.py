"""
Topic Chat - Main FastAPI Application
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from .config import settings
from .api import chats_router, health_router, memory_router, profile_router, realtime_router
from .core.exceptions import (
    AuthenticationError,
    ChatNotFoundError,
    ChatServiceError,
    PersistenceError,
    ProfileExistsError,
    ProfileNotFoundError,
    ValidationFailure,
)
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    from .agents.model_router import (
        ModelRouter, build_backend_handlers, build_selection_policy, init_model_router,
    )
    from .core.session_memory import init_session_memory
    from .realtime.coordinator import init_coordinator
    from .storage.chat_storage import init_chat_store
    from .storage.local_storage import LocalStorage
    from .storage.profile_storage import init_profile_store

    storage = LocalStorage(settings.local_storage_path)
    store = init_chat_store(storage, max_messages=settings.max_messages_per_chat)
    memory = init_session_memory(store)
    init_profile_store(storage)
    logger.info("Chat and profile stores initialized")

    handlers = build_backend_handlers(settings)
    model_router = init_model_router(ModelRouter(handlers, build_selection_policy(settings)))
    configured = [h.backend_id.value for h in handlers if h.configured]
    logger.info(f"AI backends configured: {', '.join(configured) or 'none'}")

    coordinator = init_coordinator(
        store, memory, model_router, max_message_length=settings.max_message_length
    )

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    yield
    # Shutdown
    await coordinator.wait_for_background_tasks()
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Realtime topic chat with AI backends and per-session memory",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)


def error_status(error: ChatServiceError) -> int:
    if isinstance(error, AuthenticationError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(error, (ChatNotFoundError, ProfileNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, ProfileExistsError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, ValidationFailure):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, PersistenceError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(request: Request, exc: ChatServiceError):
    status_code = error_status(exc)
    if status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    # Another user's chat is reported exactly like a missing one
    code = ChatNotFoundError.code if isinstance(exc, ChatNotFoundError) else exc.code
    message = ChatNotFoundError.default_message if isinstance(exc, ChatNotFoundError) else exc.message
    return JSONResponse(status_code=status_code, content={"detail": message, "code": code})


# Include routers
app.include_router(chats_router)
app.include_router(memory_router)
app.include_router(profile_router)
app.include_router(health_router)
app.include_router(realtime_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "message": "Welcome to Topic Chat"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "topicchat.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
