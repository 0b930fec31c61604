"""
WhatsBI Assistant - Main FastAPI Application
"""

import logging
from datetime import timedelta
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import learning_router, whatsapp_router
from .api.whatsapp_webhook import MessageDeduplicator
from .analytics import ClientCredentialsTokenProvider, ConnectionStore, QueryExecutionEngine, TokenCache
from .assistant import ConversationLog, QueryAssistant
from .channels import create_evolution_client
from .core.logging_config import setup_logging
from .learning import QueryLearningStore
from .llm import ModelInvoker, create_llm_provider
from .middleware import RequestLoggingMiddleware
from .sessions import AuthorizationDirectory, SessionResolver, SessionStore
from .storage import LocalStorage

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


def configure_services(app: FastAPI, config=settings) -> None:
    """Build the stores, caches and clients and hang them on ``app.state``."""
    storage = LocalStorage(config.local_storage_path)

    session_store = SessionStore(storage, ttl=timedelta(hours=config.session_ttl_hours))
    directory = AuthorizationDirectory(storage)
    connections = ConnectionStore(storage)
    learning = QueryLearningStore(storage)
    conversation_log = ConversationLog(storage)

    token_cache = TokenCache(
        ClientCredentialsTokenProvider(config.identity_authority_url, config.identity_scope),
        refresh_margin=timedelta(minutes=config.token_refresh_margin_minutes),
        lifetime=timedelta(minutes=config.token_cache_minutes),
    )
    engine = QueryExecutionEngine(
        connections, token_cache,
        api_url=config.analytics_api_url,
        timeout=config.query_timeout_seconds,
    )

    provider = create_llm_provider(
        provider=config.llm_provider,
        api_key=config.llm_api_key,
        model=config.llm_model,
        base_url=config.llm_base_url,
    )
    assistant = None
    if provider is not None:
        assistant = QueryAssistant(
            ModelInvoker(provider),
            engine,
            learning,
            conversation_log,
            storage,
            max_tool_rounds=config.llm_max_tool_rounds,
            max_retries=config.llm_max_retries,
            timeout=config.llm_timeout_seconds,
            history_limit=config.history_messages_limit,
        )
    else:
        logger.warning("LLM_API_KEY not set; questions will not be answered")

    evolution = create_evolution_client(
        config.evolution_api_url, config.evolution_api_key, config.evolution_instance_name
    )
    if evolution is None:
        logger.warning("Evolution API not configured; webhook will reject events")

    app.state.storage = storage
    app.state.session_store = session_store
    app.state.directory = directory
    app.state.resolver = SessionResolver(session_store, directory)
    app.state.connections = connections
    app.state.token_cache = token_cache
    app.state.engine = engine
    app.state.learning = learning
    app.state.conversation_log = conversation_log
    app.state.assistant = assistant
    app.state.evolution = evolution
    app.state.deduplicator = MessageDeduplicator()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)
    configure_services(app, settings)

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(f"LLM provider: {settings.llm_provider}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="WhatsApp assistant answering business questions from analytical datasets",
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

# Include routers
app.include_router(whatsapp_router)
app.include_router(learning_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "whatsbi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
