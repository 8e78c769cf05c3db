# Load environment variables FIRST, before any other imports
from dotenv import load_dotenv

load_dotenv()

import logging
from datetime import datetime, timezone

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.dependencies import get_config_store, get_context_store
from core.services.config_service import ConfigStore
from core.services.context_service import ContextStore
from routers import admin, context, llm

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting MCP server...")
    config_store = ConfigStore(settings.CONFIG_FILE_PATH)
    await config_store.load()

    context_store = ContextStore(
        settings.CONTEXT_FILE_PATH,
        autosave_interval=settings.CONTEXT_AUTOSAVE_SECONDS,
    )
    await context_store.load()
    await context_store.start()

    app.state.config_store = config_store
    app.state.context_store = context_store

    yield

    # Shutdown
    logger.info("Shutting down MCP server...")
    await context_store.stop()


openapi_tags = [
    {
        "name": "context",
        "description": "Durable context records shared across agent sessions.",
    },
    {
        "name": "llm",
        "description": "Proxy to configured language model providers, with optional chat history from contexts.",
    },
    {
        "name": "admin",
        "description": "Shared-secret protected configuration inspection and natural-language config evolution.",
    },
    {
        "name": "health",
        "description": "Root, ping and health check endpoints for verifying API availability.",
    },
]

app = FastAPI(
    title="MCP Context Server API",
    description=(
        "Context and configuration service for the multi-agent playground. "
        "Stores opaque context records for agents and sessions, proxies language model requests, "
        "and lets an operator evolve server configuration through natural-language requests."
    ),
    version="1.0.0",
    docs_url=None if settings.ENVIRONMENT == "prod" else "/docs",
    redoc_url=None if settings.ENVIRONMENT == "prod" else "/redoc",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Admin-Secret"],
)

app.include_router(context.router, prefix=settings.API_PREFIX)
app.include_router(llm.router, prefix=settings.API_PREFIX)
app.include_router(admin.router, prefix=settings.API_PREFIX)


@app.get(
    "/",
    summary="API root",
    description="Returns a welcome message. Useful for verifying the API is reachable.",
    operation_id="root",
    tags=["health"],
)
async def root():
    return {"message": "MCP Server is running!"}


@app.get(
    f"{settings.API_PREFIX}/ping",
    summary="Ping",
    description="Liveness probe for the MCP API.",
    operation_id="ping",
    tags=["health"],
)
async def ping():
    return {
        "message": "MCP API is alive!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get(
    "/health",
    summary="Health check",
    description="Reports the active log level and the number of stored contexts.",
    operation_id="health_check",
    tags=["health"],
)
async def health_check(
    config_store: ConfigStore = Depends(get_config_store),
    context_store: ContextStore = Depends(get_context_store),
):
    config = await config_store.get()
    return {
        "status": "healthy",
        "log_level": config.logging.level,
        "contexts": len(context_store),
    }
