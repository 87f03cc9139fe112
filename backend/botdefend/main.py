"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from botdefend.core.config import settings
from botdefend.core.logging import setup_logging
from botdefend.core.metrics import get_content_type, get_metrics, set_app_info
from botdefend.core.middleware import CorrelationIdMiddleware, RequestLoggingMiddleware
from botdefend.modules.moderation.router import router as moderation_router
from botdefend.modules.moderation.service import get_orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    orchestrator = get_orchestrator()
    await orchestrator.pool.load_remote()
    yield
    orchestrator.stop_session()
    await orchestrator.wait_closed()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## YouTube Live Chat Spam Moderation API

Watches a YouTube live chat, flags online-gambling spam and deletes,
times out or bans spammers with a pool of rotating bot accounts.
    """,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check endpoints",
        },
        {
            "name": "moderation",
            "description": "Live chat moderation sessions, log and manual actions",
        },
    ],
    lifespan=lifespan,
)

# Set up logging with correlation IDs
setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
    include_stack_trace=True,
)

# Set application info for metrics
set_app_info(
    version=settings.VERSION,
    environment="development" if settings.DEBUG else "production",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(moderation_router, prefix=settings.API_V1_PREFIX)


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus metrics."""
    return Response(content=get_metrics(), media_type=get_content_type())
