"""FastAPI application entrypoint.

Responsibilities kept minimal:
  * App / lifespan initialization
  * Router registration (auth, oauth, calendar, outreach)
  * Cross-cutting concerns: logging, metrics middleware & exception handlers
"""

from contextlib import asynccontextmanager
import logging
import os
from fastapi import FastAPI, Request, Response
try:  # Optional OpenTelemetry
    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    _otel_available = True
except ImportError:  # pragma: no cover
    _otel_available = False
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from .db import models  # noqa: F401 register models before create_all
from .api.auth import router as auth_router
from .api.oauth import router as oauth_router
from .api.calendar import router as calendar_router
from .api.outreach import router as outreach_router
from .db.session import engine, Base
from .errors import BaseAppException

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - simple startup path
    """Create the schema when missing (Alembic owns migrations in deployed environments)."""
    Base.metadata.create_all(bind=engine)
    yield


# --- Optional .env loading (opt-in via APP_LOAD_DOTENV) ---
if os.getenv("APP_LOAD_DOTENV") in {"1", "true", "TRUE", "yes", "on"}:  # pragma: no cover
    from dotenv import load_dotenv
    # Respect existing env (override=False). Default search walks up from CWD.
    load_dotenv(override=False)

app = FastAPI(title="Call Sync API", version="0.1.0", lifespan=lifespan)

# --- OpenTelemetry Tracing (optional) ---
if _otel_available and os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"):
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    resource = Resource.create({"service.name": "callsync-backend"})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=endpoint)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    tracer = trace.get_tracer(__name__)
else:  # pragma: no cover
    tracer = None

# --- Metrics setup ---
REQUEST_COUNT = Counter(
    "callsync_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
REQUEST_LATENCY = Histogram(
    "callsync_request_latency_seconds", "Latency of HTTP requests", ["method", "path"]
)

# --- CORS (for local frontend dev) ---
cors_origins_env = os.getenv("CORS_ALLOW_ORIGINS")
if cors_origins_env:
    allow_origins = [o.strip() for o in cors_origins_env.split(",") if o.strip()]
else:
    allow_origins = ["http://localhost:8080"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(oauth_router)
app.include_router(calendar_router)
app.include_router(outreach_router)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    path_label = request.url.path
    method = request.method
    with REQUEST_LATENCY.labels(method=method, path=path_label).time():
        if tracer:
            with tracer.start_as_current_span(f"HTTP {method} {path_label}"):
                response: Response = await call_next(request)
        else:
            response: Response = await call_next(request)
    REQUEST_COUNT.labels(method=method, path=path_label, status=str(response.status_code)).inc()
    return response


@app.get("/metrics")
def metrics():  # pragma: no cover - external scrape
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.exception_handler(BaseAppException)
async def app_exception_handler(request: Request, exc: BaseAppException):
    if exc.http_status >= 500:
        logger.warning("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
    content = {"detail": {"code": exc.code, "message": exc.message}}
    retryable = getattr(exc, "retryable", None)
    if retryable is not None:
        content["detail"]["retryable"] = retryable
    return JSONResponse(status_code=exc.http_status, content=content)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):  # pragma: no cover
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": {"code": "INTERNAL_ERROR", "message": "unexpected error"}},
    )


@app.get("/healthz")
async def health():
    from .api.deps import get_token_vault
    from .services.state_store import RedisStateStore

    health = {"status": "ok"}
    store = get_token_vault().state_store
    backend = 'redis' if isinstance(store, RedisStateStore) else 'memory'
    health['oauthStateBackend'] = backend
    if backend == 'redis':
        try:
            health['redis'] = 'up' if store.redis.ping() else 'down'
        except Exception:  # redis raises its own hierarchy; health stays non-fatal
            health['redis'] = 'error'
    health['tracing'] = 'enabled' if tracer else 'disabled'
    return health
