"""
FastAPI application — the deepsite gateway entry point.

Thin HTTP surface over the fallback router:
  - /api/ask-ai          generate with provider fallback
  - /api/test-connection test one provider
  - /api/check-env       which providers are configured
  - /api/templates       static template catalog
  - everything else      static UI build with a single-page-app fallback

Every response is JSON with an "ok" flag. Requests other than static assets
pass through the per-client sliding-window rate limiter.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from deepsite import __version__
from deepsite.config import config_float, config_int, config_str, get_config
from deepsite.errors import DeepSiteError, StorageUnavailable, ValidationError
from deepsite.providers.registry import ProviderRegistry
from deepsite.rate_limit import (
    RateLimiter,
    client_id_from_request,
    is_exempt_path,
    run_sweeper,
)
from deepsite.router import AskRequest, FallbackRouter
from deepsite.storage.sqlite_store import SQLiteStore
from deepsite.templates import TemplateCatalog

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Globals, initialized at startup
# ---------------------------------------------------------------------------
registry: ProviderRegistry | None = None
router: FallbackRouter | None = None
limiter: RateLimiter | None = None
chat_store: SQLiteStore | None = None
templates: TemplateCatalog = TemplateCatalog()
static_dir: Path | None = None

DISCONNECT_POLL_SECONDS = 0.5


def _setup_logging(cfg: dict):
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, str(log_cfg.get("level") or "INFO").upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _open_store(cfg: dict) -> SQLiteStore | None:
    """Chat history is optional; without it the gateway runs stateless."""
    path = config_str(cfg, "storage", "sqlite_path")
    if not path:
        logger.warning("Chat store not configured - chat memory disabled")
        return None
    try:
        return SQLiteStore(path)
    except StorageUnavailable as e:
        logger.error("Chat store unavailable - chat memory disabled: %s", e)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    global registry, router, limiter, chat_store, static_dir

    cfg = get_config()
    _setup_logging(cfg)

    registry = ProviderRegistry.from_env(site_url=config_str(cfg, "", "site_url"))
    chat_store = _open_store(cfg)
    router = FallbackRouter(
        registry,
        store=chat_store,
        templates=templates,
        default_max_tokens=config_int(cfg, "generation", "default_max_tokens", 8000),
        default_temperature=config_float(cfg, "generation", "default_temperature", 0.7),
        generation_timeout=config_float(cfg, "generation", "timeout_seconds", 120),
    )

    limiter = RateLimiter(
        limit=config_int(cfg, "rate_limit", "ip_rate_limit", 100),
        window_seconds=config_float(cfg, "rate_limit", "window_seconds", 3600),
    )
    sweeper = None
    if limiter.enabled:
        sweeper = asyncio.create_task(
            run_sweeper(limiter, config_float(cfg, "rate_limit", "sweep_interval_seconds", 300))
        )

    static_dir = Path(config_str(cfg, "static", "directory", "./public"))

    configured = [p.name for p in registry.list_configured()]
    logger.info(
        "deepsite %s started — listening on %s:%s",
        __version__,
        config_str(cfg, "server", "host", "0.0.0.0"),
        config_int(cfg, "server", "port", 3000),
    )
    logger.info("Providers: %s", ", ".join(configured) if configured else "none configured")
    logger.info(
        "Rate limiting: %s",
        f"{limiter.limit} requests/hour per client" if limiter.enabled else "disabled",
    )
    logger.info("Chat memory: %s", "enabled" if chat_store else "disabled")
    logger.info("Static files: %s", static_dir if static_dir.is_dir() else "none")

    yield

    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
    logger.info("deepsite shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="deepsite",
    description="AI web-site builder gateway with multi-provider fallback.",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    if limiter is None or not limiter.enabled or is_exempt_path(request.url.path):
        return await call_next(request)

    client_id = client_id_from_request(
        request.headers, request.client.host if request.client else None
    )
    decision = limiter.admit(client_id)
    if not decision.admitted:
        minutes = decision.wait_time_minutes
        return JSONResponse(
            {
                "ok": False,
                "message": f"Rate limit exceeded. Try again in {minutes} minutes.",
                "waitTimeMinutes": minutes,
                "resetTime": decision.reset_time,
            },
            status_code=429,
            headers={"Retry-After": str(int(decision.retry_after_seconds) + 1)},
        )
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
)


@app.exception_handler(DeepSiteError)
async def deepsite_error_handler(request: Request, exc: DeepSiteError):
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Server error on %s", request.url.path)
    return JSONResponse({"ok": False, "message": "Internal server error"}, status_code=500)


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")
    return body


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    return JSONResponse({
        "ok": True,
        "status": "healthy",
        "timestamp": _now(),
        "version": __version__,
    })


@app.get("/api/check-env")
async def check_env():
    """Provider configuration status. Never echoes credentials."""
    cfg = get_config()
    storage = {"enabled": chat_store is not None}
    if chat_store is not None:
        try:
            storage.update(await asyncio.to_thread(chat_store.get_stats))
        except StorageUnavailable as e:
            logger.warning("Chat store stats unavailable: %s", e)

    return JSONResponse({
        "ok": True,
        "env": registry.env_status() if registry else {},
        "storage": storage,
        "rateLimiting": {
            "enabled": bool(limiter and limiter.enabled),
            "limit": limiter.limit if limiter else 0,
        },
        "server": {
            "status": "running",
            "port": config_int(cfg, "server", "port", 3000),
        },
        "timestamp": _now(),
    })


@app.get("/api/providers")
async def providers():
    """Configured providers plus the full model catalog."""
    return JSONResponse({
        "ok": True,
        "providers": registry.configured_summary() if registry else [],
        "models": registry.all_available_models() if registry else [],
    })


@app.post("/api/test-connection")
async def test_connection(request: Request):
    body = await _json_body(request)
    result = await router.test_connection(body.get("provider"), body.get("model") or None)
    return JSONResponse(result)


@app.post("/api/ask-ai")
async def ask_ai(request: Request):
    """
    Generate with fallback across providers.
    If the client disconnects mid-generation the in-flight call is abandoned.
    """
    body = await _json_body(request)
    ask = AskRequest.from_payload(body)

    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        result = await router.ask(ask, cancel_event=cancel_event)
    finally:
        watcher.cancel()
    return JSONResponse(result.to_dict())


async def _watch_disconnect(request: Request, event: asyncio.Event):
    while not event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected; cancelling generation")
            event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@app.get("/api/templates")
async def list_templates():
    return JSONResponse({"ok": True, "templates": templates.list()})


@app.get("/api/templates/{template_id}")
async def get_template(template_id: str):
    template = templates.get(template_id)
    if template is None:
        return JSONResponse({"ok": False, "message": "Template not found"}, status_code=404)
    return JSONResponse({"ok": True, "template": template.to_dict()})


# ---------------------------------------------------------------------------
# Static UI: anything not handled above. MUST be the last route registered.
# ---------------------------------------------------------------------------

@app.get("/{path:path}")
async def static_files(path: str):
    if path == "api" or path.startswith("api/"):
        return JSONResponse({"ok": False, "message": "Not found"}, status_code=404)

    root = static_dir
    if root is None or not root.is_dir():
        return JSONResponse({"ok": False, "message": "Not found"}, status_code=404)

    root = root.resolve()
    candidate = (root / path).resolve()
    if path and candidate.is_file() and candidate.is_relative_to(root):
        return FileResponse(str(candidate))

    index = root / "index.html"
    if index.is_file():
        return FileResponse(str(index), media_type="text/html")
    return JSONResponse({"ok": False, "message": "Not found"}, status_code=404)


# ---------------------------------------------------------------------------
# Run with: python -m deepsite.main
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    cfg = get_config()
    uvicorn.run(
        "deepsite.main:app",
        host=config_str(cfg, "server", "host", "0.0.0.0"),
        port=config_int(cfg, "server", "port", 3000),
        reload=False,
    )
