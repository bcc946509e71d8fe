"""FastAPI app: extraction jobs, polling, exports and health."""

import logging
import time
from collections import defaultdict, deque

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pva.config import get_settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger(__name__)

_settings = get_settings()

app = FastAPI(
    title="Product Value Analyzer API",
    description="Extract product variants from a product page and rank them by price per unit.",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Every POST may start an AI extraction; throttle them per client address.
THROTTLE_SECONDS = 60
THROTTLE_POSTS = 30
_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
_rate_store: dict[str, deque[float]] = defaultdict(deque)


def _over_limit(client: str, at: float) -> bool:
    hits = _rate_store[client]
    while hits and at - hits[0] >= THROTTLE_SECONDS:
        hits.popleft()
    if len(hits) >= THROTTLE_POSTS:
        return True
    hits.append(at)
    return False


@app.middleware("http")
async def throttle_posts(request: Request, call_next):
    if request.method not in _SAFE_METHODS:
        client = request.client.host if request.client else "anonymous"
        if _over_limit(client, time.monotonic()):
            log.warning("Throttled %s %s from %s", request.method, request.url.path, client)
            return JSONResponse({"detail": "Too many requests, retry in a minute"}, status_code=429)
    return await call_next(request)


# Registered after the throttle so it wraps it and 429s still get CORS headers.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)
log.info("Allowed origins: %s", ", ".join(_settings.cors_origin_list) or "<none>")


@app.get("/api/")
async def index():
    return {"service": app.title, "version": app.version, "docs": app.docs_url}


from backend.routes import extraction  # noqa: E402

app.include_router(extraction.router, prefix="/api", tags=["extraction"])
app.add_api_route("/health", extraction.health, methods=["GET"], include_in_schema=False)
