import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from auth import router as auth_router
from core import cache, config, db
from core.logging import configure_logging
from core.storage import FileStorage
from listings import router as listings_router
from listings.cache import ListingCache
from listings.repository import ListingRepository
from listings.service import ListingService

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One DB pool and one Redis client per process.
    await db.init_pool()
    try:
        await cache.init_client()
    except Exception:
        await db.close_pool()
        raise

    app.state.listing_service = ListingService(
        repository=ListingRepository(db.pool()),
        storage=FileStorage(config.file_storage_path()),
        cache=ListingCache(cache.CacheClient(cache.client()), config.listings_cache_ttl_s()),
        compensation_timeout_s=config.compensation_timeout_s(),
    )
    try:
        yield
    finally:
        await cache.close_client()
        await db.close_pool()


app = FastAPI(lifespan=lifespan)

# Allow local frontend dev server to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Listings-Count"],
)


# One access-log line per request, at DEBUG.
@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.debug(
        "http_request method=%s path=%s status=%s duration_ms=%.1f",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response


app.include_router(auth_router.router, tags=["auth"])
app.include_router(listings_router.router, tags=["listings"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "listings api"}
