import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import ALLOWED_ORIGINS, LEGACY_POSTS_JSON, LOG_LEVEL, PORT, get_rate_limit_backend
from .database import engine
from .domain.admin.router import router as admin_router
from .domain.manage.router import router as manage_router
from .domain.posts.router import router as posts_router
from .migrations import import_legacy_posts, run_migrations

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    applied = run_migrations(engine)
    if applied:
        logger.info(f"✅ Applied migrations: {', '.join(applied)}")

    imported = import_legacy_posts(engine, LEGACY_POSTS_JSON)
    if imported:
        logger.info(f"📦 Imported {imported} legacy post(s)")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Chavrusa Board API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Every handled error leaves as {"error": message}"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid request."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Details stay in the log; clients get a generic message
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error."})


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(posts_router)
app.include_router(manage_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Check Redis connectivity when the shared rate-limit store is in use"""
    if get_rate_limit_backend() != "redis":
        return {"status": "healthy", "redis": {"enabled": False}}
    try:
        from .rate_limiter import get_redis_client

        get_redis_client()
        return {"status": "healthy", "redis": {"enabled": True, "connected": True}}
    except Exception as e:
        return {"status": "unhealthy", "redis": {"enabled": True, "connected": False, "error": str(e)}}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("chavrusa.main:app", host="0.0.0.0", port=PORT, log_level=LOG_LEVEL.lower())
