import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from core.cache import InMemoryCacheStore, build_cache_store
from core.celery import celery_app
from core.config import settings
from core.db import Base, engine
from core.errors import AppError
from core.logging_config import configure_logging
import models  # noqa: F401
from routes.analytics import router as analytics_router
from routes.cart import router as cart_router
from routes.categories import router as categories_router
from routes.coupons import router as coupons_router
from routes.governorates import router as governorates_router
from routes.notifications import router as notifications_router
from routes.orders import router as orders_router
from routes.payment_methods import router as payment_methods_router
from routes.products import router as products_router
from routes.promotions import router as promotions_router
from routes.storage import router as storage_router
from routes.support import router as support_router
from routes.wishlist import router as wishlist_router
from services.realtime import build_publisher

configure_logging()
logger = logging.getLogger(__name__)


async def _sweep_cache(cache: InMemoryCacheStore, interval: int) -> None:
    while True:
        await asyncio.sleep(interval)
        removed = cache.sweep()
        if removed:
            logger.debug("Cache sweep removed %d expired entries", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.cache = build_cache_store()
    app.state.publisher = build_publisher()
    sweeper = None
    if isinstance(app.state.cache, InMemoryCacheStore):
        sweeper = asyncio.create_task(_sweep_cache(app.state.cache, settings.CACHE_SWEEP_INTERVAL_SECONDS))
    try:
        yield
    finally:
        if sweeper:
            sweeper.cancel()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema["components"]["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    openapi_schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, **exc.extra()})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"detail": "Internal server error"}
    if settings.DEBUG:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Ensure tables exist (for dev/test; in prod use Alembic)
Base.metadata.create_all(bind=engine)

app.include_router(products_router)
app.include_router(categories_router)
app.include_router(governorates_router)
app.include_router(payment_methods_router)
app.include_router(cart_router)
app.include_router(wishlist_router)
app.include_router(coupons_router)
app.include_router(promotions_router)
app.include_router(orders_router)
app.include_router(notifications_router)
app.include_router(support_router)
app.include_router(storage_router)
app.include_router(analytics_router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
    }


@app.get("/celery-health")
async def celery_health_check():
    """Check Celery worker status"""
    try:
        inspect = celery_app.control.inspect()
        stats = inspect.stats()
        if stats:
            return {"status": "healthy", "workers": len(stats)}
        else:
            return {"status": "no_workers", "message": "No Celery workers running"}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=settings.DEBUG,
    )
