
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.core.config import APP_ENV, APP_VERSION, CORS_ORIGINS
from storefront.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    integrity_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from storefront.core.logging import setup_logging
from storefront.core.middleware import request_logging_middleware
from storefront.database import Base, engine
from storefront.models import catalog, customer, discount, order  # noqa: F401  register tables
from storefront.routers import catalog as catalog_router
from storefront.routers import customers as customers_router
from storefront.routers import discounts as discounts_router
from storefront.routers import orders as orders_router

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting storefront API (%s)", APP_ENV)
    # Create database tables
    Base.metadata.create_all(bind=engine)
    yield
    logger.info("Shutting down storefront API")


app = FastAPI(
    title="Storefront Promotions API",
    description="Catalog, discount evaluation, checkout and order management for multi-store storefronts",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(catalog_router.router)
app.include_router(discounts_router.router)
app.include_router(orders_router.router)
app.include_router(customers_router.router)


@app.get("/health")
def health():
    return {"status": "healthy", "environment": APP_ENV, "version": APP_VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000, reload=True)
