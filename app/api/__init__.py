# app/api/__init__.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routers import carts, health, orders, products, users
from app.domain.errors import DomainError
from app.utils.logging import get_logger

logger = get_logger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Pharmacy Marketplace",
        version="1.0.0",
    )

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Include routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(products.router)
    app.include_router(carts.router)
    app.include_router(orders.router)

    return app
