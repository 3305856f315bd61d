from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import get_settings
from .db import engine
from .redis_client import close_redis
from .api.errors import install_error_handlers
from .api.routers import health as health_router
from .api.routers import email_otp as email_otp_router
from .api.routers import orders as orders_router
from .api.routers import metrics as metrics_router
from .observability.logging import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware
from .services.background import drain
import uvicorn

settings = get_settings()
setup_logging()


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    # let in-flight OTP emails finish before the engine goes away
    await drain(timeout=5.0)
    await engine.dispose()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # then custom middlewares
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(MetricsHTTPMiddleware)

    install_error_handlers(app)

    app.include_router(health_router.router)
    app.include_router(email_otp_router.router)
    app.include_router(orders_router.router)
    app.include_router(metrics_router.router)

    @app.get("/")
    async def root():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("adopsiak.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=settings.ENV == "dev")
