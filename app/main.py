# app/main.py
import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import create_pool
from .errors import SettlementError, settlement_error_handler
from .routes import routers
from .services.intasend import IntaSendGateway
from .utils.log_config import configure_logging, request_log_context

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Composition root: the pool and gateway client live for the whole process
    app.state.pool = await create_pool()
    app.state.gateway = IntaSendGateway.from_settings()
    logger.info("Settlement API started")
    try:
        yield
    finally:
        await app.state.gateway.aclose()
        await app.state.pool.close()

def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="CleanPay Settlement API",
        description="Bookings, M-Pesa collection and cleaner payouts",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(SettlementError, settlement_error_handler)

    @app.middleware("http")
    async def tag_request(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        started = time.perf_counter()
        with request_log_context(request_id):
            response = await call_next(request)
            logger.info(
                "Request handled",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                }
            )
        response.headers["X-Request-ID"] = request_id
        return response

    for router in routers:
        app.include_router(router)

    @app.get("/")
    def health_check():
        return {"status": "healthy", "version": app.version}

    return app

app = create_app()
