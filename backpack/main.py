from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backpack.api.backpack import router as backpack_router
from backpack.api.badges import router as badges_router
from backpack.api.health import router as health_router
from backpack.api.metrics_endpoint import router as metrics_router
from backpack.core.config import SETTINGS
from backpack.core.errors import BackpackError
from backpack.core.logging import setup_logging
from backpack.db.engine import lifespan_db
from backpack.db.redis import lifespan_redis
from backpack.middleware.metrics import MetricsMiddleware
from backpack.middleware.request_context import (
    RequestContextMiddleware,
    install_request_id_filter,
)

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_id_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order of startup.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="badge-backpack",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.public_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(BackpackError)
async def backpack_error_handler(_request: Request, exc: BackpackError) -> JSONResponse:
    # str(exc) is log-only detail; the client sees the fixed user message.
    return JSONResponse({"detail": exc.user_message}, status_code=exc.status_code)


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(backpack_router)
app.include_router(badges_router)

logger.info(
    "badge-backpack started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
