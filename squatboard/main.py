import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

# Load env from squatboard/.env
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from squatboard.core.config import settings, validate_config, cors_origins  # noqa: E402
from squatboard.core.logging import configure_logging  # noqa: E402
from squatboard.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from squatboard.core.middleware.metrics import MetricsMiddleware  # noqa: E402
from squatboard.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from squatboard.api import board, completions, health, realtime, users  # noqa: E402
from squatboard.realtime.hub import hub  # noqa: E402

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("squatboard")
    logger.info("Starting squatboard backend...")
    hub.configure(settings.WS_MAX_CONNECTIONS)
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("squatboard").info("Stopping squatboard backend...")


app = FastAPI(title="Squatboard", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(MetricsMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router)
app.include_router(completions.router)
app.include_router(board.router)
app.include_router(realtime.router, tags=["realtime"])
app.include_router(health.root_router)
