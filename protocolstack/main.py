import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

# Load env from the package directory before settings are built
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from protocolstack import __version__
from protocolstack.api import health, streaks
from protocolstack.core.config import settings, validate_config
from protocolstack.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from protocolstack.core.logging import configure_logging
from protocolstack.core.middleware.request_id import RequestIdMiddleware
from protocolstack.core.validation import validate_env

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("protocolstack")
    logger.info("Starting ProtocolStack backend...")
    try:
        yield
    finally:
        logging.getLogger("protocolstack").info("Stopping ProtocolStack backend...")


app = FastAPI(title="ProtocolStack - Backend", version=__version__, lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(streaks.router, tags=["streaks"])
app.include_router(health.root_router, tags=["health"])
