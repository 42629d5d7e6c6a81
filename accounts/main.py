"""FastAPI application entrypoint. No business logic; only wiring, lifespan and error handling."""

from dotenv import load_dotenv

load_dotenv()

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from accounts import __version__
from accounts.api import router as api_router
from accounts.core.config import get_settings
from accounts.core.database import Database
from accounts.core.mailer import SmtpEmailSender
from accounts.core.storage import Collection
from accounts.models import User
from accounts.services.accounts import AccountService

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the single shared database engine and account service; tear down on shutdown."""
    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    await database.connect()
    app.state.database = database
    app.state.account_service = AccountService(
        users=Collection(database, User),
        email_sender=SmtpEmailSender(settings),
        settings=settings,
    )
    try:
        yield
    finally:
        await app.state.account_service.drain_notifications()
        await database.disconnect()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer an unparseable JSON body with 400; other request errors keep the default 422."""
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid JSON format"},
        )
    return await request_validation_exception_handler(request, exc)


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log uncaught errors and answer 500 without leaking details."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        version=__version__,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app


app = create_app()
