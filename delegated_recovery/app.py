"""
Delegated account recovery - account provider
Main FastAPI application
"""
import os
from urllib.parse import urlsplit

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from delegated_recovery.api.router import router
from delegated_recovery.api.templating import BASE_DIR, templates
from delegated_recovery.core.config import load_settings
from delegated_recovery.core.errors import ConfigurationError, TokenSigningError
from delegated_recovery.core.logger import configure_app_logging, get_logger, parse_log_level
from delegated_recovery.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from delegated_recovery.core.rate_limit import limiter

# Configure application logging
configure_app_logging(
    level=parse_log_level(os.getenv("RECOVERY_LOG_LEVEL")),
    log_to_file=os.getenv("RECOVERY_LOG_TO_FILE", "true").lower() == "true",
)

logger = get_logger(__name__)

# The signing key is loaded once; without it the service must not start
try:
    settings = load_settings()
except ConfigurationError as exc:
    logger.critical(f"Refusing to start: {exc}")
    raise

DEBUG = os.getenv("RECOVERY_DEBUG", "false").lower() == "true"
app = FastAPI(title="Delegated Recovery", debug=DEBUG)

app.state.settings = settings
app.state.token_issuer = settings.token_issuer()
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

save_token_origin = "{0.scheme}://{0.netloc}".format(urlsplit(settings.provider_save_token_url))
app.add_middleware(SecurityHeadersMiddleware, form_action_origins=[save_token_origin])
app.add_middleware(RequestLoggingMiddleware)

app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")

app.include_router(router)

logger.info(
    f"Delegated recovery initialized: issuer {settings.issuer}, "
    f"recovery provider {settings.provider_issuer}"
)


def render_failure(request: Request, message: str):
    return templates.TemplateResponse(
        request,
        "error.html",
        {"message": message, "action": "/"},
        status_code=500,
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=exc)
    return render_failure(request, "Recovery token records are unavailable right now.")


@app.exception_handler(TokenSigningError)
async def signing_error_handler(request: Request, exc: TokenSigningError):
    logger.error(f"Token signing failed on {request.url.path}: {exc}", exc_info=exc)
    return render_failure(request, "A recovery token could not be issued.")
