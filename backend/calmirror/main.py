import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from .core.config import settings
from .core.observability import setup_logging
from .database import Base, engine
from . import models  # noqa: F401  (registers tables on Base.metadata)
from .api import api_calendar, api_cron, api_follow, api_subscriptions

setup_logging()
logger = logging.getLogger(__name__)

# Alembic owns production schema; this keeps local SQLite usable out of the box.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Calendar Mirror API", default_response_class=ORJSONResponse)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.get("/healthz", tags=["health"])
def healthz():
    return {"status": "ok"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


app.include_router(api_cron.router)
app.include_router(api_calendar.router)
app.include_router(api_subscriptions.router)
app.include_router(api_follow.router)
