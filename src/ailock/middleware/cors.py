"""CORS for the Ailock web client."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ailock.config import Settings

# Only the verbs the progression router serves.
ALLOWED_METHODS = ["GET", "POST", "PATCH", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization", "X-Request-Id"]
EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow `settings.cors_origins` to call the API.

    Browsers refuse credentialed requests against a `*` origin, so a wildcard
    entry turns credentials off.
    """
    wildcard = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=not wildcard,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
        max_age=settings.cors_max_age_seconds,
    )
