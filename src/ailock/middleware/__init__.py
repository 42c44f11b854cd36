"""Middleware registration."""

from fastapi import FastAPI

from ailock.config import Settings
from ailock.middleware.cors import setup_cors
from ailock.middleware.error_handler import setup_error_handlers
from ailock.middleware.logging import setup_logging
from ailock.middleware.rate_limit import RateLimitMiddleware
from ailock.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Wire logging, error handlers, and the middleware stack.

    Resulting order, outermost first: CORS, request id, rate limit. Rate
    limiting is only mounted when a Redis URL is configured, and CORS only
    when there are origins to allow.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    if settings.redis_url:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    app.add_middleware(RequestIdMiddleware)
    if settings.cors_origins:
        setup_cors(app, settings)
