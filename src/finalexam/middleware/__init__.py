"""Middleware registration."""

from fastapi import FastAPI

from finalexam.config import Settings
from finalexam.middleware.cors import setup_cors
from finalexam.middleware.error_handler import setup_error_handlers
from finalexam.middleware.logging import setup_logging
from finalexam.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    FastAPI/Starlette executes middleware in reverse-add order (last added = outermost).
    CORS must be outermost so it also wraps error responses (401, 429, ...).
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
