"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from finalexam.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the game front end's origins. Tokens travel in headers, not cookies."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "content-type", "x-app-token", "x-request-id"],
        expose_headers=["X-Request-Id", "Retry-After"],
    )
