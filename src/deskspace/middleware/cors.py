"""CORS middleware configuration."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


def configure_cors(app: FastAPI, allowed_origins: list[str], identity_header: str) -> None:
    """Add CORS middleware with specified allowed origins.

    Args:
        app: FastAPI application instance.
        allowed_origins: List of allowed origin URLs.
        identity_header: Header the browser forwards with owner requests.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", identity_header],
        expose_headers=["X-Request-ID"],
    )
