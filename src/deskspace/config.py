"""Service configuration loaded from environment variables."""
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        host: Bind address for the API server.
        port: Port number for the API server.
        debug: Enable debug logging and API documentation.
        cors_origins_raw: Raw comma-separated CORS origins string.
        key: Shared secret the identity gateway presents in X-API-Key.
        identity_header: Header carrying the authenticated account id.
        database_path: SQLite database file, or ":memory:".
        desktop_icon_limit: Maximum generic desktop icons per desktop.
        content_file_limit: Maximum content files per desktop.
        dock_limit: Maximum dock shortcuts per desktop.
        restamp_on_republish: Refresh published_at when publishing an
            already-published item.
        present_end_behavior: What the slideshow does after the last slide.
    """

    model_config = SettingsConfigDict(
        env_prefix="DESKSPACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    cors_origins_raw: str = "http://localhost:3000"
    key: str = ""
    identity_header: str = "X-User-Id"

    database_path: str = "deskspace.db"

    desktop_icon_limit: int = 20
    content_file_limit: int = 100
    dock_limit: int = 8

    restamp_on_republish: bool = True
    present_end_behavior: Literal["loop", "stop"] = "loop"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string.

        Returns:
            List of allowed origin URLs.
        """
        return [
            origin.strip()
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]
