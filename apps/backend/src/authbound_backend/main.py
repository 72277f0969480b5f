"""Run the Authbound backend with uvicorn."""

from __future__ import annotations
import uvicorn
from authbound.config import get_settings


def main() -> None:
    """Serve the application on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "authbound_backend.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
