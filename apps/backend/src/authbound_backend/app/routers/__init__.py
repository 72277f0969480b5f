"""HTTP routers for the Authbound backend."""

from authbound_backend.app.routers import machine_auth, owners, sso, system


__all__ = ["machine_auth", "owners", "sso", "system"]
