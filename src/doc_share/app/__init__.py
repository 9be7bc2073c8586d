"""Document share FastAPI application."""

from .main import create_app
from .settings import ShareSettings

__all__ = ["create_app", "ShareSettings"]
