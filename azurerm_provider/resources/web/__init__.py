"""Web resource handlers."""

from .app_service import AppServiceResource

__all__ = [
    "AppServiceResource",
]
