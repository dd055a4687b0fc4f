"""Database resource handlers."""

from .sql_server import SqlServerResource

__all__ = [
    "SqlServerResource",
]
