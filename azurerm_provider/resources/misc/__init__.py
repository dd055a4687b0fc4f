"""Miscellaneous resource handlers."""

from .resource_group import ResourceGroupResource

__all__ = [
    "ResourceGroupResource",
]
