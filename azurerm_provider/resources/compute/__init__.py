"""Compute resource handlers."""

from .managed_disk import ManagedDiskResource

__all__ = [
    "ManagedDiskResource",
]
