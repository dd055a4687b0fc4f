"""
Centralized timeout configuration for ARM operations.

Every long-running create, update and delete is awaited with an explicit
timeout instead of blocking indefinitely. Defaults are configurable via
environment variables and can be overridden per resource with a ``timeouts``
block in the resource configuration.

Usage:
    from azurerm_provider.timeout_config import ResourceTimeouts, Timeouts

    timeouts = ResourceTimeouts.from_block({"create": "45m"})
    poller.wait(timeout=timeouts.create)

Environment Variables:
    - ARM_TIMEOUT_CREATE: Create operations (default: 1800s)
    - ARM_TIMEOUT_READ: Read operations (default: 300s)
    - ARM_TIMEOUT_UPDATE: Update operations (default: 1800s)
    - ARM_TIMEOUT_DELETE: Delete operations (default: 1800s)
    - ARM_TIMEOUT_SDK_CONNECTION: HTTP connection timeout (default: 30s)
    - ARM_TIMEOUT_SDK_READ: HTTP read timeout (default: 60s)
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Final, Optional, Union

logger = logging.getLogger(__name__)

TIMEOUT_OPERATIONS = ("create", "read", "update", "delete")

_DURATION_PATTERN = re.compile(r"(\d+)\s*([hms])")
_UNIT_SECONDS = {"h": 3600, "m": 60, "s": 1}


def _get_timeout(env_var: str, default: int) -> int:
    """Get timeout value from environment variable or use default.

    Args:
        env_var: Environment variable name
        default: Default timeout in seconds

    Returns:
        Timeout value in seconds
    """
    value = os.environ.get(env_var)
    if value is not None:
        try:
            timeout = int(value)
            if timeout <= 0:
                logger.warning(
                    f"Invalid timeout value for {env_var}: {value}. "
                    f"Must be positive. Using default: {default}s"
                )
                return default
            return timeout
        except ValueError:
            logger.warning(
                f"Invalid timeout value for {env_var}: {value}. "
                f"Must be integer. Using default: {default}s"
            )
            return default
    return default


class Timeouts:
    """Default timeouts for ARM operations, in seconds."""

    CREATE: Final[int] = _get_timeout("ARM_TIMEOUT_CREATE", 1800)
    READ: Final[int] = _get_timeout("ARM_TIMEOUT_READ", 300)
    UPDATE: Final[int] = _get_timeout("ARM_TIMEOUT_UPDATE", 1800)
    DELETE: Final[int] = _get_timeout("ARM_TIMEOUT_DELETE", 1800)

    # Azure SDK transport timeouts
    AZURE_SDK_CONNECTION: Final[int] = _get_timeout("ARM_TIMEOUT_SDK_CONNECTION", 30)
    AZURE_SDK_READ: Final[int] = _get_timeout("ARM_TIMEOUT_SDK_READ", 60)


def parse_duration(value: Union[str, int]) -> int:
    """Parse a duration such as ``"30m"``, ``"1h30m"`` or ``"90s"`` into seconds.

    Plain integers (or digit-only strings) are taken as seconds.

    Raises:
        ValueError: If the value is not a positive duration
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, int):
        seconds = value
    else:
        text = str(value).strip().lower()
        if text.isdigit():
            seconds = int(text)
        else:
            matches = _DURATION_PATTERN.findall(text)
            if not matches or _DURATION_PATTERN.sub("", text).strip():
                raise ValueError(f"invalid duration: {value!r}")
            seconds = sum(int(amount) * _UNIT_SECONDS[unit] for amount, unit in matches)
    if seconds <= 0:
        raise ValueError(f"duration must be positive: {value!r}")
    return seconds


@dataclass(frozen=True)
class ResourceTimeouts:
    """Per-resource operation timeouts in seconds."""

    create: int = Timeouts.CREATE
    read: int = Timeouts.READ
    update: int = Timeouts.UPDATE
    delete: int = Timeouts.DELETE

    @classmethod
    def from_block(cls, block: Optional[Dict[str, Any]]) -> "ResourceTimeouts":
        """Build timeouts from a resource's ``timeouts`` block.

        Raises:
            ValueError: On unknown operations or invalid durations
        """
        if not block:
            return cls()
        unknown = set(block) - set(TIMEOUT_OPERATIONS)
        if unknown:
            raise ValueError(
                f"unknown timeout operation(s): {', '.join(sorted(unknown))}"
            )
        return cls(**{op: parse_duration(value) for op, value in block.items()})


def log_timeout_event(
    operation: str,
    timeout_value: int,
    resource_name: Optional[str] = None,
    level: str = "warning",
) -> None:
    """Log a timeout event with consistent formatting.

    Args:
        operation: Name of the operation that timed out
        timeout_value: Timeout value that was exceeded
        resource_name: Optional name of the resource being operated on
        level: Log level (debug, info, warning, error)
    """
    log_func = getattr(logger, level, logger.warning)
    target = f" on '{resource_name}'" if resource_name else ""
    log_func(
        f"Operation '{operation}'{target} timed out after {timeout_value} seconds; "
        "the remote operation may still be running"
    )
