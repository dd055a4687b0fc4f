"""
Configuration document loader.

A configuration document is YAML of the form:

    resources:
      azurerm_resource_group:
        test:
          name: acctestRG-1
          location: westus2
      azurerm_managed_disk:
        test:
          name: acctestd-1
          resource_group_name: ${azurerm_resource_group.test.name}
          ...

String values may reference fields of sibling resources with
``${<type>.<label>.<field>}``. The loader records the references; the engine
resolves them against state in dependency order.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Set, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import InterpolationError, InvalidConfigurationError
from .schema import UNKNOWN

logger = logging.getLogger(__name__)

INTERPOLATION_PATTERN = re.compile(
    r"\$\{([A-Za-z][A-Za-z0-9_]*)\.([A-Za-z0-9_-]+)\.([A-Za-z0-9_]+)\}"
)
_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")

Lookup = Callable[[str, str], Any]


class ConfigurationDocument(BaseModel):
    """Top-level shape of a configuration document."""

    resources: Dict[str, Dict[str, Dict[str, Any]]] = Field(
        default_factory=dict,
        description="Resource blocks keyed by type, then by label",
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("resources")
    @classmethod
    def validate_names(
        cls, v: Dict[str, Dict[str, Dict[str, Any]]]
    ) -> Dict[str, Dict[str, Dict[str, Any]]]:
        for type_name, blocks in v.items():
            if not _NAME_PATTERN.match(type_name):
                raise ValueError(f"Invalid resource type name: {type_name!r}")
            for label in blocks:
                if not _NAME_PATTERN.match(label):
                    raise ValueError(f"Invalid label for {type_name}: {label!r}")
        return v


@dataclass
class ResourceBlock:
    """One declared resource."""

    type_name: str
    label: str
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> str:
        return f"{self.type_name}.{self.label}"

    def references(self) -> Set[str]:
        """Addresses of the resources this block interpolates from."""
        found: Set[str] = set()
        _collect_references(self.config, found)
        return found


def _collect_references(value: Any, found: Set[str]) -> None:
    if isinstance(value, str):
        for type_name, label, _ in INTERPOLATION_PATTERN.findall(value):
            found.add(f"{type_name}.{label}")
    elif isinstance(value, dict):
        for item in value.values():
            _collect_references(item, found)
    elif isinstance(value, list):
        for item in value:
            _collect_references(item, found)


def load_configuration(text: str) -> List[ResourceBlock]:
    """
    Parse a configuration document.

    Raises:
        InvalidConfigurationError: If the YAML is malformed or does not have the
            expected shape
    """
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise InvalidConfigurationError(
            f"Invalid YAML in configuration: {e}", cause=e
        ) from e

    try:
        document = ConfigurationDocument.model_validate(raw)
    except ValidationError as e:
        raise InvalidConfigurationError(
            f"Configuration validation failed: {e}", config_section="resources", cause=e
        ) from e

    blocks = [
        ResourceBlock(type_name, label, dict(config))
        for type_name, labelled in document.resources.items()
        for label, config in labelled.items()
    ]
    logger.debug(f"Loaded {len(blocks)} resource blocks")
    return blocks


def load_configuration_file(path: Union[str, Path]) -> List[ResourceBlock]:
    """Read and parse a configuration file."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise InvalidConfigurationError(
            f"Cannot read configuration file {path}: {e}", cause=e
        ) from e
    return load_configuration(text)


def resolve_interpolations(value: Any, lookup: Lookup, address: str) -> Any:
    """
    Replace ``${type.label.field}`` references in ``value``.

    A string that is exactly one reference takes the referenced value as-is
    (keeping its type); otherwise references are substituted as text. If any
    referenced value is ``UNKNOWN`` the whole string becomes ``UNKNOWN``.

    Args:
        value: Configuration value (nested dicts and lists are walked)
        lookup: Callable returning the value of (address, field), raising
            InterpolationError when it cannot
        address: Address of the resource being resolved, for error messages
    """
    if isinstance(value, dict):
        return {k: resolve_interpolations(v, lookup, address) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_interpolations(v, lookup, address) for v in value]
    if not isinstance(value, str) or "${" not in value:
        return value

    whole = INTERPOLATION_PATTERN.fullmatch(value)
    if whole:
        type_name, label, attr = whole.groups()
        return lookup(f"{type_name}.{label}", attr)

    unknown = False

    def substitute(match: "re.Match[str]") -> str:
        nonlocal unknown
        type_name, label, attr = match.groups()
        resolved = lookup(f"{type_name}.{label}", attr)
        if resolved is UNKNOWN:
            unknown = True
            return ""
        return str(resolved)

    result = INTERPOLATION_PATTERN.sub(substitute, value)
    if unknown:
        return UNKNOWN
    if "${" in result:
        raise InterpolationError(
            f"Malformed interpolation in {address}: {value!r}",
            reference=value,
            address=address,
        )
    return result
