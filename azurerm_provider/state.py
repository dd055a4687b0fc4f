"""Resource state and the typed accessors handlers use to reach it.

``ResourceData`` is what a handler receives: the (validated) configuration,
the prior state if the resource already exists, and a scratch area the
handler writes the remote system's authoritative values into. Accessors are
typed per field and report presence explicitly, so an omitted optional field
is never confused with its zero value.

``StateStore`` persists ``ResourceState`` records in a JSON file keyed by
resource address (``<type>.<label>``).
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import StateError
from .schema import TIMEOUTS_KEY, UNKNOWN, FieldType, ResourceSchema
from .timeout_config import ResourceTimeouts

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


@dataclass
class ResourceState:
    """Persisted state of one managed resource."""

    type_name: str
    id: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    # Addresses this resource referenced when it was last applied
    dependencies: List[str] = field(default_factory=list)


class ResourceData:
    """Typed view over configuration, prior state and values set during an operation.

    Lookup order for ``get``: values set by the handler, then configuration, then
    prior state, then the field's default or zero value.
    """

    def __init__(
        self,
        schema: ResourceSchema,
        config: Optional[Dict[str, Any]] = None,
        state: Optional[ResourceState] = None,
    ):
        self.schema = schema
        self._config: Dict[str, Any] = {
            k: v for k, v in (config or {}).items() if k != TIMEOUTS_KEY
        }
        self._prior: Dict[str, Any] = dict(state.attributes) if state else {}
        self._new: Dict[str, Any] = {}
        self._id = state.id if state else ""
        self._dependencies = list(state.dependencies) if state else []
        self._existed = bool(self._id)
        self.timeouts = ResourceTimeouts.from_block((config or {}).get(TIMEOUTS_KEY))

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: Optional[str]) -> None:
        """Set the resource ID; an empty value marks the resource as gone."""
        self._id = value or ""

    def is_new_resource(self) -> bool:
        """True while the resource is being created rather than updated."""
        return not self._existed

    def _lookup(self, key: str) -> Tuple[Any, bool]:
        self.schema.field(key)
        for layer in (self._new, self._config, self._prior):
            if key in layer and layer[key] is not UNKNOWN:
                return layer[key], True
        return None, False

    def get(self, key: str) -> Any:
        """Return the current value of ``key``, falling back to default or zero value."""
        value, found = self._lookup(key)
        if found and value is not None:
            return value
        field_schema = self.schema.field(key)
        if field_schema.default is not None:
            return field_schema.default
        return field_schema.zero_value()

    def get_optional(self, key: str) -> Optional[Any]:
        """Return the value of ``key`` if it was supplied, else None.

        Empty strings and None count as not supplied; ``False`` and ``0`` do not.
        """
        value, found = self._lookup(key)
        if not found or value is None:
            return None
        if self.schema.field(key).type == FieldType.STRING and value == "":
            return None
        return value

    def get_ok(self, key: str) -> Tuple[Any, bool]:
        """Return ``(value, present)`` for ``key``."""
        value = self.get_optional(key)
        if value is None:
            return self.get(key), False
        return value, True

    def _typed(self, key: str, expected: FieldType) -> Any:
        field_type = self.schema.field(key).type
        if field_type != expected:
            raise TypeError(f"{key} is a {field_type.value} field, not {expected.value}")
        return self.get(key)

    def get_str(self, key: str) -> str:
        return self._typed(key, FieldType.STRING)

    def get_bool(self, key: str) -> bool:
        return self._typed(key, FieldType.BOOL)

    def get_int(self, key: str) -> int:
        return self._typed(key, FieldType.INT)

    def get_tags(self, key: str = "tags") -> Dict[str, str]:
        return dict(self._typed(key, FieldType.MAP))

    def set(self, key: str, value: Any) -> None:
        """Record a value the remote system is authoritative for."""
        self._new[key] = self.schema.field(key).coerce(value)

    def state(self) -> Optional[ResourceState]:
        """Build the state to persist, or None once the resource is gone."""
        if not self._id:
            return None
        attributes: Dict[str, Any] = {}
        for name in self.schema.fields:
            value, found = self._lookup(name)
            if found:
                attributes[name] = value
        return ResourceState(
            type_name=self.schema.type_name,
            id=self._id,
            attributes=attributes,
            dependencies=list(self._dependencies),
        )


class _StateResourceModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    id: str
    attributes: Dict[str, Any] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list)


class _StateFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: int = STATE_FORMAT_VERSION
    serial: int = 0
    resources: Dict[str, _StateResourceModel] = Field(default_factory=dict)


class StateStore:
    """Resource states keyed by address, optionally backed by a JSON file.

    Without a path the store lives only in memory.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self.serial = 0
        self._resources: Dict[str, ResourceState] = {}
        if self.path and self.path.exists():
            self._load()

    def _load(self) -> None:
        assert self.path is not None
        try:
            raw = json.loads(self.path.read_text())
            model = _StateFileModel.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise StateError(
                "Failed to load state file", path=str(self.path), cause=e
            ) from e
        if model.version != STATE_FORMAT_VERSION:
            raise StateError(
                f"Unsupported state format version {model.version}",
                path=str(self.path),
            )
        self.serial = model.serial
        self._resources = {
            address: ResourceState(
                type_name=entry.type,
                id=entry.id,
                attributes=dict(entry.attributes),
                dependencies=list(entry.dependencies),
            )
            for address, entry in model.resources.items()
        }
        logger.debug(f"Loaded {len(self._resources)} resources from {self.path}")

    def get(self, address: str) -> Optional[ResourceState]:
        return self._resources.get(address)

    def set(self, address: str, state: ResourceState) -> None:
        self._resources[address] = state

    def remove(self, address: str) -> None:
        self._resources.pop(address, None)

    def addresses(self) -> List[str]:
        return list(self._resources)

    def items(self) -> Iterator[Tuple[str, ResourceState]]:
        return iter(list(self._resources.items()))

    def __contains__(self, address: str) -> bool:
        return address in self._resources

    def __len__(self) -> int:
        return len(self._resources)

    def snapshot(self) -> "StateStore":
        """Return an in-memory copy of the current resources."""
        copy = StateStore()
        copy.serial = self.serial
        for address, state in self._resources.items():
            copy.set(
                address,
                ResourceState(
                    state.type_name,
                    state.id,
                    dict(state.attributes),
                    list(state.dependencies),
                ),
            )
        return copy

    def to_dict(self) -> Dict[str, Any]:
        model = _StateFileModel(
            version=STATE_FORMAT_VERSION,
            serial=self.serial,
            resources={
                address: _StateResourceModel(
                    type=state.type_name,
                    id=state.id,
                    attributes=state.attributes,
                    dependencies=sorted(state.dependencies),
                )
                for address, state in self._resources.items()
            },
        )
        return model.model_dump()

    def save(self) -> None:
        """Write the state file atomically. No-op for in-memory stores."""
        if self.path is None:
            return
        self.serial += 1
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(self.to_dict(), indent=2, sort_keys=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as tmp:
                tmp.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StateError(
                "Failed to write state file", path=str(self.path), cause=e
            ) from e
        logger.debug(f"Wrote state serial {self.serial} to {self.path}")
