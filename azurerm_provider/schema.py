"""Schema declarations for provider resources.

A ``ResourceSchema`` maps field names to ``FieldSchema`` declarations: the
field's type, whether it is required, optional or computed, whether changing
it forces the resource to be replaced, and how values are compared. Schemas
are pure data; ``validate`` normalizes a configuration against one and
``diff`` compares a configuration with prior state.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .exceptions import SchemaValidationError
from .timeout_config import TIMEOUT_OPERATIONS, parse_duration

logger = logging.getLogger(__name__)

TIMEOUTS_KEY = "timeouts"

MAX_TAG_COUNT = 50
MAX_TAG_KEY_LENGTH = 512
MAX_TAG_VALUE_LENGTH = 256

_INTEGER_PATTERN = re.compile(r"[+-]?\d+")


class _Unknown:
    """Placeholder for a value that is only known after apply."""

    _instance: Optional["_Unknown"] = None

    def __new__(cls) -> "_Unknown":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "(known after apply)"

    def __str__(self) -> str:
        return "(known after apply)"


UNKNOWN = _Unknown()


class FieldType(str, Enum):
    """Value types a schema field can hold."""

    STRING = "string"
    BOOL = "bool"
    INT = "int"
    MAP = "map"


_ZERO_VALUES: Dict[FieldType, Callable[[], Any]] = {
    FieldType.STRING: str,
    FieldType.BOOL: bool,
    FieldType.INT: int,
    FieldType.MAP: dict,
}


@dataclass(frozen=True)
class FieldSchema:
    """Declaration of a single resource field."""

    type: FieldType
    required: bool = False
    optional: bool = False
    computed: bool = False
    force_new: bool = False
    default: Any = None
    sensitive: bool = False
    ignore_case: bool = False
    allowed_values: Optional[Tuple[str, ...]] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    normalize: Optional[Callable[[Any], Any]] = None
    validate_func: Optional[Callable[[str, Any], List[str]]] = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.required and (self.optional or self.computed):
            raise ValueError("A required field cannot be optional or computed")
        if not (self.required or self.optional or self.computed):
            raise ValueError("A field must be required, optional or computed")
        if self.default is not None and not self.optional:
            raise ValueError("Only optional fields can declare a default")

    @property
    def computed_only(self) -> bool:
        return self.computed and not self.optional

    def zero_value(self) -> Any:
        return _ZERO_VALUES[self.type]()

    def coerce(self, value: Any) -> Any:
        """Convert a configuration value to this field's type.

        Raises:
            ValueError: If the value cannot be converted
        """
        if value is None:
            return self.zero_value()
        if self.type == FieldType.STRING:
            if isinstance(value, (dict, list, bool)):
                raise ValueError(f"expected a string, got {type(value).__name__}")
            result: Any = str(value)
        elif self.type == FieldType.BOOL:
            if isinstance(value, bool):
                result = value
            elif isinstance(value, str) and value.lower() in ("true", "false"):
                result = value.lower() == "true"
            else:
                raise ValueError(f"expected a bool, got {value!r}")
        elif self.type == FieldType.INT:
            if isinstance(value, bool):
                raise ValueError(f"expected an integer, got {value!r}")
            if isinstance(value, int):
                result = value
            elif isinstance(value, float) and value.is_integer():
                result = int(value)
            elif isinstance(value, str) and _INTEGER_PATTERN.fullmatch(value.strip()):
                result = int(value.strip())
            else:
                raise ValueError(f"expected an integer, got {value!r}")
        else:
            if not isinstance(value, dict):
                raise ValueError(f"expected a mapping, got {type(value).__name__}")
            result = {str(k): "" if v is None else str(v) for k, v in value.items()}
        if self.normalize is not None:
            result = self.normalize(result)
        return result

    def check(self, name: str, value: Any) -> List[str]:
        """Return validation errors for an already coerced value."""
        errors: List[str] = []
        if self.allowed_values is not None:
            candidates = (
                [v.lower() for v in self.allowed_values]
                if self.ignore_case
                else list(self.allowed_values)
            )
            given = value.lower() if self.ignore_case else value
            if given not in candidates:
                errors.append(
                    f"{name}: expected one of {', '.join(self.allowed_values)}, got {value!r}"
                )
        if self.min_value is not None and value < self.min_value:
            errors.append(f"{name}: must be at least {self.min_value}, got {value}")
        if self.max_value is not None and value > self.max_value:
            errors.append(f"{name}: must be at most {self.max_value}, got {value}")
        if self.validate_func is not None:
            errors.extend(self.validate_func(name, value))
        return errors

    def values_equal(self, old: Any, new: Any) -> bool:
        """Compare two values the way a plan does."""
        if new is UNKNOWN or old is UNKNOWN:
            return False
        old = self.zero_value() if old is None else old
        new = self.zero_value() if new is None else new
        if self.ignore_case and isinstance(old, str) and isinstance(new, str):
            return old.lower() == new.lower()
        return old == new


class ResourceSchema:
    """Field declarations plus cross-field checks for one resource type."""

    def __init__(
        self,
        type_name: str,
        fields: Dict[str, FieldSchema],
        validators: Sequence[Callable[[Dict[str, Any]], List[str]]] = (),
    ):
        self.type_name = type_name
        self.fields = fields
        self.validators = list(validators)

    def __contains__(self, name: str) -> bool:
        return name in self.fields

    def field(self, name: str) -> FieldSchema:
        try:
            return self.fields[name]
        except KeyError:
            raise KeyError(f"{self.type_name} has no field '{name}'") from None

    @property
    def force_new_fields(self) -> List[str]:
        return [name for name, f in self.fields.items() if f.force_new]

    @property
    def sensitive_fields(self) -> List[str]:
        return [name for name, f in self.fields.items() if f.sensitive]

    def validate(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and normalize a resource configuration.

        Unknown values (``UNKNOWN``) pass through untouched so that plans can be
        built before dependencies exist.

        Returns:
            Normalized configuration with defaults applied

        Raises:
            SchemaValidationError: Listing every problem found
        """
        errors: List[str] = []
        normalized: Dict[str, Any] = {}

        for name, value in config.items():
            if name == TIMEOUTS_KEY:
                normalized[name] = self._validate_timeouts(value, errors)
                continue
            if name not in self.fields:
                errors.append(f"{name}: unsupported argument")
                continue
            field_schema = self.fields[name]
            if field_schema.computed_only:
                errors.append(f"{name}: computed attribute cannot be set")
                continue
            if value is UNKNOWN:
                normalized[name] = value
                continue
            try:
                coerced = field_schema.coerce(value)
            except ValueError as e:
                errors.append(f"{name}: {e}")
                continue
            errors.extend(field_schema.check(name, coerced))
            normalized[name] = coerced

        for name, field_schema in self.fields.items():
            if name in normalized:
                continue
            if field_schema.required:
                errors.append(f"{name}: required field is not set")
            elif field_schema.default is not None:
                normalized[name] = field_schema.default

        if not errors:
            for validator in self.validators:
                errors.extend(validator(normalized))

        if errors:
            raise SchemaValidationError(
                f"Invalid configuration for {self.type_name}",
                resource_type=self.type_name,
                validation_errors=errors,
            )
        return normalized

    def normalize_timeouts(self, value: Any) -> Dict[str, int]:
        """Validate a ``timeouts`` block on its own and return it in seconds.

        Raises:
            SchemaValidationError: On unknown operations or invalid durations
        """
        errors: List[str] = []
        result = self._validate_timeouts(value, errors)
        if errors:
            raise SchemaValidationError(
                f"Invalid timeouts for {self.type_name}",
                resource_type=self.type_name,
                validation_errors=errors,
            )
        return result

    @staticmethod
    def _validate_timeouts(value: Any, errors: List[str]) -> Dict[str, int]:
        if not isinstance(value, dict):
            errors.append(f"{TIMEOUTS_KEY}: expected a mapping")
            return {}
        result: Dict[str, int] = {}
        for operation, duration in value.items():
            if operation not in TIMEOUT_OPERATIONS:
                errors.append(f"{TIMEOUTS_KEY}.{operation}: unsupported operation")
                continue
            try:
                result[operation] = parse_duration(duration)
            except ValueError as e:
                errors.append(f"{TIMEOUTS_KEY}.{operation}: {e}")
        return result

    def diff(
        self, config: Dict[str, Any], prior: Dict[str, Any]
    ) -> Dict[str, Tuple[Any, Any]]:
        """Compare a normalized configuration with prior state attributes.

        Fields missing from the configuration are compared against their default
        (or zero value) unless they are computed, in which case the remote value
        is kept.

        Returns:
            Mapping of field name to (old, new) for every field that changes
        """
        changes: Dict[str, Tuple[Any, Any]] = {}
        for name, field_schema in self.fields.items():
            if name in config:
                new = config[name]
            elif field_schema.computed:
                continue
            elif field_schema.default is not None:
                new = field_schema.default
            else:
                new = field_schema.zero_value()
            old = prior.get(name)
            if not field_schema.values_equal(old, new):
                changes[name] = (old, new)
        return changes

    def requires_replace(self, changes: Dict[str, Tuple[Any, Any]]) -> List[str]:
        return [name for name in changes if self.fields[name].force_new]


def normalize_location(location: str) -> str:
    """Normalize an Azure location ("West US 2" -> "westus2")."""
    return location.replace(" ", "").lower()


def location_schema() -> FieldSchema:
    return FieldSchema(
        FieldType.STRING,
        required=True,
        force_new=True,
        normalize=normalize_location,
        description="Azure region the resource is created in",
    )


def resource_group_name_schema() -> FieldSchema:
    return FieldSchema(
        FieldType.STRING,
        required=True,
        force_new=True,
        description="Name of the resource group holding the resource",
    )


def _validate_tags(name: str, tags: Dict[str, str]) -> List[str]:
    errors = []
    if len(tags) > MAX_TAG_COUNT:
        errors.append(f"{name}: a maximum of {MAX_TAG_COUNT} tags can be applied")
    for key, value in tags.items():
        if len(key) > MAX_TAG_KEY_LENGTH:
            errors.append(
                f"{name}: tag key {key[:20]!r}... exceeds {MAX_TAG_KEY_LENGTH} characters"
            )
        if len(value) > MAX_TAG_VALUE_LENGTH:
            errors.append(
                f"{name}: tag {key!r} value exceeds {MAX_TAG_VALUE_LENGTH} characters"
            )
    return errors


def tags_schema() -> FieldSchema:
    return FieldSchema(
        FieldType.MAP,
        optional=True,
        computed=True,
        validate_func=_validate_tags,
        description="Tags assigned to the resource",
    )
