"""
Schema registry for store tables.

A schema is pure data: the set of fields a table accepts, their primitive
types and whether a full record must carry them. Validation never mutates
anything, it only raises SchemaError.
"""
from dataclasses import dataclass, field
from enum import Enum
import math
from typing import Any, Iterable, Mapping, Tuple

from widgetstore.errors import SchemaError, SchemaErrorKind


class FieldType(Enum):
    """Primitive field types understood by the store."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"

    def accepts(self, value: Any) -> bool:
        """Check a value against this type. bool is not a number here."""
        match self:
            case FieldType.STRING:
                return isinstance(value, str)
            case FieldType.NUMBER:
                return isinstance(value, (int, float)) and not isinstance(value, bool)
            case FieldType.BOOLEAN:
                return isinstance(value, bool)


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of one table field."""
    name: str
    type: FieldType
    required: bool = False
    positive: bool = False  # value must be > 0


@dataclass(frozen=True)
class TableSchema:
    """Declaration of a table: its name and its fields keyed by field name."""
    name: str
    fields: Mapping[str, FieldSpec] = field(default_factory=dict)

    @classmethod
    def create(cls, name: str, specs: Iterable[FieldSpec]) -> 'TableSchema':
        """Build a schema from a sequence of field specs."""
        return cls(name=name, fields={spec.name: spec for spec in specs})

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(self.fields.keys())

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return tuple(name for name, spec in self.fields.items() if spec.required)

    def validate_field(self, name: str, value: Any) -> None:
        """Validate a single field write.

        Raises:
            SchemaError: unknown field, wrong type or violated constraint.
        """
        spec = self.fields.get(name)
        if spec is None:
            raise SchemaError(SchemaErrorKind.UNKNOWN_FIELD, self.name, name, value)
        if not spec.type.accepts(value):
            raise SchemaError(
                SchemaErrorKind.TYPE_MISMATCH, self.name, name, value,
                detail=f"expected {spec.type.value}, got {type(value).__name__}",
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise SchemaError(SchemaErrorKind.CONSTRAINT, self.name, name, value,
                              detail="must be finite")
        if spec.positive and not value > 0:
            raise SchemaError(SchemaErrorKind.CONSTRAINT, self.name, name, value,
                              detail="must be > 0")

    def validate(self, record: Mapping[str, Any], partial: bool = True) -> None:
        """Validate a full or partial record.

        A partial record is valid if every field it carries exists and has the
        right type. A full record (partial=False) must also carry every
        required field.

        Args:
            record: Field name -> value mapping.
            partial: If False, missing required fields are rejected too.

        Raises:
            SchemaError: on the first offending field.
        """
        for name, value in record.items():
            self.validate_field(name, value)
        if not partial:
            for name in self.required_fields:
                if name not in record:
                    raise SchemaError(SchemaErrorKind.MISSING_FIELD, self.name, name)


WIDGET_TABLE = "widgets"

WIDGET_SCHEMA = TableSchema.create(WIDGET_TABLE, [
    FieldSpec("widget_id", FieldType.STRING, required=True),
    FieldSpec("notebook_id", FieldType.STRING, required=True),
    FieldSpec("cell_id", FieldType.STRING, required=True),
    FieldSpec("left", FieldType.NUMBER),
    FieldSpec("top", FieldType.NUMBER),
    FieldSpec("width", FieldType.NUMBER, positive=True),
    FieldSpec("height", FieldType.NUMBER, positive=True),
    FieldSpec("changed", FieldType.BOOLEAN),
    FieldSpec("removed", FieldType.BOOLEAN),
])

# Fields touched by a move.
POSITION_FIELDS: Tuple[str, ...] = ("left", "top", "width", "height")
