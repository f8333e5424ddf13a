"""
Column types for sources that return schemaless documents.

Document stores (MongoDB) hand back dicts whose values may be missing or vary in
type between documents. A column schema fixes the Arrow type of each projected
column so every window of a cursor produces the same table layout.

Each type knows:
- to_arrow(): the PyArrow data type of the column
- convert(value): how to turn a driver value into something Arrow accepts

Supported Types:
- Primitives: String, Int, Float, Bool, Timestamp, ObjectId, Binary
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any as AnyValue, Mapping, Optional

import pyarrow as pa
from bson import Decimal128, json_util
from bson import ObjectId as BsonObjectId


class BaseType(ABC):
    """Base class for all column types."""

    @abstractmethod
    def to_arrow(self) -> pa.DataType:
        """Convert to PyArrow data type."""
        pass

    def convert(self, value: AnyValue) -> AnyValue:
        return value

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def __eq__(self, other) -> bool:
        return isinstance(other, self.__class__)

    def __hash__(self) -> int:
        return hash(self.__class__.__name__)


class String(BaseType):
    """String type."""

    def to_arrow(self) -> pa.DataType:
        return pa.string()

    def convert(self, value: AnyValue) -> AnyValue:
        return None if value is None else str(value)


@dataclass(frozen=True, eq=True)
class Int(BaseType):
    """Integer type."""

    bits: int = 64

    def __post_init__(self):
        if self.bits not in (32, 64):
            raise ValueError("Int bits must be either 32 or 64")

    def to_arrow(self) -> pa.DataType:
        return pa.int64() if self.bits == 64 else pa.int32()

    def convert(self, value: AnyValue) -> AnyValue:
        return None if value is None else int(value)


@dataclass(frozen=True, eq=True)
class Float(BaseType):
    """Floating-point type."""

    bits: int = 64

    def __post_init__(self):
        if self.bits not in (32, 64):
            raise ValueError("Float bits must be either 32 or 64")

    def to_arrow(self) -> pa.DataType:
        return pa.float64() if self.bits == 64 else pa.float32()

    def convert(self, value: AnyValue) -> AnyValue:
        return None if value is None else float(value)


class Bool(BaseType):
    """Boolean type."""

    def to_arrow(self) -> pa.DataType:
        return pa.bool_()


@dataclass(frozen=True, eq=True)
class Timestamp(BaseType):
    """Timestamp type."""

    unit: str = "ms"
    tz: Optional[str] = "UTC"

    def __post_init__(self):
        if self.unit not in ("s", "ms", "us", "ns"):
            raise ValueError("Timestamp unit must be one of 's', 'ms', 'us', 'ns'")

    def to_arrow(self) -> pa.DataType:
        return pa.timestamp(self.unit, tz=self.tz)

    def convert(self, value: AnyValue) -> AnyValue:
        if value is None or isinstance(value, datetime):
            return value
        raise TypeError(f"Expected datetime, got {type(value).__name__}")


class ObjectId(BaseType):
    """MongoDB ObjectId (stored as its hex string)."""

    def to_arrow(self) -> pa.DataType:
        return pa.string()

    def convert(self, value: AnyValue) -> AnyValue:
        return None if value is None else str(value)


class Binary(BaseType):
    """Raw bytes."""

    def to_arrow(self) -> pa.DataType:
        return pa.binary()

    def convert(self, value: AnyValue) -> AnyValue:
        return None if value is None else bytes(value)


Schema = Mapping[str, BaseType]


def to_arrow_schema(schema: Schema) -> pa.Schema:
    """Arrow schema with fields in schema order."""
    return pa.schema([(name, column.to_arrow()) for name, column in schema.items()])


def infer_value(value: AnyValue) -> AnyValue:
    """Normalize a BSON value for Arrow inference when no schema is given."""
    if isinstance(value, BsonObjectId):
        return str(value)
    if isinstance(value, Decimal128):
        return str(value.to_decimal())
    if isinstance(value, (dict, list)):
        return json_util.dumps(value)
    return value

