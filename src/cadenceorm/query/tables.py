"""
Normalized table references.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Tuple, Union, runtime_checkable


@dataclass(frozen=True)
class TableRef:
    """
    A resolved table identifier. Two references to the same table compare equal.
    """

    table_name: str
    schema: Optional[str] = None

    def with_default_schema(self, default_schema: Optional[str]) -> "TableRef":
        if self.schema or not default_schema:
            return self
        return TableRef(self.table_name, default_schema)

    def __str__(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.table_name}"
        return self.table_name


@runtime_checkable
class SupportsTableRef(Protocol):
    """Model-level references expose the table they map to."""

    @property
    def table_ref(self) -> TableRef: ...


TableLike = Union[str, Tuple[str, str], Mapping[str, Any], TableRef, SupportsTableRef]


def _from_parts(table_name: Any, schema: Any) -> TableRef:
    if not isinstance(table_name, str) or not table_name:
        raise ValueError(f"Invalid table name: {table_name!r}")
    if schema is not None and not isinstance(schema, str):
        raise ValueError(f"Invalid schema name: {schema!r}")
    return TableRef(table_name, schema or None)


def resolve_table(value: TableLike, default_schema: Optional[str] = None) -> TableRef:
    """
    Normalize a table reference.

    Accepts ``"table"``, ``"schema.table"``, ``(schema, table)``, a mapping with
    ``table_name``/``schema`` keys, a :class:`TableRef`, or a model exposing
    ``table_ref``. Missing schemas are filled with ``default_schema``.
    """

    if isinstance(value, TableRef):
        ref = value
    elif isinstance(value, str):
        if "." in value:
            schema, table = value.split(".", 1)
            ref = _from_parts(table, schema)
        else:
            ref = _from_parts(value, None)
    elif isinstance(value, tuple):
        if len(value) != 2:
            raise ValueError(f"Table tuples must be (schema, table), got {value!r}")
        schema, table = value
        ref = _from_parts(table, schema)
    elif isinstance(value, Mapping):
        ref = _from_parts(value.get("table_name"), value.get("schema"))
    elif isinstance(value, SupportsTableRef):
        return resolve_table(value.table_ref, default_schema)
    else:
        raise TypeError(f"Cannot resolve a table reference from {type(value).__name__}")
    return ref.with_default_schema(default_schema)
