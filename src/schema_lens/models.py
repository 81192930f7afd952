"""
Core data models for the schema_lens package.

Defines the schema snapshot (tables, columns, foreign keys), the portable
column type vocabulary and the connection identity used to namespace caches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class ColumnType(str, Enum):
    """Normalized column types across catalog sources."""
    STRING = "string"
    TEXT = "text"
    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOLEAN = "boolean"
    BINARY = "binary"
    JSON = "json"
    GUID = "guid"
    DATE = "date"
    DATETIME = "datetime"
    DATETIMETZ = "datetimetz"
    TIME = "time"
    DATE_IMMUTABLE = "date_immutable"
    DATETIME_IMMUTABLE = "datetime_immutable"
    DATETIMETZ_IMMUTABLE = "datetimetz_immutable"
    TIME_IMMUTABLE = "time_immutable"
    UNKNOWN = "unknown"


_QUOTE_CHARS = "\"`[]"


def unquote_identifier(name: str) -> str:
    """Strip identifier quoting ("name", `name`, [name])."""
    return name.strip(_QUOTE_CHARS)


@dataclass(frozen=True)
class ConnectionIdentity:
    """Host, port, database and driver of a connection."""
    host: str = ""
    port: str = ""
    database: str = ""
    driver: str = ""


@dataclass
class Column:
    """A single table column."""
    name: str
    type: ColumnType
    nullable: bool = True
    autoincrement: bool = False
    default: Optional[Any] = None
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    comment: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "type": self.type.value,
            "nullable": self.nullable,
            "autoincrement": self.autoincrement,
            "default": self.default,
            "length": self.length,
            "precision": self.precision,
            "scale": self.scale,
            "comment": self.comment,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Column:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            type=ColumnType(data.get("type", "unknown")),
            nullable=data.get("nullable", True),
            autoincrement=data.get("autoincrement", False),
            default=data.get("default"),
            length=data.get("length"),
            precision=data.get("precision"),
            scale=data.get("scale"),
            comment=data.get("comment"),
        )


@dataclass
class ForeignKeyConstraint:
    """A foreign key from local_table(local_columns) to foreign_table(foreign_columns)."""
    name: Optional[str]
    local_table: str
    local_columns: List[str]
    foreign_table: str
    foreign_columns: List[str]
    on_delete: Optional[str] = None
    on_update: Optional[str] = None

    @property
    def unquoted_local_columns(self) -> List[str]:
        return [unquote_identifier(c) for c in self.local_columns]

    @property
    def unquoted_foreign_columns(self) -> List[str]:
        return [unquote_identifier(c) for c in self.foreign_columns]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "local_table": self.local_table,
            "local_columns": list(self.local_columns),
            "foreign_table": self.foreign_table,
            "foreign_columns": list(self.foreign_columns),
            "on_delete": self.on_delete,
            "on_update": self.on_update,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], local_table: Optional[str] = None) -> ForeignKeyConstraint:
        """Create from dictionary. local_table defaults to the owning table when nested."""
        return cls(
            name=data.get("name"),
            local_table=data.get("local_table", local_table),
            local_columns=list(data["local_columns"]),
            foreign_table=data["foreign_table"],
            foreign_columns=list(data.get("foreign_columns", [])),
            on_delete=data.get("on_delete"),
            on_update=data.get("on_update"),
        )


@dataclass
class Table:
    """A table with its columns, primary key and outgoing foreign keys."""
    name: str
    columns: List[Column] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    foreign_keys: List[ForeignKeyConstraint] = field(default_factory=list)
    comment: Optional[str] = None

    @property
    def column_names(self) -> List[str]:
        """Return list of column names."""
        return [c.name for c in self.columns]

    @property
    def has_primary_key(self) -> bool:
        return bool(self.primary_key)

    def get_column(self, name: str) -> Optional[Column]:
        """Get column by name (case-insensitive, quoting ignored)."""
        name_lower = unquote_identifier(name).lower()
        for col in self.columns:
            if unquote_identifier(col.name).lower() == name_lower:
                return col
        return None

    def add_foreign_key(self, fk: ForeignKeyConstraint) -> None:
        self.foreign_keys.append(fk)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "primary_key": list(self.primary_key),
            "foreign_keys": [fk.to_dict() for fk in self.foreign_keys],
            "comment": self.comment,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Table:
        """Create from dictionary."""
        name = data["name"]
        return cls(
            name=name,
            columns=[Column.from_dict(c) for c in data.get("columns", [])],
            primary_key=list(data.get("primary_key", [])),
            foreign_keys=[
                ForeignKeyConstraint.from_dict(fk, local_table=name)
                for fk in data.get("foreign_keys", [])
            ],
            comment=data.get("comment"),
        )


@dataclass
class Schema:
    """
    Point-in-time snapshot of a database schema.

    Tables keep the order in which the catalog reported them; every consumer
    iterates them in that order.
    """
    tables: Dict[str, Table] = field(default_factory=dict)
    name: Optional[str] = None

    def add_table(self, table: Table) -> None:
        """Add a table to the snapshot."""
        self.tables[table.name] = table

    def get_table(self, name: str) -> Optional[Table]:
        """Get table by name; exact match first, then case-insensitive."""
        if name in self.tables:
            return self.tables[name]
        name_lower = name.lower()
        for table_name, table in self.tables.items():
            if table_name.lower() == name_lower:
                return table
        return None

    def has_table(self, name: str) -> bool:
        return self.get_table(name) is not None

    def get_tables(self) -> List[Table]:
        return list(self.tables.values())

    def iter_columns(self) -> Iterator[Column]:
        """Iterate over every column of every table."""
        for table in self.tables.values():
            yield from table.columns

    def iter_foreign_keys(self) -> Iterator[ForeignKeyConstraint]:
        """Iterate over every foreign key of every table."""
        for table in self.tables.values():
            yield from table.foreign_keys

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "tables": [t.to_dict() for t in self.tables.values()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Schema:
        """Create from dictionary."""
        schema = cls(name=data.get("name"))
        for tdata in data.get("tables", []):
            schema.add_table(Table.from_dict(tdata))
        return schema
