"""
Catalog reader for any database SQLAlchemy can inspect.

Uses the SQLAlchemy inspector (get_table_names, get_columns,
get_pk_constraint, get_foreign_keys) to build a schema snapshot.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy import create_engine, inspect
from sqlalchemy import types as sqltypes
from sqlalchemy.engine import Engine

from schema_lens.models import (
    Column,
    ColumnType,
    ConnectionIdentity,
    ForeignKeyConstraint,
    Schema,
    Table,
)

logger = logging.getLogger(__name__)


# Checked in order: subclasses before their bases
SQLALCHEMY_TYPE_MAP = [
    (sqltypes.BigInteger, ColumnType.BIGINT),
    (sqltypes.SmallInteger, ColumnType.SMALLINT),
    (sqltypes.Integer, ColumnType.INTEGER),
    (sqltypes.Float, ColumnType.FLOAT),
    (sqltypes.Numeric, ColumnType.DECIMAL),
    (sqltypes.Boolean, ColumnType.BOOLEAN),
    (sqltypes.Text, ColumnType.TEXT),
    (sqltypes.Uuid, ColumnType.GUID),
    (sqltypes.String, ColumnType.STRING),
    (sqltypes.LargeBinary, ColumnType.BINARY),
    (sqltypes.JSON, ColumnType.JSON),
    (sqltypes.Date, ColumnType.DATE),
    (sqltypes.Time, ColumnType.TIME),
]


def map_sqlalchemy_type(sql_type: Any) -> ColumnType:
    """Map a reflected SQLAlchemy type to a ColumnType."""
    if isinstance(sql_type, sqltypes.DateTime):
        return ColumnType.DATETIMETZ if getattr(sql_type, "timezone", False) else ColumnType.DATETIME

    for type_class, column_type in SQLALCHEMY_TYPE_MAP:
        if isinstance(sql_type, type_class):
            return column_type

    return ColumnType.UNKNOWN


class SQLAlchemyCatalogReader:
    """
    Reads a schema snapshot through a SQLAlchemy engine.

    Also provides the connection identity (host, port, database, driver)
    from the engine URL.
    """

    def __init__(self, engine: Union[Engine, str], schema: Optional[str] = None):
        """
        Initialize reader.

        Args:
            engine: SQLAlchemy engine or database URL
            schema: Database schema to inspect (default schema when None)
        """
        self.engine = create_engine(engine) if isinstance(engine, str) else engine
        self.schema = schema

    def host(self) -> str:
        return self.engine.url.host or ""

    def port(self) -> Any:
        return self.engine.url.port or ""

    def database_name(self) -> str:
        return self.engine.url.database or ""

    def driver_name(self) -> str:
        return self.engine.url.drivername

    def identity(self) -> ConnectionIdentity:
        return ConnectionIdentity(
            host=self.host(),
            port=str(self.port()),
            database=self.database_name(),
            driver=self.driver_name(),
        )

    def read_schema(self) -> Schema:
        """Inspect every table of the schema."""
        inspector = inspect(self.engine)
        table_names = inspector.get_table_names(schema=self.schema)
        logger.info(f"Inspecting {len(table_names)} tables via {self.driver_name()}")

        snapshot = Schema(name=self.schema or self.database_name() or None)
        for table_name in table_names:
            snapshot.add_table(self._read_table(inspector, table_name))

        return snapshot

    def _read_table(self, inspector, table_name: str) -> Table:
        columns = [
            self._to_column(col)
            for col in inspector.get_columns(table_name, schema=self.schema)
        ]

        pk_constraint = inspector.get_pk_constraint(table_name, schema=self.schema) or {}
        primary_key = list(pk_constraint.get("constrained_columns") or [])

        foreign_keys = [
            self._to_foreign_key(table_name, fk)
            for fk in inspector.get_foreign_keys(table_name, schema=self.schema)
        ]

        comment = None
        if inspector.dialect.supports_comments:
            comment = (inspector.get_table_comment(table_name, schema=self.schema) or {}).get("text")

        return Table(
            name=table_name,
            columns=columns,
            primary_key=primary_key,
            foreign_keys=foreign_keys,
            comment=comment,
        )

    def _to_column(self, col: Dict[str, Any]) -> Column:
        sql_type = col["type"]
        return Column(
            name=col["name"],
            type=map_sqlalchemy_type(sql_type),
            nullable=bool(col.get("nullable", True)),
            autoincrement=col.get("autoincrement") is True,
            default=col.get("default"),
            length=getattr(sql_type, "length", None),
            precision=getattr(sql_type, "precision", None),
            scale=getattr(sql_type, "scale", None),
            comment=col.get("comment"),
        )

    def _to_foreign_key(self, table_name: str, fk: Dict[str, Any]) -> ForeignKeyConstraint:
        options = fk.get("options") or {}
        return ForeignKeyConstraint(
            name=fk.get("name"),
            local_table=table_name,
            local_columns=list(fk["constrained_columns"]),
            foreign_table=fk["referred_table"],
            foreign_columns=list(fk.get("referred_columns") or []),
            on_delete=options.get("ondelete"),
            on_update=options.get("onupdate"),
        )
