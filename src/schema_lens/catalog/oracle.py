"""
Oracle catalog reader using oracledb.

Reads tables, column definitions and PK/FK constraints of one owner from the
Oracle data dictionary views.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from schema_lens.models import (
    Column,
    ColumnType,
    ConnectionIdentity,
    ForeignKeyConstraint,
    Schema,
    Table,
)

logger = logging.getLogger(__name__)


DEFAULT_PORT = "1521"

# Oracle type mapping
ORACLE_TYPE_MAP = {
    "NUMBER": ColumnType.DECIMAL,
    "INTEGER": ColumnType.INTEGER,
    "FLOAT": ColumnType.FLOAT,
    "BINARY_FLOAT": ColumnType.FLOAT,
    "BINARY_DOUBLE": ColumnType.FLOAT,
    "VARCHAR2": ColumnType.STRING,
    "NVARCHAR2": ColumnType.STRING,
    "CHAR": ColumnType.STRING,
    "NCHAR": ColumnType.STRING,
    "CLOB": ColumnType.TEXT,
    "NCLOB": ColumnType.TEXT,
    "LONG": ColumnType.TEXT,
    "DATE": ColumnType.DATETIME,  # Oracle DATE includes time
    "TIMESTAMP": ColumnType.DATETIME,
    "TIMESTAMP WITH TIME ZONE": ColumnType.DATETIMETZ,
    "TIMESTAMP WITH LOCAL TIME ZONE": ColumnType.DATETIMETZ,
    "RAW": ColumnType.BINARY,
    "BLOB": ColumnType.BINARY,
    "LONG RAW": ColumnType.BINARY,
    "JSON": ColumnType.JSON,
}


def map_oracle_type(data_type: str, precision: Optional[int] = None, scale: Optional[int] = None) -> ColumnType:
    """Map an Oracle data type name to a ColumnType."""
    # TIMESTAMP(6) WITH TIME ZONE -> TIMESTAMP WITH TIME ZONE
    base = data_type.upper()
    if "(" in base:
        head, _, tail = base.partition("(")
        base = (head + tail.partition(")")[2]).strip()

    mapped = ORACLE_TYPE_MAP.get(base, ColumnType.UNKNOWN)

    if base == "NUMBER" and scale == 0 and precision is not None:
        if precision <= 4:
            mapped = ColumnType.SMALLINT
        elif precision <= 9:
            mapped = ColumnType.INTEGER
        else:
            mapped = ColumnType.BIGINT

    return mapped


def parse_connection_string(connection_string: str) -> Dict[str, str]:
    """
    Split user/pwd@host:port/service into its parts.

    Missing parts come back as empty strings; the port defaults to 1521 when
    a host is given. A bare alias after "@" (user/pwd@ALIAS) is kept as the
    service and used as the DSN.
    """
    parts = connection_string.split("@", 1)
    user_pwd = parts[0]
    host_service = parts[1] if len(parts) > 1 else ""

    user, password = user_pwd.split("/", 1) if "/" in user_pwd else (user_pwd, "")

    if "/" in host_service or ":" in host_service:
        host_port, service = host_service.rsplit("/", 1) if "/" in host_service else (host_service, "")
        host, port = host_port.split(":", 1) if ":" in host_port else (host_port, DEFAULT_PORT)
    else:
        host, port, service = "", "", host_service

    return {
        "user": user,
        "password": password,
        "host": host,
        "port": port,
        "service": service,
    }


class OracleCatalogReader:
    """
    Reads a schema snapshot from the Oracle catalog.

    Uses Oracle data dictionary views:
    - ALL_TABLES
    - ALL_TAB_COLUMNS / ALL_COL_COMMENTS
    - ALL_CONSTRAINTS
    - ALL_CONS_COLUMNS
    """

    DRIVER = "oracledb"

    def __init__(self, connection_string: str, owner: Optional[str] = None):
        """
        Initialize reader with Oracle connection.

        Args:
            connection_string: Oracle connection string (user/pwd@host:port/service)
            owner: Schema owner to read (defaults to the connecting user)
        """
        self.connection_string = connection_string
        self._params = parse_connection_string(connection_string)
        self.owner = (owner or self._params["user"]).upper()
        self._conn = None

    def connect(self) -> None:
        """Establish database connection."""
        import oracledb

        params = self._params
        if params["host"]:
            dsn = oracledb.makedsn(params["host"], int(params["port"]), service_name=params["service"])
        else:
            dsn = params["service"]

        self._conn = oracledb.connect(user=params["user"], password=params["password"], dsn=dsn)
        logger.info(f"Connected to Oracle database as {params['user']}")

    def disconnect(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def host(self) -> str:
        return self._params["host"]

    def port(self) -> str:
        return self._params["port"]

    def database_name(self) -> str:
        return self._params["service"]

    def driver_name(self) -> str:
        return self.DRIVER

    def identity(self) -> ConnectionIdentity:
        return ConnectionIdentity(
            host=self.host(),
            port=self.port(),
            database=self.database_name(),
            driver=self.driver_name(),
        )

    def read_schema(self) -> Schema:
        """Read every table of the owner with columns, PK and FKs."""
        if not self._conn:
            self.connect()

        cursor = self._conn.cursor()
        try:
            table_names = self._get_table_names(cursor)
            logger.info(f"Reading {len(table_names)} tables of {self.owner}")

            columns = self._get_columns(cursor)
            primary_keys = self._get_primary_keys(cursor)
            foreign_keys = self._get_foreign_keys(cursor)
        finally:
            cursor.close()

        schema = Schema(name=self.owner)
        for table_name in table_names:
            schema.add_table(Table(
                name=table_name,
                columns=columns.get(table_name, []),
                primary_key=primary_keys.get(table_name, []),
                foreign_keys=foreign_keys.get(table_name, []),
            ))

        return schema

    def _get_table_names(self, cursor) -> List[str]:
        cursor.execute("""
            SELECT table_name
            FROM all_tables
            WHERE owner = :owner
            ORDER BY table_name
        """, owner=self.owner)

        return [row[0] for row in cursor]

    def _get_columns(self, cursor) -> Dict[str, List[Column]]:
        """Get column metadata for every table, keyed by table name."""
        cursor.execute("""
            SELECT
                c.table_name,
                c.column_name,
                c.data_type,
                c.nullable,
                c.data_length,
                c.data_precision,
                c.data_scale,
                c.data_default,
                c.identity_column,
                cc.comments
            FROM all_tab_columns c
            LEFT JOIN all_col_comments cc
                ON c.owner = cc.owner
                AND c.table_name = cc.table_name
                AND c.column_name = cc.column_name
            WHERE c.owner = :owner
            ORDER BY c.table_name, c.column_id
        """, owner=self.owner)

        columns: Dict[str, List[Column]] = {}
        for row in cursor:
            (table_name, col_name, data_type, nullable, data_length,
             precision, scale, default, identity, comment) = row

            mapped_type = map_oracle_type(data_type, precision, scale)
            columns.setdefault(table_name, []).append(Column(
                name=col_name,
                type=mapped_type,
                nullable=nullable == "Y",
                autoincrement=identity == "YES",
                default=default.strip() if default else None,
                length=data_length if mapped_type == ColumnType.STRING else None,
                precision=precision,
                scale=scale,
                comment=comment,
            ))

        return columns

    def _get_primary_keys(self, cursor) -> Dict[str, List[str]]:
        """Get primary key columns for every table."""
        cursor.execute("""
            SELECT c.table_name, cc.column_name
            FROM all_constraints c
            JOIN all_cons_columns cc
                ON c.owner = cc.owner
                AND c.constraint_name = cc.constraint_name
            WHERE c.owner = :owner
                AND c.constraint_type = 'P'
            ORDER BY c.table_name, cc.position
        """, owner=self.owner)

        primary_keys: Dict[str, List[str]] = {}
        for table_name, column_name in cursor:
            primary_keys.setdefault(table_name, []).append(column_name)
        return primary_keys

    def _get_foreign_keys(self, cursor) -> Dict[str, List[ForeignKeyConstraint]]:
        """Get foreign keys for every table, columns in constraint order."""
        cursor.execute("""
            SELECT
                c.constraint_name,
                c.table_name as local_table,
                cc.column_name as local_column,
                rc.table_name as foreign_table,
                rcc.column_name as foreign_column,
                c.delete_rule
            FROM all_constraints c
            JOIN all_cons_columns cc
                ON c.owner = cc.owner
                AND c.constraint_name = cc.constraint_name
            JOIN all_constraints rc
                ON c.r_owner = rc.owner
                AND c.r_constraint_name = rc.constraint_name
            JOIN all_cons_columns rcc
                ON rc.owner = rcc.owner
                AND rc.constraint_name = rcc.constraint_name
                AND cc.position = rcc.position
            WHERE c.owner = :owner
                AND c.constraint_type = 'R'
            ORDER BY c.table_name, c.constraint_name, cc.position
        """, owner=self.owner)

        constraints: Dict[Tuple[str, str], ForeignKeyConstraint] = {}
        for row in cursor:
            constraint_name, local_table, local_col, foreign_table, foreign_col, delete_rule = row

            fk = constraints.get((local_table, constraint_name))
            if fk is None:
                fk = ForeignKeyConstraint(
                    name=constraint_name,
                    local_table=local_table,
                    local_columns=[],
                    foreign_table=foreign_table,
                    foreign_columns=[],
                    on_delete=delete_rule if delete_rule != "NO ACTION" else None,
                )
                constraints[(local_table, constraint_name)] = fk

            fk.local_columns.append(local_col)
            fk.foreign_columns.append(foreign_col)

        foreign_keys: Dict[str, List[ForeignKeyConstraint]] = {}
        for fk in constraints.values():
            foreign_keys.setdefault(fk.local_table, []).append(fk)
        return foreign_keys
