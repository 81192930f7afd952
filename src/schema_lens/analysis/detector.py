"""
Relationship Detector - classifies tables and foreign keys of a snapshot.

Detects:
1. Junction (pivot) tables realizing many-to-many relationships
2. Child relationships, where a child table's primary key is also a foreign
   key to its parent (single-table inheritance)
"""

from __future__ import annotations

import logging
from typing import Callable, List, Set

from schema_lens.models import ForeignKeyConstraint, Schema, Table, unquote_identifier

logger = logging.getLogger(__name__)


AUTOINCREMENT_ANNOTATION = "@Autoincrement"


class RelationshipDetector:
    """
    Detects junction tables and inheritance relationships.

    The detector never holds a snapshot of its own: every call asks the
    schema provider, so it always reasons about the analyzer's current
    (normalized, cached) schema.
    """

    def __init__(self, schema_provider: Callable[[], Schema]):
        """
        Initialize the detector.

        Args:
            schema_provider: Zero-argument callable returning the schema
        """
        self.schema_provider = schema_provider

    def detect_junction_tables(self, ignore_referenced_tables: bool = False) -> List[Table]:
        """
        Return the tables that are pure many-to-many link tables.

        Args:
            ignore_referenced_tables: Skip tables that are themselves the
                target of a foreign key (they carry more than a link)

        Returns:
            Junction tables in schema order
        """
        schema = self.schema_provider()
        referenced = self._referenced_table_names(schema) if ignore_referenced_tables else set()

        junctions = [
            table for table in schema.get_tables()
            if self._is_junction_table(table) and table.name not in referenced
        ]

        logger.debug(f"Detected {len(junctions)} junction tables")
        return junctions

    def get_children_relationships(self, table_name: str) -> List[ForeignKeyConstraint]:
        """
        Return foreign keys modelling inheritance from table_name.

        A foreign key is an inheritance link when its local columns are exactly
        the primary key of its local table.
        """
        schema = self.schema_provider()

        children = []
        for table in schema.get_tables():
            for fk in table.foreign_keys:
                if fk.foreign_table == table_name and self._is_inheritance_relationship(table, fk):
                    children.append(fk)

        return children

    def _is_junction_table(self, table: Table) -> bool:
        """Check the structural rules of a junction table."""
        foreign_keys = table.foreign_keys
        if len(foreign_keys) != 2:
            return False

        columns = table.columns
        if len(columns) < 2 or len(columns) > 3:
            return False

        pk_columns = table.primary_key
        if len(pk_columns) == 1 and len(columns) == 2:
            return False
        if len(pk_columns) != 1 and len(columns) == 3:
            return False

        fk_column_names: Set[str] = set()
        for fk in foreign_keys:
            if len(fk.local_columns) != 1:
                return False
            fk_column_names.add(fk.unquoted_local_columns[0])

        # Both keys must sit on distinct columns
        if len(fk_column_names) != 2:
            return False

        if len(columns) == 3:
            pk_name = unquote_identifier(pk_columns[0])
            if pk_name in fk_column_names:
                return False

            pk_column = table.get_column(pk_name)
            if pk_column is None:
                return False
            if not pk_column.autoincrement and AUTOINCREMENT_ANNOTATION not in (pk_column.comment or ""):
                return False

        return True

    def _is_inheritance_relationship(self, table: Table, fk: ForeignKeyConstraint) -> bool:
        if not table.has_primary_key:
            return False

        pk_columns = sorted(unquote_identifier(c) for c in table.primary_key)
        return sorted(fk.unquoted_local_columns) == pk_columns

    def _referenced_table_names(self, schema: Schema) -> Set[str]:
        return {fk.foreign_table for fk in schema.iter_foreign_keys()}
