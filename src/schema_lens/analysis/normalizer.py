"""
Schema normalization.

Catalog readers report temporal columns with mutable value semantics. Cached
snapshots are shared between callers, so temporal columns are rewritten to
their immutable variants before a snapshot is cached or handed out.
"""

from __future__ import annotations

import logging
from typing import Dict

from schema_lens.models import Column, ColumnType, Schema

logger = logging.getLogger(__name__)


IMMUTABLE_TYPE_MAP: Dict[ColumnType, ColumnType] = {
    ColumnType.DATE: ColumnType.DATE_IMMUTABLE,
    ColumnType.DATETIME: ColumnType.DATETIME_IMMUTABLE,
    ColumnType.DATETIMETZ: ColumnType.DATETIMETZ_IMMUTABLE,
    ColumnType.TIME: ColumnType.TIME_IMMUTABLE,
}


def to_immutable_type(column: Column) -> bool:
    """
    Change the type of a column to its immutable variant if it is temporal.

    Returns True when the column was rewritten.
    """
    immutable = IMMUTABLE_TYPE_MAP.get(column.type)
    if immutable is None:
        return False
    column.type = immutable
    return True


def normalize_schema(schema: Schema) -> Schema:
    """Rewrite temporal column types of a freshly read snapshot in place."""
    rewritten = 0
    for column in schema.iter_columns():
        if to_immutable_type(column):
            rewritten += 1

    logger.debug(f"Normalized {rewritten} temporal columns to immutable types")
    return schema
