"""
Schema Lens - relationship hints from relational database catalogs

Reads a database catalog once, caches an immutable-typed snapshot of it and
classifies foreign keys for object-relational tooling.

Features:
- Connection-scoped cache namespaces
- Temporal column types normalized to immutable variants
- Junction (many-to-many) table detection and pivot table lookup
- Incoming foreign keys without junction or inheritance links
"""

__version__ = "0.1.0"

from schema_lens.models import (
    Column,
    ColumnType,
    ConnectionIdentity,
    ForeignKeyConstraint,
    Schema,
    Table,
)

from schema_lens.analysis import (
    RelationshipDetector,
    SchemaAnalyzer,
    normalize_schema,
)

from schema_lens.cache import (
    CacheStore,
    FileCacheStore,
    MemoryCacheStore,
)

__all__ = [
    # Core models
    "Column",
    "ColumnType",
    "ConnectionIdentity",
    "ForeignKeyConstraint",
    "Schema",
    "Table",
    # Analysis
    "RelationshipDetector",
    "SchemaAnalyzer",
    "normalize_schema",
    # Cache
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
]
