"""
Schema analyzer - cached schema access and relationship classification.

Reads the catalog once per connection, normalizes the snapshot and answers
relationship questions (incoming foreign keys, pivot tables) on top of it.
Every cache entry is namespaced by a hash of the connection identity.
"""

from __future__ import annotations

import hashlib
import logging
from threading import Lock
from typing import Any, Dict, List, Optional, Protocol

from schema_lens.analysis.detector import RelationshipDetector
from schema_lens.analysis.normalizer import normalize_schema
from schema_lens.cache.stores import CacheStore
from schema_lens.models import ForeignKeyConstraint, Schema, Table

logger = logging.getLogger(__name__)


SCHEMA_CACHE_SUFFIX = "_immutable_schema"
PIVOT_CACHE_INFIX = "_pivottables_link_"

# Backquote cannot appear in an unquoted column name
SIGNATURE_SEPARATOR = "__`__"


class CatalogReader(Protocol):
    """Reads a schema snapshot and identifies the connection it reads from."""

    def read_schema(self) -> Schema:
        ...

    def host(self) -> str:
        ...

    def port(self) -> Any:
        ...

    def database_name(self) -> str:
        ...

    def driver_name(self) -> str:
        ...


class Detector(Protocol):
    """Classifies junction tables and inheritance links."""

    def detect_junction_tables(self, ignore_referenced_tables: bool = False) -> List[Table]:
        ...

    def get_children_relationships(self, table_name: str) -> List[ForeignKeyConstraint]:
        ...


def local_column_signature(fk: ForeignKeyConstraint) -> str:
    """Signature of a foreign key by its ordered, unquoted local columns."""
    return SIGNATURE_SEPARATOR.join(fk.unquoted_local_columns)


def remove_duplicate_foreign_keys(foreign_keys: List[ForeignKeyConstraint]) -> List[ForeignKeyConstraint]:
    """
    Drop foreign keys using the same local columns as an earlier one.

    Assumes all foreign keys come from the same local table. The first key for
    a signature wins; the foreign side is not part of the signature.
    """
    unique: Dict[str, ForeignKeyConstraint] = {}
    for fk in foreign_keys:
        key = local_column_signature(fk)
        if key not in unique:
            unique[key] = fk
        else:
            logger.debug(
                f"Dropping duplicate foreign key {fk.name} on "
                f"{fk.local_table}({', '.join(fk.local_columns)})"
            )
    return list(unique.values())


def _identity_part(value: Any) -> str:
    return "" if value is None else str(value)


class SchemaAnalyzer:
    """
    Analyzes a database schema and returns relationship hints.

    The namespace and the snapshot are memoized per instance; concurrent
    first calls are serialized so the catalog is read once.
    """

    def __init__(
        self,
        reader: CatalogReader,
        cache: CacheStore,
        detector: Optional[Detector] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            reader: Catalog reader, also providing the connection identity
            cache: Cache store shared by analyzers of the same connection
            detector: Relationship detector. Defaults to a RelationshipDetector
                working on this analyzer's cached schema.
        """
        self.reader = reader
        self.cache = cache
        self.detector = detector if detector is not None else RelationshipDetector(self.schema)

        self._cache_namespace: Optional[str] = None
        self._schema: Optional[Schema] = None
        self._lock = Lock()

    def cache_namespace(self) -> str:
        """
        Return a unique ID for the current connection.

        Used to namespace cache entries of this connection.
        """
        if self._cache_namespace is None:
            with self._lock:
                if self._cache_namespace is None:
                    self._cache_namespace = self._compute_namespace()
        return self._cache_namespace

    def _compute_namespace(self) -> str:
        raw = "-".join([
            _identity_part(self.reader.host()),
            _identity_part(self.reader.port()),
            _identity_part(self.reader.database_name()),
            _identity_part(self.reader.driver_name()),
        ])
        return hashlib.md5(raw.encode("utf-8")).hexdigest()

    def schema(self) -> Schema:
        """Return the (cached) normalized schema."""
        if self._schema is None:
            namespace = self.cache_namespace()
            with self._lock:
                if self._schema is None:
                    self._schema = self._load_schema(namespace + SCHEMA_CACHE_SUFFIX)
        return self._schema

    def _load_schema(self, cache_key: str) -> Schema:
        if self.cache.contains(cache_key):
            logger.debug(f"Schema cache hit for '{cache_key}'")
            return self.cache.fetch(cache_key)

        logger.info("Reading schema from database catalog")
        schema = self.reader.read_schema()
        normalize_schema(schema)
        self.cache.save(cache_key, schema)
        logger.info(f"Cached schema with {len(schema.tables)} tables under '{cache_key}'")
        return schema

    def pivot_tables_referencing(self, table_name: str) -> List[str]:
        """
        Return the names of junction tables linked to table_name.

        Args:
            table_name: Target table name

        Returns:
            Junction table names, in junction detection order
        """
        cache_key = self.cache_namespace() + PIVOT_CACHE_INFIX + table_name
        if self.cache.contains(cache_key):
            cached = self.cache.fetch(cache_key)
            if isinstance(cached, list):
                return list(cached)
            logger.warning(
                f"Ignoring cached pivot tables for '{table_name}': "
                f"expected list, got {type(cached).__name__}"
            )

        pivot_tables = []
        for table in self.detector.detect_junction_tables(True):
            for fk in table.foreign_keys:
                if fk.foreign_table == table_name:
                    pivot_tables.append(table.name)
                    break

        self.cache.save(cache_key, list(pivot_tables))
        return pivot_tables

    def incoming_foreign_keys(self, table_name: str) -> List[ForeignKeyConstraint]:
        """
        Return foreign keys pointing to table_name.

        Foreign keys from junction tables and from inheritance are excluded,
        and foreign keys using the same local columns are reported once.
        """
        junction_table_names = {
            table.name for table in self.detector.detect_junction_tables(True)
        }
        children_relationships = self.detector.get_children_relationships(table_name)

        fks = []
        for table in self.schema().get_tables():
            for fk in remove_duplicate_foreign_keys(table.foreign_keys):
                if fk.foreign_table != table_name:
                    continue
                if fk.local_table in junction_table_names:
                    continue
                if any(self._same_local_side(fk, child_fk) for child_fk in children_relationships):
                    continue
                fks.append(fk)

        logger.debug(f"Found {len(fks)} incoming foreign keys for {table_name}")
        return fks

    @staticmethod
    def _same_local_side(fk: ForeignKeyConstraint, other: ForeignKeyConstraint) -> bool:
        return (
            fk.local_table == other.local_table
            and fk.unquoted_local_columns == other.unquoted_local_columns
        )
