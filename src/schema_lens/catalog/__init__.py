"""
Catalog readers producing schema snapshots.

Each reader also identifies the connection it reads from (host, port,
database, driver), which the analyzer uses to namespace its cache.
"""

from schema_lens.catalog.inspector import SQLAlchemyCatalogReader
from schema_lens.catalog.oracle import OracleCatalogReader
from schema_lens.catalog.snapshot import SnapshotFileReader, write_snapshot

__all__ = [
    "SQLAlchemyCatalogReader",
    "OracleCatalogReader",
    "SnapshotFileReader",
    "write_snapshot",
]
