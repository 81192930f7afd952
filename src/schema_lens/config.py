"""
Analyzer configuration loaded from YAML.

Example file:

    connection:
      url: postgresql+psycopg2://app@db.internal:5432/shop
      schema: public
    cache:
      backend: file
      directory: .schema_lens_cache
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from schema_lens.analysis import SchemaAnalyzer
from schema_lens.cache import FileCacheStore, MemoryCacheStore

logger = logging.getLogger(__name__)


CACHE_BACKENDS = ("memory", "file")
DEFAULT_CACHE_DIR = Path(".schema_lens_cache")


class ConfigError(ValueError):
    """Raised for an invalid analyzer configuration."""


@dataclass
class AnalyzerConfig:
    """Where to read the catalog from and where to cache results."""
    url: Optional[str] = None
    db_schema: Optional[str] = None
    oracle: Optional[str] = None
    owner: Optional[str] = None
    snapshot: Optional[Path] = None
    cache_backend: str = "memory"
    cache_dir: Path = field(default_factory=lambda: DEFAULT_CACHE_DIR)

    def __post_init__(self):
        if isinstance(self.snapshot, str):
            self.snapshot = Path(self.snapshot)
        if isinstance(self.cache_dir, str):
            self.cache_dir = Path(self.cache_dir)

    def validate(self) -> None:
        """Check that exactly one catalog source and a known backend are set."""
        sources = [s for s in (self.url, self.oracle, self.snapshot) if s]
        if len(sources) != 1:
            raise ConfigError(
                "Exactly one of connection.url, connection.oracle or "
                f"connection.snapshot must be set (got {len(sources)})"
            )
        if self.cache_backend not in CACHE_BACKENDS:
            raise ConfigError(
                f"Unknown cache backend '{self.cache_backend}', "
                f"expected one of {', '.join(CACHE_BACKENDS)}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AnalyzerConfig:
        """Create from the parsed YAML document."""
        connection = data.get("connection") or {}
        cache = data.get("cache") or {}
        if not isinstance(connection, dict) or not isinstance(cache, dict):
            raise ConfigError("'connection' and 'cache' must be mappings")

        return cls(
            url=connection.get("url"),
            db_schema=connection.get("schema"),
            oracle=connection.get("oracle"),
            owner=connection.get("owner"),
            snapshot=connection.get("snapshot"),
            cache_backend=cache.get("backend", "memory"),
            cache_dir=cache.get("directory", DEFAULT_CACHE_DIR),
        )


def load_config(path: Path) -> AnalyzerConfig:
    """Load configuration from a YAML file. A missing file yields defaults."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Config file not found: {path}")
        return AnalyzerConfig()

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    logger.info(f"Loaded config from {path}")
    return AnalyzerConfig.from_dict(data)


def build_reader(config: AnalyzerConfig):
    """Create the catalog reader the configuration points at."""
    if config.snapshot:
        from schema_lens.catalog import SnapshotFileReader
        return SnapshotFileReader(config.snapshot)
    if config.oracle:
        from schema_lens.catalog import OracleCatalogReader
        return OracleCatalogReader(config.oracle, owner=config.owner)

    from schema_lens.catalog import SQLAlchemyCatalogReader
    return SQLAlchemyCatalogReader(config.url, schema=config.db_schema)


def build_cache(config: AnalyzerConfig):
    """Create the cache store the configuration points at."""
    if config.cache_backend == "file":
        return FileCacheStore(config.cache_dir)
    return MemoryCacheStore()


def build_analyzer(config: AnalyzerConfig) -> SchemaAnalyzer:
    """Validate the configuration and wire reader, cache and analyzer."""
    config.validate()
    return SchemaAnalyzer(build_reader(config), build_cache(config))
