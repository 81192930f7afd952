"""
Offline catalog reader for schema snapshot files.

Loads a YAML or JSON document produced by Schema.to_dict (for example with
`schema-lens snapshot`), so schemas can be analyzed without a live database.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml

from schema_lens.models import ConnectionIdentity, Schema

logger = logging.getLogger(__name__)


class SnapshotFileReader:
    """Reads a schema snapshot from a YAML or JSON file."""

    DRIVER = "snapshot"

    def __init__(self, path: Path):
        self.path = Path(path)

    def host(self) -> str:
        return ""

    def port(self) -> str:
        return ""

    def database_name(self) -> str:
        return str(self.path.resolve())

    def driver_name(self) -> str:
        return self.DRIVER

    def identity(self) -> ConnectionIdentity:
        return ConnectionIdentity(database=self.database_name(), driver=self.driver_name())

    def read_schema(self) -> Schema:
        """Load the snapshot file. Raises FileNotFoundError if it is missing."""
        with open(self.path, "r") as f:
            if self.path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}

        schema = Schema.from_dict(data)
        logger.info(f"Loaded {len(schema.tables)} tables from {self.path}")
        return schema


def write_snapshot(schema: Schema, path: Path) -> None:
    """Write a schema snapshot as YAML (or JSON for a .json path)."""
    path = Path(path)
    data = schema.to_dict()

    with open(path, "w") as f:
        if path.suffix.lower() == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Wrote snapshot of {len(schema.tables)} tables to {path}")
