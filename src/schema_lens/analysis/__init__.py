"""
Schema analysis module.

Normalizes catalog snapshots and classifies foreign keys into genuine
relationships, junction (many-to-many) links and inheritance links.

Usage:
    from schema_lens.analysis import SchemaAnalyzer

    analyzer = SchemaAnalyzer(reader, MemoryCacheStore())
    analyzer.incoming_foreign_keys("users")
"""

from schema_lens.analysis.analyzer import (
    SchemaAnalyzer,
    local_column_signature,
    remove_duplicate_foreign_keys,
)
from schema_lens.analysis.detector import RelationshipDetector
from schema_lens.analysis.normalizer import IMMUTABLE_TYPE_MAP, normalize_schema

__all__ = [
    "SchemaAnalyzer",
    "RelationshipDetector",
    "IMMUTABLE_TYPE_MAP",
    "normalize_schema",
    "local_column_signature",
    "remove_duplicate_foreign_keys",
]
