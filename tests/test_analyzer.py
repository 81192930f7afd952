"""
Tests for the schema analyzer.

Covers the cache namespace, schema caching, pivot table lookup and incoming
foreign key classification.
"""

import hashlib
import threading
import time
from unittest.mock import MagicMock

import pytest

from schema_lens.analysis import SchemaAnalyzer, remove_duplicate_foreign_keys
from schema_lens.cache import MemoryCacheStore
from schema_lens.models import Column, ColumnType, ForeignKeyConstraint, Schema, Table


def fk(local_table, local_columns, foreign_table, foreign_columns=None, name=None):
    return ForeignKeyConstraint(
        name=name,
        local_table=local_table,
        local_columns=list(local_columns),
        foreign_table=foreign_table,
        foreign_columns=list(foreign_columns or ["id"]),
    )


def int_col(name):
    return Column(name=name, type=ColumnType.INTEGER, nullable=False)


def build_shop_schema():
    """
    parent <- order (genuine), parent <- child (inheritance),
    parent <-> tag through parent_tag (junction), category self-reference.
    """
    schema = Schema(name="shop")
    schema.add_table(Table(
        name="parent",
        columns=[int_col("id"), Column(name="created_at", type=ColumnType.DATETIME)],
        primary_key=["id"],
    ))
    schema.add_table(Table(
        name="child",
        columns=[int_col("id"), Column(name="born_on", type=ColumnType.DATE)],
        primary_key=["id"],
        foreign_keys=[fk("child", ["id"], "parent", name="fk_child_parent")],
    ))
    schema.add_table(Table(
        name="order",
        columns=[int_col("id"), int_col("parent_id")],
        primary_key=["id"],
        foreign_keys=[fk("order", ["parent_id"], "parent", name="fk_order_parent")],
    ))
    schema.add_table(Table(name="tag", columns=[int_col("id")], primary_key=["id"]))
    schema.add_table(Table(
        name="parent_tag",
        columns=[int_col("parent_id"), int_col("tag_id")],
        primary_key=["parent_id", "tag_id"],
        foreign_keys=[
            fk("parent_tag", ["parent_id"], "parent", name="fk_pt_parent"),
            fk("parent_tag", ["tag_id"], "tag", name="fk_pt_tag"),
        ],
    ))
    schema.add_table(Table(
        name="category",
        columns=[int_col("id"), int_col("parent_category_id")],
        primary_key=["id"],
        foreign_keys=[fk("category", ["parent_category_id"], "category", name="fk_category_parent")],
    ))
    return schema


class FakeReader:
    """Catalog reader returning a freshly built schema on every read."""

    def __init__(self, schema_factory=build_shop_schema, host="db.local", port=5432,
                 database="shop", driver="postgresql", delay=0.0):
        self.schema_factory = schema_factory
        self._host = host
        self._port = port
        self._database = database
        self._driver = driver
        self.delay = delay
        self.reads = 0

    def host(self):
        return self._host

    def port(self):
        return self._port

    def database_name(self):
        return self._database

    def driver_name(self):
        return self._driver

    def read_schema(self):
        self.reads += 1
        if self.delay:
            time.sleep(self.delay)
        return self.schema_factory()


class CountingStore(MemoryCacheStore):
    """Memory store counting writes."""

    def __init__(self):
        super().__init__()
        self.saves = 0

    def save(self, key, value):
        self.saves += 1
        super().save(key, value)


class TestCacheNamespace:
    """Tests for the connection-scoped cache namespace."""

    def test_md5_of_identity(self):
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore())
        expected = hashlib.md5(b"db.local-5432-shop-postgresql").hexdigest()
        assert analyzer.cache_namespace() == expected

    def test_memoized(self):
        reader = MagicMock()
        reader.host.return_value = "h"
        reader.port.return_value = 1
        reader.database_name.return_value = "d"
        reader.driver_name.return_value = "drv"
        analyzer = SchemaAnalyzer(reader, MemoryCacheStore(), detector=MagicMock())

        first = analyzer.cache_namespace()
        second = analyzer.cache_namespace()

        assert first == second
        assert reader.host.call_count == 1
        assert reader.driver_name.call_count == 1

    def test_same_identity_same_namespace(self):
        a = SchemaAnalyzer(FakeReader(), MemoryCacheStore())
        b = SchemaAnalyzer(FakeReader(), MemoryCacheStore())
        assert a.cache_namespace() == b.cache_namespace()

    @pytest.mark.parametrize("override", [
        {"host": "other.local"},
        {"port": 5433},
        {"database": "shop_test"},
        {"driver": "mysql"},
    ])
    def test_any_field_changes_namespace(self, override):
        base = SchemaAnalyzer(FakeReader(), MemoryCacheStore())
        other = SchemaAnalyzer(FakeReader(**override), MemoryCacheStore())
        assert base.cache_namespace() != other.cache_namespace()

    def test_missing_parts_render_empty(self):
        analyzer = SchemaAnalyzer(
            FakeReader(host=None, port=None, database="memory", driver="sqlite"),
            MemoryCacheStore(),
        )
        expected = hashlib.md5(b"--memory-sqlite").hexdigest()
        assert analyzer.cache_namespace() == expected

    def test_identity_failure_propagates(self):
        reader = MagicMock()
        reader.host.side_effect = ConnectionError("not connected")
        analyzer = SchemaAnalyzer(reader, MemoryCacheStore(), detector=MagicMock())

        with pytest.raises(ConnectionError):
            analyzer.cache_namespace()


class TestSchemaCache:
    """Tests for schema reading and caching."""

    def test_first_call_reads_and_saves_once(self):
        reader = FakeReader()
        store = CountingStore()
        analyzer = SchemaAnalyzer(reader, store)

        schema = analyzer.schema()

        assert reader.reads == 1
        assert store.saves == 1
        assert store.contains(analyzer.cache_namespace() + "_immutable_schema")
        assert analyzer.schema() is schema
        assert reader.reads == 1
        assert store.saves == 1

    def test_schema_is_normalized(self):
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore())
        schema = analyzer.schema()

        assert schema.get_table("parent").get_column("created_at").type == ColumnType.DATETIME_IMMUTABLE
        assert schema.get_table("child").get_column("born_on").type == ColumnType.DATE_IMMUTABLE
        assert schema.get_table("parent").get_column("id").type == ColumnType.INTEGER

    def test_shared_store_skips_catalog(self):
        store = CountingStore()
        first_reader = FakeReader()
        first = SchemaAnalyzer(first_reader, store).schema()

        second_reader = FakeReader()
        second = SchemaAnalyzer(second_reader, store).schema()

        assert first_reader.reads == 1
        assert second_reader.reads == 0
        assert second is first
        assert store.saves == 1

    def test_other_connection_reads_again(self):
        store = MemoryCacheStore()
        SchemaAnalyzer(FakeReader(), store).schema()

        other_reader = FakeReader(database="warehouse")
        SchemaAnalyzer(other_reader, store).schema()

        assert other_reader.reads == 1

    def test_concurrent_first_access_reads_once(self):
        reader = FakeReader(delay=0.05)
        analyzer = SchemaAnalyzer(reader, MemoryCacheStore())
        results = []

        def worker():
            results.append(analyzer.schema())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert reader.reads == 1
        assert len(results) == 8
        assert all(r is results[0] for r in results)

    def test_catalog_error_propagates(self):
        reader = FakeReader()
        reader.read_schema = MagicMock(side_effect=PermissionError("denied"))
        store = MemoryCacheStore()
        analyzer = SchemaAnalyzer(reader, store)

        with pytest.raises(PermissionError):
            analyzer.schema()
        assert len(store) == 0

    def test_cache_error_propagates(self):
        store = MagicMock()
        store.contains.side_effect = OSError("cache down")
        reader = FakeReader()
        analyzer = SchemaAnalyzer(reader, store)

        with pytest.raises(OSError):
            analyzer.schema()
        assert reader.reads == 0


class TestPivotTables:
    """Tests for pivot table lookup."""

    def test_junction_referencing_table(self):
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore())
        assert analyzer.pivot_tables_referencing("parent") == ["parent_tag"]
        assert analyzer.pivot_tables_referencing("tag") == ["parent_tag"]

    def test_two_keys_to_same_table_listed_once(self):
        def factory():
            schema = Schema()
            schema.add_table(Table(name="A", columns=[int_col("id")], primary_key=["id"]))
            schema.add_table(Table(
                name="J",
                columns=[int_col("a1_id"), int_col("a2_id")],
                primary_key=["a1_id", "a2_id"],
                foreign_keys=[fk("J", ["a1_id"], "A"), fk("J", ["a2_id"], "A")],
            ))
            return schema

        analyzer = SchemaAnalyzer(FakeReader(schema_factory=factory), MemoryCacheStore())
        assert analyzer.pivot_tables_referencing("A") == ["J"]

    def test_no_relation_caches_empty_result(self):
        store = MemoryCacheStore()
        analyzer = SchemaAnalyzer(FakeReader(), store)

        assert analyzer.pivot_tables_referencing("C") == []
        key = analyzer.cache_namespace() + "_pivottables_link_C"
        assert store.contains(key)
        assert store.fetch(key) == []

    def test_cached_list_returned_without_detection(self):
        store = MemoryCacheStore()
        detector = MagicMock()
        analyzer = SchemaAnalyzer(FakeReader(), store, detector=detector)
        store.save(analyzer.cache_namespace() + "_pivottables_link_parent", ["from_cache"])

        assert analyzer.pivot_tables_referencing("parent") == ["from_cache"]
        detector.detect_junction_tables.assert_not_called()

    def test_result_is_a_copy_of_cached_value(self):
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore())

        result = analyzer.pivot_tables_referencing("parent")
        result.append("bogus")
        assert analyzer.pivot_tables_referencing("parent") == ["parent_tag"]

        cached = analyzer.pivot_tables_referencing("parent")
        cached.append("bogus")
        assert analyzer.pivot_tables_referencing("parent") == ["parent_tag"]

    def test_malformed_cached_value_is_recomputed(self):
        store = MemoryCacheStore()
        analyzer = SchemaAnalyzer(FakeReader(), store)
        key = analyzer.cache_namespace() + "_pivottables_link_parent"
        store.save(key, "legacy-value")

        assert analyzer.pivot_tables_referencing("parent") == ["parent_tag"]
        assert store.fetch(key) == ["parent_tag"]

    def test_requests_inheritance_aware_detection(self):
        detector = MagicMock()
        detector.detect_junction_tables.return_value = []
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore(), detector=detector)

        analyzer.pivot_tables_referencing("parent")

        detector.detect_junction_tables.assert_called_once_with(True)


class TestIncomingForeignKeys:
    """Tests for incoming foreign key classification."""

    def test_excludes_junction_and_inheritance(self):
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore())

        fks = analyzer.incoming_foreign_keys("parent")

        assert [f.name for f in fks] == ["fk_order_parent"]

    def test_self_reference_included(self):
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore())

        fks = analyzer.incoming_foreign_keys("category")

        assert [f.name for f in fks] == ["fk_category_parent"]

    def test_no_incoming_keys(self):
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore())
        assert analyzer.incoming_foreign_keys("order") == []

    def test_duplicates_reported_once(self):
        def factory():
            schema = build_shop_schema()
            schema.get_table("order").add_foreign_key(
                fk("order", ["parent_id"], "parent", name="fk_order_parent_dup")
            )
            return schema

        analyzer = SchemaAnalyzer(FakeReader(schema_factory=factory), MemoryCacheStore())
        fks = analyzer.incoming_foreign_keys("parent")

        assert [f.name for f in fks] == ["fk_order_parent"]

    def test_inheritance_matched_structurally(self):
        detector = MagicMock()
        detector.detect_junction_tables.return_value = []
        # Different object, quoted column: still the child link
        detector.get_children_relationships.return_value = [fk("child", ['"id"'], "parent")]
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore(), detector=detector)

        fks = analyzer.incoming_foreign_keys("parent")

        assert sorted(f.name for f in fks) == ["fk_order_parent", "fk_pt_parent"]
        detector.get_children_relationships.assert_called_once_with("parent")

    def test_junction_exclusion_by_name(self):
        detector = MagicMock()
        detector.detect_junction_tables.return_value = [Table(name="order")]
        detector.get_children_relationships.return_value = []
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore(), detector=detector)

        fks = analyzer.incoming_foreign_keys("parent")

        assert [f.name for f in fks] == ["fk_child_parent", "fk_pt_parent"]

    def test_excluded_by_both_rules(self):
        detector = MagicMock()
        detector.detect_junction_tables.return_value = [Table(name="child")]
        detector.get_children_relationships.return_value = [fk("child", ["id"], "parent")]
        analyzer = SchemaAnalyzer(FakeReader(), MemoryCacheStore(), detector=detector)

        names = [f.name for f in analyzer.incoming_foreign_keys("parent")]

        assert "fk_child_parent" not in names
        assert names == ["fk_order_parent", "fk_pt_parent"]

    def test_order_follows_tables(self):
        def factory():
            schema = Schema()
            schema.add_table(Table(name="b", columns=[int_col("id"), int_col("t_id")], primary_key=["id"],
                                   foreign_keys=[fk("b", ["t_id"], "t", name="fk_b")]))
            schema.add_table(Table(name="t", columns=[int_col("id")], primary_key=["id"]))
            schema.add_table(Table(name="a", columns=[int_col("id"), int_col("t1"), int_col("t2")],
                                   primary_key=["id"],
                                   foreign_keys=[fk("a", ["t2"], "t", name="fk_a2"),
                                                 fk("a", ["t1"], "t", name="fk_a1")]))
            return schema

        analyzer = SchemaAnalyzer(FakeReader(schema_factory=factory), MemoryCacheStore())
        assert [f.name for f in analyzer.incoming_foreign_keys("t")] == ["fk_b", "fk_a2", "fk_a1"]


class TestRemoveDuplicates:
    """Tests for local-column signature deduplication."""

    def test_first_occurrence_wins(self):
        fks = [
            fk("t", ["a", "b"], "x", name="first"),
            fk("t", ["a", "b"], "y", name="second"),
            fk("t", ["b", "a"], "x", name="reordered"),
        ]
        assert [f.name for f in remove_duplicate_foreign_keys(fks)] == ["first", "reordered"]

    def test_signature_ignores_quoting(self):
        fks = [fk("t", ["a"], "x", name="plain"), fk("t", ["`a`"], "x", name="quoted")]
        assert [f.name for f in remove_duplicate_foreign_keys(fks)] == ["plain"]

    def test_column_boundaries_kept(self):
        fks = [fk("t", ["a_b", "c"], "x", name="one"), fk("t", ["a", "b_c"], "x", name="two")]
        assert len(remove_duplicate_foreign_keys(fks)) == 2
