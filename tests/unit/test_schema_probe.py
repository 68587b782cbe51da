"""
Tests del probe de esquema sobre el catalogo SQLite de prueba.
"""
from sqlalchemy import Integer, Numeric, String, Text, text

from catalog_sync.infrastructure.external.catalog_store.catalog_reader import read_active_ids, read_catalog
from catalog_sync.infrastructure.external.catalog_store.schema_probe import SchemaProbe, classify_type
from catalog_sync.shared.result import Err, ErrorKind, Ok


def test_classify_type():
    assert classify_type(Integer()) == "integer"
    assert classify_type(Numeric(20, 6)) == "numeric"
    assert classify_type(String(64)) == "text"
    assert classify_type(Text()) == "text"
    assert classify_type("DATETIME") == "date"
    assert classify_type("BLOB") == "other"


def test_existing_table_columns_and_pk(target_conn):
    probe = SchemaProbe(target_conn)

    assert probe.has_table("ps_product")
    columns = probe.columns("ps_product")
    assert columns["reference"].kind == "text"
    assert columns["reference"].max_length == 64
    assert columns["price"].kind == "numeric"
    assert columns["date_add"].is_date
    assert probe.column_max_length("ps_product_lang", "name") == 128
    assert probe.primary_key("ps_product_lang") == ["id_product", "id_shop", "id_lang"]


def test_missing_table_is_fail_closed(target_conn):
    probe = SchemaProbe(target_conn)

    assert not probe.has_table("ps_nope")
    assert probe.columns("ps_nope") == {}
    assert probe.primary_key("ps_nope") == []
    assert probe.table("ps_nope") is None
    assert not probe.has_column("ps_product", "nope")
    assert probe.column_kind("ps_product", "nope") == "other"


def test_probe_errors_degrade_to_absent(target_conn, monkeypatch):
    probe = SchemaProbe(target_conn)

    def broken_inspector():
        raise RuntimeError("sin permisos")

    monkeypatch.setattr(probe, "_get_inspector", broken_inspector)

    assert isinstance(probe.probe_table("ps_product"), Err)
    assert not probe.has_table("ps_product")
    assert probe.failures
    assert probe.failures[0].kind is ErrorKind.SCHEMA_PROBE


def test_probe_results_are_memoized(target_conn, monkeypatch):
    probe = SchemaProbe(target_conn)
    assert probe.has_table("ps_shop")

    monkeypatch.setattr(probe, "probe_table", lambda table: Err(ErrorKind.SCHEMA_PROBE, "no deberia llamarse"))
    assert probe.has_table("ps_shop")


def test_read_catalog_and_active_ids(target_conn):
    probe = SchemaProbe(target_conn)

    catalog = read_catalog(probe, "ps_")
    assert isinstance(catalog, Ok)
    assert {"id": 7, "label": "Sensors and Meters"} in catalog.value

    assert read_active_ids(probe, "ps_", "shop").unwrap_or(None) == [1, 2]
    assert read_active_ids(probe, "ps_", "group").unwrap_or(None) == [1, 2, 3]

    assert isinstance(read_catalog(probe, "ps_", "feature"), Err)
    assert isinstance(read_catalog(probe, "ps_", "unknown"), Err)


def test_probe_failure_rolls_back_the_pass_transaction(target_conn, monkeypatch):
    probe = SchemaProbe(target_conn)
    target_conn.execute(text("SELECT 1"))
    assert target_conn.in_transaction()

    def broken_inspector():
        raise RuntimeError("current transaction is aborted")

    monkeypatch.setattr(probe, "_get_inspector", broken_inspector)
    assert not probe.has_table("ps_product")
    assert not target_conn.in_transaction()

    monkeypatch.undo()
    assert probe.has_table("ps_shop")
