"""
Tests del ejecutor de planes sobre SQLite (preview / apply / idempotencia).
"""
import pymysql
import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy import text

from catalog_sync.domain.entities.mapping import MappingConfig
from catalog_sync.domain.entities.plan import DimensionSets, Operation, Placeholder, Plan, PlanRow
from catalog_sync.infrastructure.external.catalog_store.plan_executor import PlanExecutor, classify_row_error
from catalog_sync.infrastructure.external.catalog_store.schema_probe import SchemaProbe
from catalog_sync.infrastructure.external.catalog_store.sync_service import (
    CatalogSyncService,
    CategoryItem,
    CategoryLinkService,
    SyncOptions,
)
from catalog_sync.shared.result import ErrorKind


def _count(conn, table: str) -> int:
    return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()


def _run(factory, profile, mapping, record, mode="apply", entity_id=None):
    config = MappingConfig.from_document(mapping, domain="shop.example.com", version=1)
    service = CatalogSyncService(factory)
    return service.run(profile, config, record, SyncOptions(mode=mode, entity_id=entity_id))


class TestSyncService:
    def test_preview_does_not_write(self, target_factory, target_profile, target_engine, product_mapping, product_record):
        summary = _run(target_factory, target_profile, product_mapping, product_record, mode="preview")

        assert summary["mode"] == "preview"
        assert summary["candidates"] == 9
        assert summary["applied"] == 0
        assert summary["plan"]["tables"]["ps_product_lang"][0]["key"]["id_product"] == "{{id_product}}"
        assert summary["dimensions"]["id_shops"] == [1, 2]
        with target_engine.connect() as conn:
            assert _count(conn, "ps_product") == 0

    def test_apply_writes_every_row(self, target_factory, target_profile, target_engine, product_mapping, product_record):
        summary = _run(target_factory, target_profile, product_mapping, product_record)

        assert summary["applied"] == 9
        assert summary["failed"] == 0
        assert summary["categories"]["linked"] == 1
        assert summary["categories"]["defaultsSet"] == 3
        product_id = summary["generated_ids"]["id_product"]

        with target_engine.connect() as conn:
            row = conn.execute(text("SELECT reference, id_category_default FROM ps_product")).one()
            assert tuple(row) == ("SK-100", 7)
            assert _count(conn, "ps_product_shop") == 2
            assert _count(conn, "ps_product_lang") == 2
            link = conn.execute(text("SELECT id_category, id_product, position FROM ps_category_product")).one()
            assert tuple(link) == (7, product_id, 0)

    def test_apply_is_idempotent(self, target_factory, target_profile, target_engine, product_mapping, product_record):
        first = _run(target_factory, target_profile, product_mapping, product_record)
        product_record["product"]["price"] = "25"
        second = _run(target_factory, target_profile, product_mapping, product_record)

        assert second["failed"] == 0
        assert second["generated_ids"]["id_product"] == first["generated_ids"]["id_product"]
        with target_engine.connect() as conn:
            assert _count(conn, "ps_product") == 1
            assert _count(conn, "ps_product_shop") == 2
            assert _count(conn, "ps_product_lang") == 2
            assert _count(conn, "ps_category_product") == 1
            prices = conn.execute(text("SELECT price FROM ps_product_shop")).scalars().all()
            assert [float(p) for p in prices] == [25.0, 25.0]

    def test_missing_catalog_table_keeps_sync_running(self, target_factory, target_profile, target_engine, product_mapping, product_record):
        with target_engine.begin() as conn:
            conn.execute(text("DROP TABLE ps_category_lang"))
        summary = _run(target_factory, target_profile, product_mapping, product_record)

        assert summary["applied"] == 5
        assert summary["categories"]["missing"] == 1

    def test_forced_combination_is_created_once(self, target_factory, target_profile, target_engine, product_mapping, product_record):
        product_mapping["flags"] = {"force_min_combination": True}
        first = _run(target_factory, target_profile, product_mapping, product_record)
        second = _run(target_factory, target_profile, product_mapping, product_record)

        assert first["applied"] == 12
        assert first["failed"] == 0
        assert second["failed"] == 0
        product_id = first["generated_ids"]["id_product"]
        combination_id = first["generated_ids"]["id_product_attribute"]
        assert second["generated_ids"]["id_product_attribute"] == combination_id

        with target_engine.connect() as conn:
            combo = conn.execute(text("SELECT id_product, default_on FROM ps_product_attribute")).one()
            assert tuple(combo) == (product_id, 1)
            shops = conn.execute(text(
                "SELECT id_shop, id_product, id_product_attribute, default_on "
                "FROM ps_product_attribute_shop ORDER BY id_shop"
            )).all()
            assert [tuple(r) for r in shops] == [
                (1, product_id, combination_id, 1),
                (2, product_id, combination_id, 1),
            ]


class TestRowFailures:
    def test_failed_row_does_not_abort_the_pass(self, target_conn, target_engine):
        probe = SchemaProbe(target_conn)
        plan = Plan(dimensions=DimensionSets(shops=(1,)))
        plan.add_rows([
            PlanRow(
                table="ps_product_shop", logical="product_shop", operation=Operation.UPSERT,
                columns={"price": 1.0}, key={"id_product": Placeholder("id_product"), "id_shop": 1},
            ),
            PlanRow(
                table="ps_group", logical="group", operation=Operation.UPSERT,
                columns={}, key={"id_group": 9},
            ),
        ])
        result = PlanExecutor(probe).apply(plan)

        assert result.applied == 1
        assert result.failed == 1
        assert result.errors[0]["table"] == "ps_product_shop"
        assert result.errors[0]["kind"] == "row_write"
        assert result.rows[0]["status"] == "failed"
        assert _count(target_conn, "ps_group") == 4

    def test_insert_ignore_keeps_existing_row(self, target_conn):
        probe = SchemaProbe(target_conn)
        row = PlanRow(
            table="ps_category_group", logical="category_group", operation=Operation.INSERT_IGNORE,
            columns={"id_category": 7, "id_group": 1}, key={"id_category": 7, "id_group": 1},
        )
        plan = Plan(dimensions=DimensionSets())
        plan.add_rows([row])
        executor = PlanExecutor(probe)

        assert executor.apply(plan).applied == 1
        assert executor.apply(plan).applied == 1
        assert _count(target_conn, "ps_category_group") == 1

    def test_driver_timeout_is_reported_as_timeout(self, target_conn, monkeypatch):
        executor = PlanExecutor(SchemaProbe(target_conn))
        lost = sa_exc.OperationalError(
            "INSERT INTO ps_group", {}, pymysql.err.OperationalError(2013, "Lost connection to MySQL server during query"),
        )

        def lost_connection(row, generated):
            raise lost

        monkeypatch.setattr(executor, "_write", lost_connection)
        plan = Plan(dimensions=DimensionSets())
        plan.add_rows([PlanRow(table="ps_group", logical="group", operation=Operation.UPSERT, columns={}, key={"id_group": 9})])
        result = executor.apply(plan)

        assert result.failed == 1
        assert result.errors[0]["kind"] == "timeout"


@pytest.mark.parametrize(
    "error, kind",
    [
        (TimeoutError("read timed out"), ErrorKind.TIMEOUT),
        (sa_exc.TimeoutError("QueuePool limit reached"), ErrorKind.TIMEOUT),
        (sa_exc.OperationalError("SELECT 1", {}, pymysql.err.OperationalError(3024, "max_execution_time exceeded")), ErrorKind.TIMEOUT),
        (sa_exc.OperationalError("SELECT 1", {}, pymysql.err.OperationalError(1045, "Access denied")), ErrorKind.ROW_WRITE),
        (sa_exc.IntegrityError("INSERT", {}, pymysql.err.IntegrityError(1062, "Duplicate entry")), ErrorKind.ROW_WRITE),
        (RuntimeError("lock timeout mentioned in a message"), ErrorKind.ROW_WRITE),
    ],
)
def test_classify_row_error(error, kind):
    assert classify_row_error(error) is kind


class TestCategoryLinkService:
    def test_match(self, target_factory, target_profile):
        payload = CategoryLinkService(target_factory).match(target_profile, "ps_", "Sensors & Meters")
        assert payload["best"] == 7
        assert payload["all"] == [7]
        assert payload["catalog_size"] == 3

    def test_apply_for_existing_products(self, target_factory, target_profile, target_engine):
        with target_engine.begin() as conn:
            conn.execute(text("INSERT INTO ps_product (id_product, reference) VALUES (5, 'A')"))
            conn.execute(text("INSERT INTO ps_product_shop (id_product, id_shop) VALUES (5, 1), (5, 2)"))

        payload = CategoryLinkService(target_factory).apply(
            target_profile,
            "ps_",
            [CategoryItem(product_id=5, category="Garden"), CategoryItem(product_id=6, category="Kitchen")],
        )

        assert payload["id_shops"] == [1, 2]
        assert payload["linked"] == 1
        assert payload["defaultsSet"] == 3
        assert payload["missing"] == 1
        with target_engine.connect() as conn:
            defaults = conn.execute(text("SELECT id_category_default FROM ps_product_shop")).scalars().all()
            assert defaults == [12, 12]
