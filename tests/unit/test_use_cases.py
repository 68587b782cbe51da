"""
Tests de los casos de uso (config store aiosqlite + catalogo SQLite).
"""
import asyncio

import pytest
from loguru import logger
from sqlalchemy import text

from catalog_sync.application.use_cases import CategoryUseCases, MappingUseCases, SyncUseCases
from catalog_sync.infrastructure.repositories.db_profile_repository import DbProfileRepository
from catalog_sync.infrastructure.repositories.mapping_repository import MappingRepository
from catalog_sync.shared.exceptions.domain import ConfigurationException, MappingNotFoundException


DOMAIN = "shop.example.com"


@pytest.fixture
async def stored_profile(db_session):
    return await DbProfileRepository(db_session).create(name="test", database=":memory:", driver="sqlite")


@pytest.fixture
def log_messages():
    messages = []
    handler_id = logger.add(messages.append, level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)


class TestSyncUseCases:
    async def test_preview_and_apply(self, db_session, target_factory, target_engine, stored_profile, product_mapping, product_record):
        await MappingRepository(db_session).save(DOMAIN, "product", product_mapping)
        use_cases = SyncUseCases(db_session, target_factory)

        preview = await use_cases.preview(DOMAIN, "product", product_record)
        assert preview["mode"] == "preview"
        assert preview["candidates"] == 9
        assert preview["version"] == 1

        applied = await use_cases.apply(DOMAIN, "product", product_record)
        assert applied["applied"] == 9
        with target_engine.connect() as conn:
            assert conn.execute(text("SELECT COUNT(*) FROM ps_product_lang")).scalar() == 2

    async def test_existing_product_id(self, db_session, target_factory, stored_profile, product_mapping, product_record):
        await MappingRepository(db_session).save(DOMAIN, "product", product_mapping)
        summary = await SyncUseCases(db_session, target_factory).apply(DOMAIN, "product", product_record, product_id=40)

        assert summary["generated_ids"]["id_product"] == 40
        assert summary["failed"] == 0

    async def test_unknown_mapping(self, db_session, target_factory):
        with pytest.raises(MappingNotFoundException):
            await SyncUseCases(db_session, target_factory).preview(DOMAIN, "product", {})

    async def test_mapping_without_tables(self, db_session, target_factory):
        await MappingRepository(db_session).save(DOMAIN, "product", {"profile_id": 1})
        with pytest.raises(ConfigurationException) as exc:
            await SyncUseCases(db_session, target_factory).preview(DOMAIN, "product", {})
        assert exc.value.reason == "invalid_mapping"

    async def test_missing_profile(self, db_session, target_factory, product_mapping):
        product_mapping.pop("profile_id")
        await MappingRepository(db_session).save(DOMAIN, "product", product_mapping)
        with pytest.raises(ConfigurationException) as exc:
            await SyncUseCases(db_session, target_factory).apply(DOMAIN, "product", {})
        assert exc.value.reason == "missing_profile"
        assert exc.value.status_code == 422

    async def test_profile_not_found(self, db_session, target_factory, product_mapping):
        await MappingRepository(db_session).save(DOMAIN, "product", product_mapping)
        with pytest.raises(ConfigurationException) as exc:
            await SyncUseCases(db_session, target_factory).apply(DOMAIN, "product", {})
        assert exc.value.reason == "profile_not_found"
        assert exc.value.details == {"profile_id": 1}


class TestMappingUseCases:
    async def test_save_runs_rebuild(self, db_session, product_mapping):
        row = await MappingUseCases(db_session).save(DOMAIN, "product", product_mapping)

        tables = row.config["tables"]
        assert tables["product_lang"]["fields"]["link_rewrite"]["transforms"][1] == {"op": "slugify"}
        assert tables["stock_available"]["settings"]["id_shops"] == [1, 2]

    async def test_rebuild_timeout_keeps_saved_document(self, db_session, product_mapping, log_messages, monkeypatch):
        use_cases = MappingUseCases(db_session, rebuild_timeout=0.01)

        async def slow_rebuild(domain, page_type):
            await asyncio.sleep(1)

        monkeypatch.setattr(use_cases, "rebuild", slow_rebuild)
        row = await use_cases.save(DOMAIN, "product", product_mapping)

        assert row.version == 1
        assert "stock_available" not in row.config["tables"]
        assert any("Rebuild" in m for m in log_messages)

    async def test_get_unknown_version(self, db_session):
        with pytest.raises(MappingNotFoundException) as exc:
            await MappingUseCases(db_session).get(DOMAIN, "product", 3)
        assert exc.value.details["version"] == 3


class TestCategoryUseCases:
    async def test_match(self, db_session, target_factory, stored_profile):
        result = await CategoryUseCases(db_session, target_factory).match(1, "Sensors & Meters")
        assert result["best"] == 7
        assert result["tier"] == 1

    async def test_apply_with_mapping(self, db_session, target_factory, target_engine, stored_profile, product_mapping):
        product_mapping["categories"]["noise"] = ["acme"]
        await MappingRepository(db_session).save(DOMAIN, "product", product_mapping)
        with target_engine.begin() as conn:
            conn.execute(text("INSERT INTO ps_product (id_product, reference) VALUES (8, 'B')"))

        result = await CategoryUseCases(db_session, target_factory).apply(
            [{"product_id": 8, "category": "ACME Tools"}],
            domain=DOMAIN,
        )

        assert result["id_shops"] == [1, 2]
        assert result["linked"] == 1
        assert result["items"][0]["best"] == 3
