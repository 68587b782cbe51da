"""
Tests del repositorio de mapeos versionados (config store en aiosqlite).
"""
import pytest

from catalog_sync.infrastructure.repositories.db_profile_repository import DbProfileRepository
from catalog_sync.infrastructure.repositories.mapping_repository import MappingRepository


DOMAIN = "shop.example.com"


@pytest.fixture
def repository(db_session):
    return MappingRepository(db_session)


class TestSave:
    async def test_first_save_creates_version_one(self, repository, product_mapping):
        row = await repository.save("WWW.Shop.Example.com", "Product", product_mapping)

        assert row.domain == DOMAIN
        assert row.page_type == "product"
        assert row.version == 1
        assert row.config["tables"]["product"]["fields"] == {"reference": "sku", "price": "price"}
        assert row.config["flags"] == {}

    async def test_save_without_bump_updates_in_place(self, repository, product_mapping):
        await repository.save(DOMAIN, "product", product_mapping)
        row = await repository.save(DOMAIN, "product", {"tables": {"product": {"fields": {"reference": "product.mpn"}}}})

        assert row.version == 1
        assert row.config["tables"]["product"]["fields"] == {"reference": "product.mpn"}
        # las tablas no enviadas se conservan
        assert row.config["tables"]["product_shop"]["settings"]["id_shops"] == [1, 2]
        assert len(await repository.list_versions(DOMAIN, "product")) == 1

    async def test_bump_creates_new_version(self, repository, product_mapping):
        await repository.save(DOMAIN, "product", product_mapping, name="inicial")
        row = await repository.save(DOMAIN, "product", {"prefix": "pr_"}, bump=True)

        assert row.version == 2
        assert row.name == "inicial"
        assert row.config["prefix"] == "pr_"
        assert row.config["tables"]["product"]["fields"]["reference"] == "sku"

        versions = await repository.list_versions(DOMAIN, "product")
        assert [v.version for v in versions] == [2, 1]
        assert (await repository.get_latest(DOMAIN, "product")).version == 2
        assert (await repository.get_version(DOMAIN, "product", 1)).config["prefix"] == "ps_"

    async def test_page_types_are_independent(self, repository, product_mapping):
        await repository.save(DOMAIN, "product", product_mapping)
        assert await repository.get_latest(DOMAIN, "category") is None


class TestTableSettings:
    async def test_save_mirrors_tables(self, repository, product_mapping):
        await repository.save(DOMAIN, "product", product_mapping)

        rows = {r["table_name"]: r for r in await repository.list_table_settings(DOMAIN, "product")}
        assert set(rows) == {"product", "product_shop", "product_lang"}
        assert rows["product_shop"]["settings"] == {"id_shops": [1, 2]}
        assert rows["product_lang"]["mapping"]["fields"]["name"] == "name"

    async def test_mirror_updates_existing_rows(self, repository, product_mapping):
        await repository.save(DOMAIN, "product", product_mapping)
        await repository.save(DOMAIN, "product", {"tables": {"product_shop": {"settings": {"id_shops": [3]}}}})

        rows = {r["table_name"]: r for r in await repository.list_table_settings(DOMAIN, "product")}
        assert rows["product_shop"]["settings"] == {"id_shops": [3]}
        assert len(rows) == 3


async def test_db_profile_roundtrip(db_session):
    profiles = DbProfileRepository(db_session)
    created = await profiles.create(name="tienda", host="db.local", database="shop", user="app", password="secret")

    profile = await profiles.get(created.id)
    assert profile.host == "db.local"
    assert profile.port == 3306
    assert profile.driver is None
    assert await profiles.get(999) is None
