"""
Tests de la capa HTTP con casos de uso sustituidos.
"""
from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from main import create_application
from catalog_sync.api.v1.dependencies.use_case_deps import (
    get_category_use_cases,
    get_mapping_use_cases,
    get_sync_use_cases,
)
from catalog_sync.shared.exceptions.domain import ConfigurationException, MappingNotFoundException


class FakeSyncUseCases:
    def __init__(self):
        self.calls = []

    async def preview(self, domain, page_type, record, version=None, product_id=None):
        self.calls.append(("preview", domain, page_type, version, product_id))
        return {
            "mode": "preview",
            "domain": domain,
            "page_type": page_type,
            "version": 1,
            "candidates": 1,
            "skipped_tables": [{"table": "ps_stock_available", "reason": "missing_table"}],
            "plan": {"tables": {"ps_product": [{"table": "ps_product", "operation": "insert", "key": {}, "columns": {}}]}},
        }

    async def apply(self, domain, page_type, record, version=None, product_id=None):
        raise ConfigurationException("profile_not_found", "Perfil de conexion 9 no encontrado", {"profile_id": 9})


class FakeMappingUseCases:
    row = SimpleNamespace(
        id=1, domain="shop.example.com", page_type="product", version=2, name=None,
        config={"tables": {"product": {"fields": {}}}}, created_at=datetime(2024, 1, 1), updated_at=None,
    )

    async def get(self, domain, page_type, version=None):
        if version == 9:
            raise MappingNotFoundException(domain, page_type, version)
        return self.row

    async def versions(self, domain, page_type):
        return [self.row]

    async def rebuild(self, domain, page_type):
        return self.row


class BrokenCategoryUseCases:
    async def match(self, *args, **kwargs):
        raise RuntimeError("fallo inesperado")


@pytest.fixture
def fake_sync():
    return FakeSyncUseCases()


@pytest.fixture
def client(fake_sync):
    app = create_application()
    app.dependency_overrides[get_sync_use_cases] = lambda: fake_sync
    app.dependency_overrides[get_mapping_use_cases] = lambda: FakeMappingUseCases()
    app.dependency_overrides[get_category_use_cases] = lambda: BrokenCategoryUseCases()
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_preview(client, fake_sync):
    response = client.post(
        "/api/v1/sync/preview",
        json={"domain": "shop.example.com", "record": {"product": {"sku": "A"}}, "product_id": 4},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "preview"
    assert body["skipped_tables"][0]["reason"] == "missing_table"
    assert fake_sync.calls == [("preview", "shop.example.com", "product", None, 4)]


def test_configuration_error_payload(client):
    response = client.post("/api/v1/sync/apply", json={"domain": "shop.example.com", "record": {}})

    assert response.status_code == 422
    assert response.json() == {
        "error": "profile_not_found",
        "message": "Perfil de conexion 9 no encontrado",
        "details": {"profile_id": 9},
    }


def test_request_validation(client):
    response = client.post("/api/v1/sync/preview", json={"domain": "", "record": {}})
    assert response.status_code == 422


def test_mapping_endpoints(client):
    latest = client.get("/api/v1/mappings/shop.example.com/product")
    assert latest.status_code == 200
    assert latest.json()["version"] == 2

    versions = client.get("/api/v1/mappings/WWW.shop.example.com/Product/versions").json()
    assert versions["domain"] == "shop.example.com"
    assert versions["page_type"] == "product"
    assert versions["versions"][0]["version"] == 2

    rebuilt = client.post("/api/v1/mappings/shop.example.com/product/rebuild").json()
    assert rebuilt["tables"] == ["product"]


def test_mapping_not_found(client):
    response = client.get("/api/v1/mappings/shop.example.com/product/versions/9")
    assert response.status_code == 404
    assert response.json()["error"] == "MAPPING_NOT_FOUND"


def test_unexpected_error_returns_500(client):
    response = client.post("/api/v1/categories/match", json={"profile_id": 1, "label": "Tools"})
    assert response.status_code == 500
    assert response.json()["details"]["route"] == "POST /api/v1/categories/match"
