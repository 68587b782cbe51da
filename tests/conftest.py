"""
Configuración de fixtures para pytest.

- db_session: config store en memoria (aiosqlite)
- target_engine / target_conn: catalogo destino SQLite en memoria con un
  esquema tipo PrestaShop (prefijo ps_)
"""
import pytest
from typing import AsyncGenerator, Iterator
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    create_engine,
    insert,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from catalog_sync.infrastructure.database.session import Base
from catalog_sync.infrastructure.database import models  # noqa: F401
from catalog_sync.infrastructure.external.catalog_store.connection import TargetProfile, TargetStoreFactory


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TARGET_PROFILE_ID = 1

# Catalogo de categorias sembrado en ps_category_lang
CATEGORY_ROWS = [
    (3, "Tools"),
    (7, "Sensors and Meters"),
    (12, "Garden"),
]


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Fixture que proporciona una sesión de base de datos para tests.
    Crea una base de datos en memoria para cada test.
    """
    # Crear engine de prueba
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    # Crear tablas
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Crear session factory
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    # Proporcionar sesión
    async with async_session() as session:
        yield session

    # Limpiar
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


def build_target_metadata(prefix: str = "ps_") -> MetaData:
    """Subconjunto del esquema PrestaShop usado por los tests."""
    metadata = MetaData()
    Table(
        f"{prefix}product", metadata,
        Column("id_product", Integer, primary_key=True, autoincrement=True),
        Column("reference", String(64)),
        Column("supplier_reference", String(64)),
        Column("price", Numeric(20, 6)),
        Column("active", Integer),
        Column("id_tax_rules_group", Integer),
        Column("id_category_default", Integer),
        Column("id_shop_default", Integer),
        Column("date_add", DateTime),
        Column("date_upd", DateTime),
    )
    Table(
        f"{prefix}product_shop", metadata,
        Column("id_product", Integer, primary_key=True, autoincrement=False),
        Column("id_shop", Integer, primary_key=True, autoincrement=False),
        Column("price", Numeric(20, 6)),
        Column("active", Integer),
        Column("id_category_default", Integer),
        Column("date_add", DateTime),
        Column("date_upd", DateTime),
    )
    Table(
        f"{prefix}product_lang", metadata,
        Column("id_product", Integer, primary_key=True, autoincrement=False),
        Column("id_shop", Integer, primary_key=True, autoincrement=False),
        Column("id_lang", Integer, primary_key=True, autoincrement=False),
        Column("name", String(128)),
        Column("description", Text),
        Column("description_short", Text),
        Column("link_rewrite", String(128)),
    )
    Table(
        f"{prefix}product_attribute", metadata,
        Column("id_product_attribute", Integer, primary_key=True, autoincrement=True),
        Column("id_product", Integer),
        Column("reference", String(64)),
        Column("minimal_quantity", Integer),
        Column("default_on", Integer),
    )
    Table(
        f"{prefix}product_attribute_shop", metadata,
        Column("id_product_attribute", Integer, primary_key=True, autoincrement=False),
        Column("id_shop", Integer, primary_key=True, autoincrement=False),
        Column("id_product", Integer),
        Column("minimal_quantity", Integer),
        Column("default_on", Integer),
    )
    Table(
        f"{prefix}category", metadata,
        Column("id_category", Integer, primary_key=True, autoincrement=True),
        Column("id_parent", Integer),
        Column("active", Integer),
        Column("position", Integer),
        Column("id_shop_default", Integer),
        Column("date_add", DateTime),
        Column("date_upd", DateTime),
    )
    Table(
        f"{prefix}category_lang", metadata,
        Column("id_category", Integer, primary_key=True, autoincrement=False),
        Column("id_shop", Integer, primary_key=True, autoincrement=False),
        Column("id_lang", Integer, primary_key=True, autoincrement=False),
        Column("name", String(128)),
        Column("link_rewrite", String(128)),
    )
    Table(
        f"{prefix}category_product", metadata,
        Column("id_category", Integer, primary_key=True, autoincrement=False),
        Column("id_product", Integer, primary_key=True, autoincrement=False),
        Column("position", Integer),
    )
    Table(
        f"{prefix}category_group", metadata,
        Column("id_category", Integer, primary_key=True, autoincrement=False),
        Column("id_group", Integer, primary_key=True, autoincrement=False),
    )
    Table(
        f"{prefix}shop", metadata,
        Column("id_shop", Integer, primary_key=True, autoincrement=False),
        Column("active", Integer),
    )
    Table(
        f"{prefix}group", metadata,
        Column("id_group", Integer, primary_key=True, autoincrement=False),
    )
    return metadata


@pytest.fixture(scope="function")
def target_engine() -> Iterator[Engine]:
    """
    Catalogo destino en memoria.

    StaticPool + check_same_thread=False: los casos de uso ejecutan el
    trabajo bloqueante en asyncio.to_thread.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata = build_target_metadata()
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(insert(metadata.tables["ps_shop"]), [
            {"id_shop": 1, "active": 1},
            {"id_shop": 2, "active": 1},
            {"id_shop": 3, "active": 0},
        ])
        conn.execute(insert(metadata.tables["ps_group"]), [
            {"id_group": 1}, {"id_group": 2}, {"id_group": 3},
        ])
        conn.execute(insert(metadata.tables["ps_category_lang"]), [
            {"id_category": cid, "id_shop": 1, "id_lang": 1, "name": name, "link_rewrite": name.lower()}
            for cid, name in CATEGORY_ROWS
        ])
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def target_conn(target_engine: Engine) -> Iterator[Connection]:
    """Conexion de una pasada sobre el catalogo destino."""
    conn = target_engine.connect()
    yield conn
    conn.close()


@pytest.fixture(scope="function")
def target_profile() -> TargetProfile:
    return TargetProfile(id=TARGET_PROFILE_ID, name="test", database=":memory:", driver="sqlite")


@pytest.fixture(scope="function")
def target_factory(target_engine: Engine) -> TargetStoreFactory:
    """Fabrica con el engine SQLite ya registrado para el perfil de test."""
    factory = TargetStoreFactory(default_driver="sqlite")
    factory.register(TARGET_PROFILE_ID, target_engine)
    return factory


@pytest.fixture
def product_mapping() -> dict:
    """Mapeo de producto: 2 tiendas, 1 idioma, categorias por etiqueta."""
    return {
        "profile_id": TARGET_PROFILE_ID,
        "prefix": "ps_",
        "categories": {"label": ["product.category"], "labels": ["product.categories"]},
        "tables": {
            "product": {
                "fields": {"reference": "sku", "price": "price"},
                "settings": {},
            },
            "product_shop": {
                "fields": {"price": "price"},
                "settings": {"id_shops": [1, 2]},
            },
            "product_lang": {
                "fields": {"name": "name", "description": "description"},
                "settings": {"id_langs": [1]},
            },
        },
    }


@pytest.fixture
def product_record() -> dict:
    return {
        "url": "https://shop.example.com/p/sensor-kit",
        "product": {
            "name": "Sensor Kit Pro",
            "sku": "SK-100",
            "price": "19,90",
            "description": "<p>Kit completo</p>",
            "category": "Sensors & Meters",
        },
    }
