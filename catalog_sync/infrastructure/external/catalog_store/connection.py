"""
Conexion al catalogo destino (MySQL via PyMySQL por defecto).

Cada perfil (db_profiles) produce un Engine cacheado por proceso: el pool
es el unico estado compartido entre pasadas concurrentes. Cada pasada abre
UNA conexion y la libera en todas las salidas (context manager).
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine, URL
from sqlalchemy.exc import SQLAlchemyError

from catalog_sync.shared.exceptions.base import AppException


class TargetStoreUnavailableException(AppException):
    """No se pudo abrir la conexion con el catalogo destino."""

    def __init__(self, profile_id: Any, reason: str):
        super().__init__(
            message=f"No se pudo conectar al catalogo destino (perfil {profile_id})",
            status_code=503,
            error_code="TARGET_UNAVAILABLE",
            details={"profile_id": profile_id, "reason": reason},
        )


@dataclass(frozen=True)
class TargetProfile:
    """Perfil de conexion al catalogo destino."""

    id: int
    name: str = ""
    host: str = "localhost"
    port: int = 3306
    database: str = ""
    user: str = ""
    password: str = ""
    ssl: bool = False
    driver: Optional[str] = None


def build_target_url(profile: TargetProfile, default_driver: str) -> URL:
    """URL SQLAlchemy del perfil."""
    return URL.create(
        drivername=profile.driver or default_driver,
        username=profile.user or None,
        password=profile.password or None,
        host=profile.host or None,
        port=profile.port or None,
        database=profile.database or None,
    )


def _connect_args(driver: str, ssl: bool, connect_timeout: float, operation_timeout: float) -> dict[str, Any]:
    """
    Timeouts por operacion segun el driver.

    Un timeout de lectura/escritura se manifiesta como OperationalError en la
    fila que lo sufre (se cuenta como fallo de fila).
    """
    if driver.startswith("mysql"):
        args: dict[str, Any] = {
            "connect_timeout": int(connect_timeout),
            "read_timeout": int(operation_timeout),
            "write_timeout": int(operation_timeout),
            "charset": "utf8mb4",
        }
        if ssl:
            args["ssl"] = {"check_hostname": False}
        return args
    if driver.startswith("sqlite"):
        return {"timeout": operation_timeout}
    if driver.startswith("postgresql"):
        return {"connect_timeout": int(connect_timeout)}
    return {}


class TargetStoreFactory:
    """
    Fabrica de engines por perfil.

    Uso:
        factory = TargetStoreFactory(default_driver="mysql+pymysql")
        with factory.connect(profile) as conn:
            ...
    """

    def __init__(
        self,
        *,
        default_driver: str = "mysql+pymysql",
        connect_timeout: float = 10.0,
        operation_timeout: float = 30.0,
    ) -> None:
        self._default_driver = default_driver
        self._connect_timeout = connect_timeout
        self._operation_timeout = operation_timeout
        self._engines: dict[int, Engine] = {}
        self._lock = threading.Lock()

    def register(self, profile_id: int, engine: Engine) -> None:
        """Registra un engine ya construido (tests, sqlite)."""
        with self._lock:
            self._engines[int(profile_id)] = engine

    def engine_for(self, profile: TargetProfile) -> Engine:
        with self._lock:
            engine = self._engines.get(int(profile.id))
            if engine is None:
                url = build_target_url(profile, self._default_driver)
                engine = create_engine(
                    url,
                    pool_pre_ping=True,
                    future=True,
                    connect_args=_connect_args(
                        url.drivername, profile.ssl, self._connect_timeout, self._operation_timeout
                    ),
                )
                self._engines[int(profile.id)] = engine
                logger.info(f"Engine destino creado para perfil {profile.id} ({url.render_as_string(hide_password=True)})")
            return engine

    @contextmanager
    def connect(self, profile: TargetProfile) -> Iterator[Connection]:
        """
        Abre la conexion de la pasada. Se cierra siempre, tambien en error.
        """
        engine = self.engine_for(profile)
        try:
            conn = engine.connect()
        except SQLAlchemyError as e:
            raise TargetStoreUnavailableException(profile.id, str(e)) from e
        try:
            yield conn
        finally:
            conn.close()

    def dispose_all(self) -> int:
        with self._lock:
            count = len(self._engines)
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
        return count
