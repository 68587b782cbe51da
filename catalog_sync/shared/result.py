"""
Resultado tipado (Ok / Err) para las capas del motor de sincronizacion.

Las capas que hablan con la base destino (probe de esquema, lectura de
catalogo, escritura por fila) devuelven un Result en lugar de tragarse
excepciones. Solo los errores de tipo CONFIGURATION se convierten en
excepcion (ConfigurationException) en el borde de los casos de uso.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(str, Enum):
    """Taxonomia de errores del motor."""
    CONFIGURATION = "configuration"
    RESOLUTION = "resolution"
    SCHEMA_PROBE = "schema_probe"
    ROW_WRITE = "row_write"
    CATALOG_MATCH = "catalog_match"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        return Ok(fn(self.value))


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap_or(self, default: Any) -> Any:
        return default

    def map(self, fn: Callable[[Any], Any]) -> "Err":
        return self


Result = Union[Ok[T], Err]


def capture(fn: Callable[[], T], kind: ErrorKind, *, context: Optional[str] = None) -> "Result[T]":
    """
    Ejecuta fn y convierte cualquier excepcion en Err(kind).

    Util para envolver llamadas a drivers donde el tipo exacto de error
    depende del dialecto.
    """
    try:
        return Ok(fn())
    except Exception as e:
        msg = f"{context}: {e}" if context else str(e)
        return Err(kind=kind, message=msg)
