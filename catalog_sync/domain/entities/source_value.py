"""
Valor de origen tipado (union etiquetada) para los registros extraidos.

El registro fuente es un arbol JSON arbitrario. En lugar de recorrerlo con
tipado dinamico, se convierte una sola vez a SourceValue y el resolvedor de
campos despacha sobre la etiqueta (kind):

- NULL, BOOL, NUMBER, STRING: hojas
- ARRAY: tupla de SourceValue
- OBJECT: dict str -> SourceValue
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional


class SourceKind(str, Enum):
    """Etiquetas del valor de origen."""
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class SourceValue:
    """Nodo inmutable del registro fuente."""

    kind: SourceKind
    value: Any = None

    @classmethod
    def from_python(cls, raw: Any) -> "SourceValue":
        """Convierte un valor Python (json.loads) en SourceValue."""
        if isinstance(raw, SourceValue):
            return raw
        if raw is None:
            return NULL
        # bool antes que int: bool es subclase de int
        if isinstance(raw, bool):
            return cls(SourceKind.BOOL, raw)
        if isinstance(raw, (int, float, Decimal)):
            return cls(SourceKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(SourceKind.STRING, raw)
        if isinstance(raw, Mapping):
            return cls(
                SourceKind.OBJECT,
                {str(k): cls.from_python(v) for k, v in raw.items()},
            )
        if isinstance(raw, (list, tuple)):
            return cls(SourceKind.ARRAY, tuple(cls.from_python(v) for v in raw))
        return cls(SourceKind.STRING, str(raw))

    def to_python(self) -> Any:
        """Convierte de vuelta a tipos Python planos."""
        if self.kind is SourceKind.OBJECT:
            return {k: v.to_python() for k, v in self.value.items()}
        if self.kind is SourceKind.ARRAY:
            return [v.to_python() for v in self.value]
        return self.value

    @property
    def is_null(self) -> bool:
        return self.kind is SourceKind.NULL

    @property
    def is_blank(self) -> bool:
        """Null o string vacio: no cuenta como valor en alternativas."""
        return self.kind is SourceKind.NULL or (self.kind is SourceKind.STRING and self.value == "")

    def child(self, segment: str) -> Optional["SourceValue"]:
        """
        Baja un nivel en el arbol.

        OBJECT: por clave. ARRAY: por indice numerico. Hojas: sin hijos.
        """
        if self.kind is SourceKind.OBJECT:
            return self.value.get(segment)
        if self.kind is SourceKind.ARRAY:
            if segment.lstrip("-").isdigit():
                idx = int(segment)
                if -len(self.value) <= idx < len(self.value):
                    return self.value[idx]
            return None
        if self.kind in (SourceKind.NULL, SourceKind.BOOL, SourceKind.NUMBER, SourceKind.STRING):
            return None
        raise ValueError(f"SourceKind desconocido: {self.kind}")

    def as_array(self) -> "SourceValue":
        """Semantica 'tratar como lista': un escalar pasa a lista de un elemento."""
        if self.kind is SourceKind.ARRAY:
            return self
        if self.kind is SourceKind.NULL:
            return SourceValue(SourceKind.ARRAY, ())
        return SourceValue(SourceKind.ARRAY, (self,))

    def items(self) -> tuple["SourceValue", ...]:
        """Elementos si es ARRAY; el propio valor si es hoja no nula."""
        if self.kind is SourceKind.ARRAY:
            return self.value
        if self.kind is SourceKind.NULL:
            return ()
        return (self,)


NULL = SourceValue(SourceKind.NULL, None)
