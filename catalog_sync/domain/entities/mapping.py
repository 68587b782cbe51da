"""
Documento de configuracion de mapeo (domain, page_type) ya parseado.

El documento persistido es JSON libre; aqui se expone una vista tipada
minima para el planificador sin perder las claves desconocidas (raw).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


# Claves de settings que no son columnas (listas de dimension y claves).
SETTINGS_HELPER_KEYS = frozenset(
    {"id_shops", "id_langs", "id_groups", "keys", "natural_key", "auto_insert"}
)


def positive_ints(value: Any) -> list[int]:
    """Lista de enteros positivos; descarta basura y ceros."""
    if not isinstance(value, (list, tuple)):
        return []
    out: list[int] = []
    for item in value:
        try:
            n = int(float(str(item).strip()))
        except (TypeError, ValueError):
            continue
        if n > 0:
            out.append(n)
    return out


def normalize_domain(domain: Optional[str]) -> str:
    """Dominio en minusculas y sin 'www.' inicial."""
    d = str(domain or "").strip().lower()
    if d.startswith("www."):
        d = d[4:]
    return d


@dataclass
class TableConfig:
    """Configuracion de una tabla logica (sin prefijo)."""

    name: str
    fields: dict[str, Any] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)

    def ids(self, key: str) -> list[int]:
        return positive_ints(self.settings.get(key))

    @property
    def keys(self) -> list[str]:
        raw = self.settings.get("keys")
        if isinstance(raw, (list, tuple)):
            return [str(k) for k in raw if str(k)]
        return []

    @property
    def natural_key(self) -> Optional[list[str]]:
        """None si la tabla no declara clave natural."""
        raw = self.settings.get("natural_key")
        if raw is None:
            return None
        if isinstance(raw, str):
            return [raw] if raw else []
        return [str(k) for k in raw if str(k)]

    def constant_settings(self) -> dict[str, Any]:
        """Settings que se escriben como valores fijos de columna."""
        return {k: v for k, v in self.settings.items() if k not in SETTINGS_HELPER_KEYS}


@dataclass
class MappingConfig:
    """Vista tipada del documento de mapeo."""

    domain: str
    page_type: str
    prefix: str
    tables: dict[str, TableConfig]
    flags: dict[str, Any] = field(default_factory=dict)
    version: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(
        cls,
        doc: Optional[dict],
        *,
        domain: str = "",
        page_type: str = "product",
        version: Optional[int] = None,
        default_prefix: str = "ps_",
    ) -> "MappingConfig":
        doc = doc if isinstance(doc, dict) else {}
        tables: dict[str, TableConfig] = {}
        raw_tables = doc.get("tables") if isinstance(doc.get("tables"), dict) else {}
        for name, block in raw_tables.items():
            block = block if isinstance(block, dict) else {}
            fields = block.get("fields") if isinstance(block.get("fields"), dict) else {}
            settings = block.get("settings") if isinstance(block.get("settings"), dict) else {}
            tables[str(name)] = TableConfig(name=str(name), fields=dict(fields), settings=dict(settings))
        prefix = doc.get("prefix")
        return cls(
            domain=normalize_domain(domain),
            page_type=str(page_type or "product").strip().lower(),
            prefix=str(prefix).strip() if prefix not in (None, "") else default_prefix,
            tables=tables,
            flags=dict(doc.get("flags") or {}) if isinstance(doc.get("flags"), dict) else {},
            version=version,
            raw=doc,
        )

    @property
    def profile_id(self) -> Optional[int]:
        ids = positive_ints([self.raw.get("profile_id")])
        return ids[0] if ids else None

    @property
    def strict(self) -> bool:
        return bool(self.flags.get("strict_mapping_only"))

    @property
    def force_min_combination(self) -> bool:
        return bool(self.flags.get("force_min_combination"))

    @property
    def is_category_mode(self) -> bool:
        return self.page_type in ("category", "article")

    @property
    def base_table(self) -> str:
        return "category" if self.is_category_mode else "product"

    def table(self, name: str) -> Optional[TableConfig]:
        return self.tables.get(name)

    def table_ids(self, table: str, key: str) -> list[int]:
        block = self.tables.get(table)
        return block.ids(key) if block else []

    def global_ids(self, key: str) -> list[int]:
        return positive_ints(self.raw.get(key))

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def ordered_table_names(self, allow: Optional[Iterable[str]] = None) -> list[str]:
        """Tabla base primero, luego category, luego el resto en orden de configuracion."""
        names = list(self.tables.keys())
        if allow is not None:
            allowed = set(allow)
            names = [n for n in names if n in allowed]

        def rank(n: str) -> int:
            if n == "product":
                return 0
            if n == "category":
                return 1
            return 2

        return sorted(names, key=rank)
