"""
Resolvedor de campos (FieldSpec -> valor).

Evalua una especificacion declarativa contra un registro fuente:
- constantes: "=texto", "" / '""' / "''" (string vacio), {"const": v}, {"value": v}
- rutas: "a.b.c", "$.a" (raiz), "product.x" / "item.x" (entidad), "tags[]" (como lista)
- alternativas: ["a", "b"], "a|b", {"or": [...]}, {"paths": [...]}
- concatenacion: {"and": [...]} (operandos ausentes aportan "")
- transformaciones: {"transforms": [{"op": "trim"}, ...]}

La resolucion es total: siempre devuelve un valor o None (ausente).
Nunca lanza por datos faltantes; un error de resolucion no es un error.
"""
from __future__ import annotations

import math
import re
import unicodedata
from typing import Any, Iterable, Optional

from catalog_sync.domain.entities.source_value import NULL, SourceKind, SourceValue


HTML_JOIN_SEPARATOR = "<br/>"
_HTML_JOIN_MODES = {"html", "html_join", "join_html"}
_PLACEHOLDER_STRINGS = {"undefined", "null", "nan"}


# =========================================================================
# HELPERS PUROS (TAMBIEN LOS USA EL PLANIFICADOR)
# =========================================================================

def is_blank(value: Any) -> bool:
    """None o string vacio."""
    return value is None or value == ""


def sanitize_str(value: Any) -> str:
    """Recorta y convierte 'undefined' / 'null' / 'nan' literales en ""."""
    if value is None:
        return ""
    s = str(value).strip()
    if s.lower() in _PLACEHOLDER_STRINGS:
        return ""
    return s


def to_number(value: Any) -> float:
    """
    Coercion numerica permisiva: "," -> ".", se eliminan caracteres no
    numericos y cualquier fallo devuelve 0.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    raw = str(value or "").replace(",", ".")
    cleaned = re.sub(r"[^0-9.\-]", "", raw)
    try:
        n = float(cleaned)
    except ValueError:
        return 0.0
    return n if math.isfinite(n) else 0.0


def to_int(value: Any) -> int:
    """Como to_number pero entero: se eliminan todos los no digitos."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    cleaned = re.sub(r"[^0-9\-]", "", str(value or ""))
    match = re.match(r"-?\d+", cleaned)
    return int(match.group(0)) if match else 0


def slugify(value: Any) -> str:
    """Slug ASCII en minusculas separado por guiones."""
    s = unicodedata.normalize("NFKD", "" if value is None else str(value))
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = re.sub(r"[^a-z0-9]+", "-", s.lower())
    return s.strip("-")


def strip_html(value: Any) -> str:
    s = re.sub(r"<[^>]*>", " ", "" if value is None else str(value))
    return re.sub(r"\s+", " ", s).strip()


def as_text(value: Any) -> str:
    """Texto para concatenaciones."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return " ".join(as_text(v) for v in value if not is_blank(v))
    return str(value)


def apply_transforms(value: Any, transforms: Any) -> Any:
    """
    Aplica la tuberia de transformaciones en orden.

    Operaciones desconocidas se ignoran.
    """
    if not isinstance(transforms, (list, tuple)):
        return value
    out = value
    for t in transforms:
        if isinstance(t, str):
            t = {"op": t}
        if not isinstance(t, dict):
            continue
        op = str(t.get("op") or "").strip().lower()
        text = "" if out is None else as_text(out)
        if op == "trim":
            out = text.strip()
        elif op == "lower":
            out = text.lower()
        elif op == "upper":
            out = text.upper()
        elif op in ("slug", "slugify"):
            out = slugify(text)
        elif op == "replace":
            find = str(t.get("from", t.get("find", "")) or "")
            rep = str(t.get("to", t.get("replace", "")) or "")
            out = text.replace(find, rep) if find else text
        elif op == "strip_html":
            out = strip_html(text)
        elif op == "truncate":
            n = to_int(t.get("len") or t.get("n") or t.get("max") or 0)
            out = text[:n] if n > 0 else text
    return out


# =========================================================================
# RECORRIDO DE RUTAS SOBRE SourceValue
# =========================================================================

def pick_path(node: SourceValue, path: str) -> Optional[SourceValue]:
    """
    Recorre segmentos separados por punto.

    "lista[]" aplica semantica de lista: un escalar se envuelve en una lista
    de un elemento.
    """
    if not path:
        return None
    clean = re.sub(r"^\$\.?", "", path.strip())
    if not clean:
        return node
    current: Optional[SourceValue] = node
    for segment in clean.split("."):
        if current is None:
            return None
        if segment.endswith("[]"):
            name = segment[:-2]
            if name:
                current = current.child(name)
                if current is None:
                    return None
            current = current.as_array()
            continue
        current = current.child(segment)
    return current


class FieldResolver:
    """
    Resolvedor ligado a un registro fuente.

    El registro se convierte una sola vez a SourceValue. La entidad (src) es
    record.product, o record.item, o el propio registro.

    Uso:
        resolver = FieldResolver(record)
        name = resolver.resolve(["product.name", "title"])
    """

    def __init__(self, record: Any):
        self.root = SourceValue.from_python(record if record is not None else {})
        src = NULL
        for key in ("product", "item"):
            candidate = self.root.child(key)
            if candidate is not None and candidate.kind is SourceKind.OBJECT:
                src = candidate
                break
        self.src = src if not src.is_null else self.root

    # Rutas

    def pick(self, path: Any) -> Optional[SourceValue]:
        """Resuelve una ruta con prefijos ($., meta., product., item.)."""
        if path is None:
            return None
        s = str(path).strip()
        if not s:
            return None
        if s.startswith("$."):
            return pick_path(self.root, s[2:])
        if s.startswith("meta."):
            return pick_path(self.root, s)
        if s.startswith("product."):
            return pick_path(self.src, s[len("product."):])
        if s.startswith("item."):
            return pick_path(self.src, s[len("item."):])
        node = pick_path(self.src, s)
        if node is None or node.is_blank:
            fallback = pick_path(self.root, s)
            if fallback is not None:
                return fallback
        return node

    def pick_value(self, path: Any) -> Any:
        node = self.pick(path)
        if node is None or node.is_null:
            return None
        out = node.to_python()
        return sanitize_str(out) if isinstance(out, str) else out

    # Specs

    def resolve(self, spec: Any) -> Any:
        """Valor resuelto o None (ausente)."""
        if spec is None:
            return None
        if isinstance(spec, (list, tuple)):
            return self._first_present(spec)
        if isinstance(spec, dict):
            return self._resolve_node(spec)
        if isinstance(spec, str):
            return self._resolve_string(spec)
        return spec

    def _first_present(self, specs: Iterable[Any]) -> Any:
        for candidate in specs:
            value = self.resolve(candidate)
            if not is_blank(value):
                return value
        return None

    def _resolve_string(self, spec: str) -> Any:
        if spec in ("", '""', "''"):
            return ""
        if spec.startswith("="):
            literal = spec[1:]
            return "" if literal in ('""', "''") else literal
        if "|" in spec:
            return self._first_present([p.strip() for p in spec.split("|") if p.strip()])
        return self.pick_value(spec)

    def _resolve_node(self, node: dict) -> Any:
        if "const" in node:
            return node["const"]
        if "value" in node:
            return node["value"]
        transforms = node.get("transforms", node.get("ops"))

        if "and" in node:
            operands = node["and"] if isinstance(node["and"], (list, tuple)) else [node["and"]]
            joined = "".join(as_text(self.resolve(op)) for op in operands)
            return self._finish(joined, transforms)

        if "or" in node:
            options = node["or"] if isinstance(node["or"], (list, tuple)) else [node["or"]]
            return self._finish(self._first_present(options), transforms)

        paths = node.get("paths")
        if not isinstance(paths, (list, tuple)):
            single = node.get("path", node.get("p"))
            paths = [single] if single else []

        join_mode = str(node.get("join") or node.get("combine") or "").strip().lower()
        if join_mode in _HTML_JOIN_MODES:
            parts: list[str] = []
            for p in paths:
                picked = self.pick(p)
                if picked is None:
                    continue
                for item in picked.items():
                    text = as_text(item.to_python())
                    if text.strip():
                        parts.append(text)
            return self._finish(HTML_JOIN_SEPARATOR.join(parts), transforms)

        return self._finish(self._first_present(paths), transforms)

    @staticmethod
    def _finish(value: Any, transforms: Any) -> Any:
        # Un valor ausente sigue ausente: las transformaciones no lo fabrican.
        if value is None:
            return None
        out = apply_transforms(value, transforms) if transforms else value
        return sanitize_str(out) if isinstance(out, str) else out


def resolve(record: Any, spec: Any) -> Any:
    """Atajo funcional: resolve(record, spec) -> valor | None."""
    return FieldResolver(record).resolve(spec)
