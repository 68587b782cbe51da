"""
Matcher difuso de etiquetas contra el catalogo vivo (categorias, atributos).

Normalizacion:
    - &amp; -> &, guiones largos -> '-'
    - se eliminan tokens de ruido ("product category", marca, ...)
    - puntuacion (- : | / \\) -> espacio, espacios colapsados, minusculas

Variantes de ampersand: literal, "&" -> "and", "and" -> "&".

Desempate en tres niveles:
    1. una variante del catalogo es igual a una variante buscada
    2. una variante del catalogo contiene a la buscada
    3. la buscada contiene a una variante del catalogo
Dentro de un nivel gana el id mas grande; el primer nivel con candidatos
decide `best`. `all` acumula los ids que coinciden en cualquier nivel.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence


DEFAULT_NOISE_PATTERNS: tuple[str, ...] = (
    r"\bproduct\s+categories?\b",
    r"\bproduct\s+category\b",
)

_PUNCTUATION = re.compile(r"[\-–—:|/\\]+")


def normalize_name(text: Any, noise: Iterable[str] = ()) -> str:
    """
    Normaliza una etiqueta para comparacion.

    `noise` son tokens adicionales (ej: nombre de marca) que se eliminan
    como palabras completas, sin distinguir mayusculas.
    """
    t = "" if text is None else str(text)
    t = re.sub(r"&amp;", "&", t, flags=re.IGNORECASE)
    t = re.sub(r"[–—]", "-", t)
    for pattern in DEFAULT_NOISE_PATTERNS:
        t = re.sub(pattern, "", t, flags=re.IGNORECASE)
    for token in noise:
        token = str(token or "").strip()
        if token:
            words = r"\s+".join(re.escape(w) for w in token.split())
            t = re.sub(rf"\b{words}\b", "", t, flags=re.IGNORECASE)
    t = _PUNCTUATION.sub(" ", t)
    return re.sub(r"\s+", " ", t).strip().lower()


def and_amp_variants(text: str) -> tuple[str, ...]:
    """Variantes literal / '&'->'and' / 'and'->'&', sin duplicados y en orden."""
    base = re.sub(r"\s+", " ", str(text or "")).strip()
    candidates = (
        base,
        re.sub(r"\s*&\s*", " and ", base),
        re.sub(r"\band\b", " & ", base, flags=re.IGNORECASE),
    )
    out: list[str] = []
    for c in candidates:
        c = re.sub(r"\s+", " ", c).strip()
        if c and c not in out:
            out.append(c)
    return tuple(out)


@dataclass(frozen=True)
class CatalogEntry:
    """Entrada del catalogo preparada para matching (se construye por operacion)."""

    id: int
    label: str
    normalized_label: str
    variants: tuple[str, ...]

    @classmethod
    def build(cls, entry_id: Any, label: Any, noise: Iterable[str] = ()) -> Optional["CatalogEntry"]:
        try:
            cid = int(entry_id or 0)
        except (TypeError, ValueError):
            return None
        base = normalize_name(label, noise)
        if cid <= 0 or not base:
            return None
        return cls(id=cid, label=str(label), normalized_label=base, variants=and_amp_variants(base))


@dataclass
class MatchResult:
    best: Optional[int] = None
    all: list[int] = field(default_factory=list)
    tier: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.best is not None

    def to_dict(self) -> dict[str, Any]:
        return {"best": self.best, "all": list(self.all), "tier": self.tier}


def build_catalog(rows: Iterable[dict], noise: Iterable[str] = ()) -> list[CatalogEntry]:
    """[{id, label}] -> entradas; filas invalidas se descartan."""
    noise = tuple(noise)
    out: list[CatalogEntry] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        entry = CatalogEntry.build(row.get("id"), row.get("label", row.get("name")), noise)
        if entry is not None:
            out.append(entry)
    return out


def _tier(entry: CatalogEntry, needles: Sequence[str]) -> Optional[int]:
    """Nivel de coincidencia mas alto (1 mejor) o None."""
    if any(v in needles for v in entry.variants):
        return 1
    if any(n in v for v in entry.variants for n in needles):
        return 2
    if any(v in n for n in needles for v in entry.variants):
        return 3
    return None


def _needles(labels: Iterable[Any], noise: Sequence[str]) -> list[str]:
    out: list[str] = []
    for label in labels:
        base = normalize_name(label, noise)
        if not base:
            continue
        for v in and_amp_variants(base):
            if v not in out:
                out.append(v)
    return out


class CatalogMatcher:
    """
    Matcher ligado a un snapshot del catalogo.

    Uso:
        matcher = CatalogMatcher.from_rows([{"id": 7, "label": "Sensors and Meters"}])
        result = matcher.match("Sensors & Meters")   # best=7
    """

    def __init__(self, entries: Iterable[CatalogEntry], noise: Iterable[str] = ()):
        self.entries = list(entries)
        self.noise = tuple(noise)

    @classmethod
    def from_rows(cls, rows: Iterable[dict], noise: Iterable[str] = ()) -> "CatalogMatcher":
        noise = tuple(noise)
        return cls(build_catalog(rows, noise), noise)

    def _scan(self, needles: Sequence[str]) -> dict[int, int]:
        """id -> mejor nivel alcanzado."""
        tiers: dict[int, int] = {}
        if not needles:
            return tiers
        for entry in self.entries:
            tier = _tier(entry, needles)
            if tier is None:
                continue
            prev = tiers.get(entry.id)
            if prev is None or tier < prev:
                tiers[entry.id] = tier
        return tiers

    def match(self, label: Any, extra_labels: Iterable[Any] = ()) -> MatchResult:
        """
        best sale de `label`; all une las coincidencias de `label` y de
        `extra_labels` en cualquier nivel.
        """
        primary = self._scan(_needles([label], self.noise))
        result = MatchResult()
        if primary:
            best_tier = min(primary.values())
            result.tier = best_tier
            result.best = max(cid for cid, t in primary.items() if t == best_tier)

        matched = set(primary)
        extras = list(extra_labels or ())
        if extras:
            matched.update(self._scan(_needles(extras, self.noise)))
        if not matched and result.best is not None:
            matched.add(result.best)
        result.all = sorted(matched)
        return result


def match(label: Any, catalog: Iterable[dict], noise: Iterable[str] = ()) -> MatchResult:
    """Atajo: match(label, [{id, label}]) -> MatchResult."""
    return CatalogMatcher.from_rows(catalog, noise).match(label)
