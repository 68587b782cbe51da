"""
Tests del matcher difuso de catalogo.
"""
from catalog_sync.application.services.catalog_matcher import (
    CatalogMatcher,
    and_amp_variants,
    match,
    normalize_name,
)


CATALOG = [
    {"id": 3, "label": "Sensors"},
    {"id": 7, "label": "Sensors and Meters"},
    {"id": 12, "label": "Garden"},
    {"id": 20, "label": "Garden Tools"},
    {"id": 25, "label": "Garden Tools"},
]


def test_normalize_name_removes_noise_and_punctuation():
    assert normalize_name("Product Category: Sensors &amp; Meters") == "sensors & meters"
    assert normalize_name("ACME Garden — Tools", noise=["acme"]) == "garden tools"


def test_and_amp_variants():
    assert and_amp_variants("sensors & meters") == ("sensors & meters", "sensors and meters")
    assert and_amp_variants("sensors and meters") == ("sensors and meters", "sensors & meters")


def test_ampersand_label_matches_and_entry():
    result = match("Sensors & Meters", CATALOG)
    assert result.best == 7
    assert result.tier == 1


def test_exact_tier_wins_over_containment():
    # "Sensors" coincide exacto con 3 y esta contenido en 7
    result = CatalogMatcher.from_rows(CATALOG).match("Sensors")
    assert result.best == 3
    assert result.all == [3, 7]


def test_tie_inside_tier_picks_largest_id():
    result = match("garden tools", CATALOG)
    assert result.best == 25
    assert 20 in result.all


def test_reverse_containment_is_last_tier():
    result = match("Outdoor Garden", [{"id": 12, "label": "Garden"}])
    assert result.best == 12
    assert result.tier == 3


def test_all_unions_extra_labels():
    matcher = CatalogMatcher.from_rows(CATALOG)
    result = matcher.match("Sensors and Meters", ["Garden"])
    assert result.best == 7
    assert set(result.all) >= {7, 12}


def test_no_match_returns_empty():
    result = match("Kitchen", CATALOG)
    assert result.best is None
    assert result.all == []
    assert not result.matched


def test_invalid_catalog_rows_are_dropped():
    matcher = CatalogMatcher.from_rows([{"id": 0, "label": "X"}, {"id": "a", "label": "Y"}, {"id": 4, "label": ""}, "bad"])
    assert matcher.entries == []
