"""
Tests de merge / normalizacion / rebuild de documentos de mapeo.
"""
from catalog_sync.application.services.config_merge import (
    PRODUCT_LANG_DEFAULTS,
    merge_table_config,
    normalize_fields_only,
    promote_default,
    rebuild_config,
)


class TestMerge:
    def test_fields_are_replaced_not_merged(self):
        prev = {"tables": {"product": {"fields": {"reference": "sku", "price": "price"}}}}
        next_ = {"tables": {"product": {"fields": {"reference": "product.mpn"}}}}

        out = merge_table_config(prev, next_)
        assert out["tables"]["product"]["fields"] == {"reference": "product.mpn"}

    def test_empty_fields_keep_previous_map(self):
        prev = {"tables": {"product": {"fields": {"reference": "sku"}}}}
        next_ = {"tables": {"product": {"fields": {}, "settings": {"active": 1}}}}

        out = merge_table_config(prev, next_)
        assert out["tables"]["product"]["fields"] == {"reference": "sku"}
        assert out["tables"]["product"]["settings"] == {"active": 1}

    def test_settings_are_merged_shallow(self):
        prev = {"tables": {"product_shop": {"settings": {"id_shops": [1], "active": 1}}}}
        next_ = {"tables": {"product_shop": {"settings": {"id_shops": [1, 2]}}}}

        settings = merge_table_config(prev, next_)["tables"]["product_shop"]["settings"]
        assert settings == {"id_shops": [1, 2], "active": 1}

    def test_top_level_keys_and_objects(self):
        out = merge_table_config({"prefix": "ps_", "profile_id": 1}, {"prefix": "pr_"})
        assert out["prefix"] == "pr_"
        assert out["profile_id"] == 1
        assert out["flags"] == {}
        assert out["image_setting"] == {}

    def test_arguments_are_not_mutated(self):
        prev = {"tables": {"product": {"fields": {"a": "x"}, "settings": {"k": 1}}}}
        next_ = {"tables": {"product": {"settings": {"k": 2}}}}
        merge_table_config(prev, next_)
        assert prev["tables"]["product"]["settings"] == {"k": 1}


class TestNormalize:
    def test_nested_fields_fold_and_top_level_wins(self):
        cfg = {"tables": {"product": {
            "mapping": {"fields": {"reference": "sku", "ean13": "ean"}},
            "fields": {"reference": "product.mpn"},
        }}}
        block = normalize_fields_only(cfg)["tables"]["product"]
        assert block["fields"] == {"reference": "product.mpn", "ean13": "ean"}
        assert "mapping" not in block

    def test_empty_constant_markers(self):
        cfg = {"tables": {"product": {"fields": {"a": "=", "b": '""', "c": "''", "d": "=x"}}}}
        fields = normalize_fields_only(cfg)["tables"]["product"]["fields"]
        assert fields == {"a": "", "b": "", "c": "", "d": "=x"}

    def test_defaults_promoted_without_overwriting(self):
        cfg = {
            "defaults": {"ignored": True},
            "tables": {"product": {
                "fields": {"active": "product.active"},
                "mapping": {"defaults": {"active": 1, "id_tax_rules_group": 2}},
                "defaults": {"condition": ""},
                "setting_image": {"x": 1},
            }},
        }
        out = normalize_fields_only(cfg)
        block = out["tables"]["product"]
        assert block["fields"] == {"active": "product.active", "id_tax_rules_group": "=2", "condition": ""}
        assert "defaults" not in out
        assert "setting_image" not in block

    def test_promote_default(self):
        assert promote_default(5) == "=5"
        assert promote_default("") == ""
        assert promote_default(None) == ""


class TestRebuild:
    def test_rows_override_fields_and_merge_settings(self):
        config = {"id_shops": [9], "tables": {"product": {"fields": {"reference": "sku"}, "settings": {"a": 1}}}}
        rows = [{
            "table_name": "product",
            "settings": {"b": 2},
            "mapping": {"fields": {"price": "price"}, "defaults": {"reference": "X"}},
        }]
        out = rebuild_config(config, rows)

        product = out["tables"]["product"]
        assert product["fields"]["price"] == "price"
        # una constante reemplaza a un path previo
        assert product["fields"]["reference"] == "=X"
        assert product["settings"] == {"a": 1, "b": 2}
        assert "id_shops" not in out
        assert out["flags"] == {}

    def test_shop_and_lang_sets_propagate(self):
        rows = [
            {"table_name": "product_shop", "settings": {"id_shops": [1, 2]}},
            {"table_name": "product_lang", "settings": {"id_langs": [1]}},
        ]
        tables = rebuild_config({}, rows)["tables"]

        assert tables["stock_available"]["settings"]["id_shops"] == [1, 2]
        assert tables["product_lang"]["settings"]["id_shops"] == [1, 2]
        assert tables["image_lang"]["settings"]["id_langs"] == [1]

    def test_group_tables_drop_empty_constants(self):
        rows = [{"table_name": "category_group", "mapping": {"fields": {"id_group": "=", "id_category": "=3"}}}]
        fields = rebuild_config({}, rows)["tables"]["category_group"]["fields"]
        assert fields == {"id_category": "=3"}

    def test_product_lang_defaults_fill_gaps(self):
        rows = [{"table_name": "product_lang", "mapping": {"fields": {"name": "product.title"}}}]
        fields = rebuild_config({}, rows)["tables"]["product_lang"]["fields"]

        assert fields["name"] == "product.title"
        assert fields["link_rewrite"] == PRODUCT_LANG_DEFAULTS["link_rewrite"]
        assert fields["description"]["join"] == "html"

    def test_image_setting_copy_is_removed(self):
        config = {"tables": {"image": {"fields": {}, "setting_image": {"w": 1}}}}
        assert "setting_image" not in rebuild_config(config, [])["tables"]["image"]
