"""Config tests."""

from decimal import Decimal

from cactilia.config import Settings, get_settings


class TestSettings:
    def test_default_values(self):
        s = Settings()
        assert s.app_name == "Cactilia-Shipping"
        assert s.debug is False
        assert s.max_combination_options == 5

    def test_get_settings_cached(self):
        s1 = get_settings()
        s2 = get_settings()
        assert s1 is s2  # lru_cache

    def test_package_defaults(self):
        s = Settings()
        assert s.default_max_package_weight == Decimal("5")
        assert s.default_max_items_per_package == 10
        assert s.fallback_product_weight == Decimal("0.5")

    def test_checkout_defaults(self):
        s = Settings()
        assert s.tax_rate == Decimal("0.16")
        assert s.min_free_shipping == Decimal("500")

    def test_firestore_defaults(self):
        s = Settings()
        assert s.firestore_rules_collection == "zonas_envio"
        assert s.firebase_credentials_path == ""

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_MAX_PACKAGE_WEIGHT", "12.5")
        monkeypatch.setenv("FIRESTORE_RULES_COLLECTION", "reglas_envio")
        s = Settings()
        assert s.default_max_package_weight == Decimal("12.5")
        assert s.firestore_rules_collection == "reglas_envio"
