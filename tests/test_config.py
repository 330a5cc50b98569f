"""
Configuration loading: YAML defaults with environment overrides.
"""

from shopcore.core.config import DEFAULT_CONFIG_PATH, ShopConfig

YAML = """
service:
  env: staging
  database_url: sqlite:///./staging.db
orders:
  max_attempts: 7
  retry_backoff_ms: 10
  tax_fail_open: true
outbox:
  max_attempts: 3
search:
  orders_index: orders_staging
links:
  store_url: https://store.example
"""

ENV_VARS = (
    "ENV", "DATABASE_URL", "ALGOLIA_APP_ID", "ALGOLIA_ADMIN_KEY", "ORDERS_SEARCH_INDEX",
    "EMAIL_HOST", "EMAIL_PORT", "EMAIL_USER", "EMAIL_PASSWORD", "EMAIL_FROM",
    "STORE_URL", "SUPPORT_URL", "TRACK_ORDER_URL", "ADMIN_API_KEY",
)


class TestShopConfig:
    def _clean_env(self, monkeypatch):
        for name in ENV_VARS:
            monkeypatch.delenv(name, raising=False)

    def test_loads_yaml(self, tmp_path, monkeypatch):
        self._clean_env(monkeypatch)
        path = tmp_path / "config.yaml"
        path.write_text(YAML)

        config = ShopConfig.from_yaml(path)

        assert config.env == "staging"
        assert config.database_url == "sqlite:///./staging.db"
        assert config.order_max_attempts == 7
        assert config.order_retry_backoff_ms == 10
        assert config.tax_fail_open is True
        assert config.outbox_max_attempts == 3
        assert config.outbox_batch_size == 50
        assert config.orders_index == "orders_staging"
        assert config.store_url == "https://store.example"
        assert config.admin_api_key is None

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        self._clean_env(monkeypatch)
        config = ShopConfig.from_yaml(tmp_path / "missing.yaml")
        assert config.order_max_attempts == 5
        assert config.money_tolerance == 0.01
        assert config.tax_fail_open is False

    def test_environment_overrides(self, tmp_path, monkeypatch):
        self._clean_env(monkeypatch)
        path = tmp_path / "config.yaml"
        path.write_text(YAML)
        monkeypatch.setenv("ENV", "production")
        monkeypatch.setenv("DATABASE_URL", "postgresql://shop@db/shop")
        monkeypatch.setenv("ALGOLIA_APP_ID", "APPID")
        monkeypatch.setenv("EMAIL_PORT", "465")
        monkeypatch.setenv("ADMIN_API_KEY", "k")

        config = ShopConfig.from_yaml(path)

        assert config.is_production
        assert config.database_url == "postgresql://shop@db/shop"
        assert config.search_app_id == "APPID"
        assert config.email_port == 465
        assert config.admin_api_key == "k"

    def test_default_file_is_valid(self, monkeypatch):
        self._clean_env(monkeypatch)
        config = ShopConfig.from_yaml(DEFAULT_CONFIG_PATH)
        assert config.env == "development"
        assert config.orders_index == "orders_dev"
