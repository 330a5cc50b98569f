"""
Configuration management for the order pipeline.

Loads settings from YAML config file and provides typed access.
Secrets (search index keys, SMTP credentials, admin key) only come from
environment variables.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of shopcore package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


@dataclass
class ShopConfig:
    """Configuration for the order service."""

    # Runtime
    env: str = "development"
    database_url: str = "sqlite:///./shop.db"
    log_level: str = "INFO"

    # Order transaction
    order_max_attempts: int = 5           # Bounded retries on write conflicts
    order_retry_backoff_ms: float = 25.0  # Base backoff, doubled per attempt
    money_tolerance: float = 0.01         # Accepted rounding drift per amount
    tax_fail_open: bool = False           # Accept any tax when settings are missing

    # Outbox
    outbox_max_attempts: int = 5
    outbox_batch_size: int = 50

    # Search index (Algolia)
    search_app_id: Optional[str] = None
    search_admin_key: Optional[str] = None
    search_index_name: Optional[str] = None
    search_timeout_s: float = 10.0

    # Email (SMTP)
    email_host: Optional[str] = None
    email_port: int = 587
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    email_from: Optional[str] = None

    # Links used in customer emails
    store_url: str = "https://veronadeco.com"
    support_url: str = "https://veronadeco.com/soporte"
    track_order_url: Optional[str] = None

    # Admin endpoints
    admin_api_key: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("production", "prod")

    @property
    def orders_index(self) -> str:
        """Search index for orders: explicit name, else by environment."""
        if self.search_index_name:
            return self.search_index_name
        return "orders_prod" if self.is_production else "orders_dev"

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "ShopConfig":
        """Load configuration from YAML file, then apply environment overrides."""
        path = config_path or DEFAULT_CONFIG_PATH
        data = {}
        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}

        service_config = data.get('service', {})
        orders_config = data.get('orders', {})
        outbox_config = data.get('outbox', {})
        search_config = data.get('search', {})
        email_config = data.get('email', {})
        links_config = data.get('links', {})

        config = cls(
            env=service_config.get('env', 'development'),
            database_url=service_config.get('database_url', 'sqlite:///./shop.db'),
            log_level=service_config.get('log_level', 'INFO'),
            order_max_attempts=orders_config.get('max_attempts', 5),
            order_retry_backoff_ms=orders_config.get('retry_backoff_ms', 25.0),
            money_tolerance=orders_config.get('money_tolerance', 0.01),
            tax_fail_open=orders_config.get('tax_fail_open', False),
            outbox_max_attempts=outbox_config.get('max_attempts', 5),
            outbox_batch_size=outbox_config.get('batch_size', 50),
            search_index_name=search_config.get('orders_index'),
            search_timeout_s=search_config.get('timeout_s', 10.0),
            email_port=email_config.get('port', 587),
            store_url=links_config.get('store_url', 'https://veronadeco.com'),
            support_url=links_config.get('support_url', 'https://veronadeco.com/soporte'),
            track_order_url=links_config.get('track_order_url'),
        )
        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override fields from environment variables when they are set."""
        self.env = os.getenv("ENV", self.env)
        self.database_url = os.getenv("DATABASE_URL") or self.database_url
        self.log_level = os.getenv("LOG_LEVEL", self.log_level)
        self.search_app_id = os.getenv("ALGOLIA_APP_ID", self.search_app_id)
        self.search_admin_key = os.getenv("ALGOLIA_ADMIN_KEY", self.search_admin_key)
        self.search_index_name = os.getenv("ORDERS_SEARCH_INDEX", self.search_index_name)
        self.email_host = os.getenv("EMAIL_HOST", self.email_host)
        self.email_port = int(os.getenv("EMAIL_PORT", self.email_port))
        self.email_user = os.getenv("EMAIL_USER", self.email_user)
        self.email_password = os.getenv("EMAIL_PASSWORD", self.email_password)
        self.email_from = os.getenv("EMAIL_FROM", self.email_from)
        self.store_url = os.getenv("STORE_URL", self.store_url)
        self.support_url = os.getenv("SUPPORT_URL", self.support_url)
        self.track_order_url = os.getenv("TRACK_ORDER_URL", self.track_order_url)
        self.admin_api_key = os.getenv("ADMIN_API_KEY", self.admin_api_key)


# Global config instance
_config: Optional[ShopConfig] = None


def get_config() -> ShopConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ShopConfig.from_yaml()
    return _config


def set_config(config: ShopConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
