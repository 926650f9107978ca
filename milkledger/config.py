"""Configuration loading for milkledger."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_URL_TEMPLATE = "https://getpantry.cloud/apiv1/pantry/{key}/basket/{basket}"


@dataclass
class VendorConfig:
    name: str
    shifts: dict[str, bool] = field(default_factory=dict)
    price: float = 0.0


def _default_vendors() -> list[VendorConfig]:
    return [
        VendorConfig(
            name="Farm",
            shifts={"Morning": True, "Evening": True},
            price=90.0,
        ),
        VendorConfig(
            name="Venkateswara Rao",
            shifts={"Morning": False, "Evening": True},
            price=90.0,
        ),
    ]


@dataclass
class StorageConfig:
    """Configuration for the local ledger cache."""

    db_path: str = "~/.milkledger/cache.db"


@dataclass
class SyncConfig:
    """Configuration for the remote blob mirror."""

    enabled: bool = True
    url_template: str = DEFAULT_URL_TEMPLATE
    basket: str = "milk"
    access_key: str = ""  # Falls back to the key stored in the local cache
    timeout: float = 30.0
    months_back: int = 1  # Retention window applied on pull
    months_forward: int = 0


@dataclass
class ApiConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class Config:
    vendors: list[VendorConfig] = field(default_factory=_default_vendors)
    storage: StorageConfig = field(default_factory=StorageConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with MILKLEDGER_ prefix."""
    return os.environ.get(f"MILKLEDGER_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Storage overrides
    if db_path := _get_env("DB_PATH"):
        config.storage.db_path = db_path

    # Sync overrides
    if access_key := _get_env("ACCESS_KEY"):
        config.sync.access_key = access_key
    if sync_enabled := _get_env("SYNC_ENABLED"):
        config.sync.enabled = sync_enabled.lower() in ("true", "1", "yes")
    if url_template := _get_env("SYNC_URL_TEMPLATE"):
        config.sync.url_template = url_template
    if basket := _get_env("SYNC_BASKET"):
        config.sync.basket = basket
    if timeout := _get_env("SYNC_TIMEOUT"):
        config.sync.timeout = float(timeout)

    # API overrides
    if host := _get_env("API_HOST"):
        config.api.host = host
    if port := _get_env("API_PORT"):
        config.api.port = int(port)

    return config


def _parse_vendors(data: list) -> list[VendorConfig]:
    """Parse vendor definitions."""
    vendors = []
    for vendor_data in data:
        vendors.append(
            VendorConfig(
                name=vendor_data["name"],
                shifts={
                    str(shift): bool(offered)
                    for shift, offered in vendor_data.get("shifts", {}).items()
                },
                price=float(vendor_data.get("price", 0.0)),
            )
        )
    return vendors


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse vendor catalog
            if "vendors" in data:
                config.vendors = _parse_vendors(data["vendors"])

            # Parse storage config
            if "storage" in data:
                storage_data = data["storage"]
                config.storage = StorageConfig(
                    db_path=storage_data.get("db_path", config.storage.db_path),
                )

            # Parse sync config
            if "sync" in data:
                sync_data = data["sync"]
                config.sync = SyncConfig(
                    enabled=sync_data.get("enabled", config.sync.enabled),
                    url_template=sync_data.get(
                        "url_template", config.sync.url_template
                    ),
                    basket=sync_data.get("basket", config.sync.basket),
                    access_key=sync_data.get("access_key", config.sync.access_key),
                    timeout=sync_data.get("timeout", config.sync.timeout),
                    months_back=sync_data.get("months_back", config.sync.months_back),
                    months_forward=sync_data.get(
                        "months_forward", config.sync.months_forward
                    ),
                )

            # Parse API config
            if "api" in data:
                api_data = data["api"]
                config.api = ApiConfig(
                    host=api_data.get("host", config.api.host),
                    port=api_data.get("port", config.api.port),
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config
