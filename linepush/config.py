"""Configuration loading from YAML + environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings


class LinePushConfig(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 8350
    log_level: str = "INFO"

    # LINE Messaging API
    line_channel_access_token: str = ""
    line_channel_secret: str = ""
    line_api_url: str = "https://api.line.me"
    line_timeout_seconds: float = 10.0

    # Asset host (image transformations)
    asset_domain: str = "cloudinary.com"
    asset_delivery_host: str = "res.cloudinary.com"
    overlay_font_family: str = "Noto Sans JP"
    compose_prefetch: bool = True
    compose_timeout_seconds: float = 15.0
    cloudinary_cloud_name: str = ""
    # Public base URL of this service; set to serve imagemaps through /api/v1/imagemap
    imagemap_proxy_base_url: str = ""

    # Message store
    database_url: str = ""
    database_pool_max: int = 5

    # HTTP API
    http_api_require_auth: bool = True
    linepush_api_key: str = ""

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        # Environment beats the YAML values passed in as init kwargs
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_yaml(cls, path: str | Path = "linepush.yaml") -> LinePushConfig:
        """Load config from YAML file, with env vars taking precedence."""
        yaml_path = Path(path)
        yaml_data: dict[str, Any] = {}

        if yaml_path.exists():
            with yaml_path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            yaml_data = _flatten_yaml(raw.get("linepush", {}))

        return cls(**yaml_data)


def _flatten_yaml(data: dict, prefix: str = "") -> dict:
    """Flatten nested YAML (``line: {api_url: ...}``) into ``line_api_url``."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(_flatten_yaml(value, full_key))
        else:
            flat[full_key] = value
    return flat
