"""
SpriteDownload Configuration Package

Public API for loading and validating pipeline configuration.

Example:
    from Pokedex.SpriteDownload.config import load_config

    config = load_config(
        path="pokedex.yaml",
        cli_overrides={"download": {"concurrency": 8}},
    )
    config_id = config.config_hash()
"""

from .loader import export_config_schema, load_config
from .models import (
    ApiConfig,
    CatalogConfig,
    DownloadPolicy,
    HttpClientConfig,
    RetryPolicy,
    SpriteDownloadConfig,
)

__all__ = [
    "ApiConfig",
    "CatalogConfig",
    "DownloadPolicy",
    "HttpClientConfig",
    "RetryPolicy",
    "SpriteDownloadConfig",
    "export_config_schema",
    "load_config",
]
