# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.config.models",
#   "purpose": "Pydantic models for every configurable pipeline setting",
#   "sections": [
#     {
#       "id": "httpclientconfig",
#       "name": "HttpClientConfig",
#       "anchor": "class-httpclientconfig",
#       "kind": "class"
#     },
#     {
#       "id": "retrypolicy",
#       "name": "RetryPolicy",
#       "anchor": "class-retrypolicy",
#       "kind": "class"
#     },
#     {
#       "id": "apiconfig",
#       "name": "ApiConfig",
#       "anchor": "class-apiconfig",
#       "kind": "class"
#     },
#     {
#       "id": "downloadpolicy",
#       "name": "DownloadPolicy",
#       "anchor": "class-downloadpolicy",
#       "kind": "class"
#     },
#     {
#       "id": "catalogconfig",
#       "name": "CatalogConfig",
#       "anchor": "class-catalogconfig",
#       "kind": "class"
#     },
#     {
#       "id": "spritedownloadconfig",
#       "name": "SpriteDownloadConfig",
#       "anchor": "class-spritedownloadconfig",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pydantic v2 Configuration Models for SpriteDownload

Provides strict, typed configuration for both pipeline passes:
- HTTP client settings (timeout, pool limits, TLS)
- Retry and backoff policy shared by every fetch
- Upstream API location and list pagination
- Fetch pass policy (output directory, id range, concurrency, thumbnails)
- Catalog store settings (database path, journal mode)
- Top-level SpriteDownloadConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ============================================================================
# Network Models
# ============================================================================


class HttpClientConfig(BaseModel):
    """Configuration for HTTP client behavior."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    user_agent: str = Field(
        default="pokedex-sprites/1.0 (+https://github.com/pokedex-sprites)",
        description="User-Agent string",
    )
    timeout_s: float = Field(default=20.0, description="Per-request timeout in seconds")
    max_connections: int = Field(default=16, description="Connection pool size")
    max_keepalive_connections: int = Field(default=8, description="Idle connections kept open")
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")

    @field_validator("timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_s must be > 0")
        return v

    @field_validator("max_connections", "max_keepalive_connections")
    @classmethod
    def validate_pool(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Pool sizes must be >= 1")
        return v


class RetryPolicy(BaseModel):
    """Configuration for retry and backoff behavior."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    max_retries: int = Field(default=6, description="Retries after the first attempt")
    base_delay_ms: int = Field(default=500, description="Base delay in ms")
    rate_limit_jitter_ms: int = Field(default=250, description="Jitter bound after a 429")
    network_jitter_ms: int = Field(default=500, description="Jitter bound after a network error")
    retry_after_cap_s: Optional[float] = Field(
        default=None, description="Upper bound on honoured Retry-After waits (None = exact)"
    )

    @field_validator("max_retries", "base_delay_ms", "rate_limit_jitter_ms", "network_jitter_ms")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Retry values must be >= 0")
        return v

    @field_validator("retry_after_cap_s")
    @classmethod
    def validate_cap(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("retry_after_cap_s must be >= 0 or None")
        return v


class ApiConfig(BaseModel):
    """Upstream API location."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    base_url: str = Field(default="https://pokeapi.co/api/v2", description="API root")
    list_page_size: int = Field(default=151, description="Page size for the list endpoint")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("list_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("list_page_size must be >= 1")
        return v


# ============================================================================
# Pass Policies
# ============================================================================


class DownloadPolicy(BaseModel):
    """Configuration for the fetch pass."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    out_dir: str = Field(default="./data/images", description="Run artifact root")
    concurrency: int = Field(default=4, description="Simultaneous pipelines and connections")
    start_id: int = Field(default=1, description="First entity id (inclusive)")
    end_id: int = Field(default=151, description="Last entity id (inclusive)")
    thumb_size: int = Field(default=200, description="Thumbnail bounding box edge in px")
    thumb_quality: int = Field(default=75, description="WebP quality for thumbnails")
    candidate_delay_ms: int = Field(default=200, description="Pause after a failed candidate")
    candidate_jitter_ms: int = Field(default=200, description="Jitter on the candidate pause")
    entity_pause_ms: int = Field(default=50, description="Pause after each finished entity")
    entity_jitter_ms: int = Field(default=100, description="Jitter on the entity pause")

    @field_validator("concurrency", "start_id", "thumb_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Must be >= 1")
        return v

    @field_validator("thumb_quality")
    @classmethod
    def validate_quality(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("thumb_quality must be within 1..100")
        return v

    @field_validator(
        "candidate_delay_ms", "candidate_jitter_ms", "entity_pause_ms", "entity_jitter_ms"
    )
    @classmethod
    def validate_delays(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Delay values must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_range(self) -> "DownloadPolicy":
        if self.end_id < self.start_id:
            raise ValueError(f"end_id ({self.end_id}) must be >= start_id ({self.start_id})")
        return self

    def id_range(self) -> range:
        return range(self.start_id, self.end_id + 1)


class CatalogConfig(BaseModel):
    """Configuration for the SQLite catalog and the load pass."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    db_path: str = Field(default="./_database/pokedex.sqlite", description="SQLite file")
    meta_dir: Optional[str] = Field(
        default=None, description="Metadata directory (defaults to <out_dir>/meta)"
    )
    wal_mode: bool = Field(default=True, description="Enable WAL mode for SQLite")
    synchronous: Literal["OFF", "NORMAL", "FULL", "EXTRA"] = Field(
        default="NORMAL", description="SQLite synchronous pragma"
    )


# ============================================================================
# Top-Level Configuration
# ============================================================================


class SpriteDownloadConfig(BaseModel):
    """
    Single source of truth for SpriteDownload configuration.

    Loaded from file (YAML/JSON), overlaid with environment variables,
    and finally overridden by CLI arguments. Precedence: file < env < CLI.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", validate_assignment=True)

    run_id: Optional[str] = Field(default=None, description="Run identifier for traceability")
    http: HttpClientConfig = Field(default_factory=HttpClientConfig)
    retries: RetryPolicy = Field(default_factory=RetryPolicy)
    api: ApiConfig = Field(default_factory=ApiConfig)
    download: DownloadPolicy = Field(default_factory=DownloadPolicy)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    def resolved_meta_dir(self) -> Path:
        """Return the metadata directory the load pass should scan."""
        if self.catalog.meta_dir:
            return Path(self.catalog.meta_dir).expanduser().resolve()
        return Path(self.download.out_dir).expanduser().resolve() / "meta"

    def config_hash(self) -> str:
        """
        Compute deterministic SHA256 hash of config for reproducibility.

        Returns:
            Hex-encoded SHA256 hash of normalized config JSON.
        """
        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()
