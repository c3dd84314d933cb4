"""Configuration models and file/env/CLI precedence."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from Pokedex.SpriteDownload.config import (
    DownloadPolicy,
    SpriteDownloadConfig,
    export_config_schema,
    load_config,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("POKEDEX_"):
            monkeypatch.delenv(key)


def test_defaults() -> None:
    cfg = SpriteDownloadConfig()
    assert cfg.download.concurrency == 4
    assert list(cfg.download.id_range())[0] == 1
    assert list(cfg.download.id_range())[-1] == 151
    assert cfg.retries.max_retries == 6
    assert cfg.api.base_url == "https://pokeapi.co/api/v2"
    assert cfg.catalog.synchronous == "NORMAL"


@pytest.mark.parametrize(
    "download",
    [
        {"concurrency": 0},
        {"start_id": 0},
        {"start_id": 10, "end_id": 9},
        {"thumb_quality": 101},
        {"entity_pause_ms": -1},
        {"surprise": True},
    ],
)
def test_invalid_download_policy(download) -> None:
    with pytest.raises(ValidationError):
        DownloadPolicy(**download)


def test_base_url_normalised() -> None:
    cfg = SpriteDownloadConfig(api={"base_url": "https://example.test/api/"})
    assert cfg.api.base_url == "https://example.test/api"
    with pytest.raises(ValidationError):
        SpriteDownloadConfig(api={"base_url": "ftp://example.test"})


def test_precedence_file_env_cli(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "download:\n  concurrency: 2\n  end_id: 20\n  out_dir: from-file\n"
        "catalog:\n  wal_mode: false\n"
    )
    monkeypatch.setenv("POKEDEX_DOWNLOAD__CONCURRENCY", "6")
    monkeypatch.setenv("POKEDEX_DOWNLOAD__OUT_DIR", "from-env")

    cfg = load_config(str(path), cli_overrides={"download": {"out_dir": "from-cli", "end_id": None}})

    assert cfg.download.concurrency == 6
    assert cfg.download.out_dir == "from-cli"
    assert cfg.download.end_id == 20
    assert cfg.catalog.wal_mode is False


def test_json_config_file(tmp_path: Path) -> None:
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"retries": {"max_retries": 2}}))
    assert load_config(str(path)).retries.max_retries == 2


@pytest.mark.parametrize(
    ("name", "text"),
    [("cfg.toml", "x = 1"), ("cfg.yaml", "- a\n- b\n"), ("cfg.json", "{")],
)
def test_unreadable_config_files(tmp_path: Path, name: str, text: str) -> None:
    path = tmp_path / name
    path.write_text(text)
    with pytest.raises(ValueError):
        load_config(str(path))


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="not found"):
        load_config(str(tmp_path / "absent.yaml"))


def test_meta_dir_defaults_under_out_dir(tmp_path: Path) -> None:
    cfg = SpriteDownloadConfig(download={"out_dir": str(tmp_path / "images")})
    assert cfg.resolved_meta_dir() == (tmp_path / "images" / "meta").resolve()
    cfg = SpriteDownloadConfig(catalog={"meta_dir": str(tmp_path / "elsewhere")})
    assert cfg.resolved_meta_dir() == (tmp_path / "elsewhere").resolve()


def test_config_hash_is_stable() -> None:
    assert SpriteDownloadConfig().config_hash() == SpriteDownloadConfig().config_hash()
    changed = SpriteDownloadConfig(download={"concurrency": 9})
    assert changed.config_hash() != SpriteDownloadConfig().config_hash()


def test_schema_export() -> None:
    schema = export_config_schema()
    assert "download" in schema["properties"]
