"""Typer CLI surface."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from sprite_fakes import API_BASE, make_png, sprite_url
from typer.testing import CliRunner

from Pokedex.SpriteDownload import cli
from Pokedex.SpriteDownload.pipeline import list_catalog, run_download

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("POKEDEX_"):
            monkeypatch.delenv(key)


@pytest.fixture
def offline_download(monkeypatch, fake_api, recording_sleep):
    """Route the CLI's fetch pass through the scripted upstream."""
    monkeypatch.setenv("POKEDEX_API__BASE_URL", API_BASE)

    def _run(cfg, **kwargs):
        return run_download(cfg, transport=fake_api.transport(), sleep=recording_sleep, **kwargs)

    monkeypatch.setattr(cli, "run_download", _run)
    return fake_api


@pytest.fixture
def offline_listing(monkeypatch, fake_api, recording_sleep):
    """Route the CLI's list command through the scripted upstream."""
    monkeypatch.setenv("POKEDEX_API__BASE_URL", API_BASE)

    def _list(cfg, **kwargs):
        return list_catalog(cfg, transport=fake_api.transport(), sleep=recording_sleep, **kwargs)

    monkeypatch.setattr(cli, "list_catalog", _list)
    return fake_api


@pytest.mark.parametrize(
    "args",
    [
        ["download", "--concurrency", "0"],
        ["download", "--concurrency", "many"],
        ["download", "--start", "10", "--end", "2"],
        ["download", "--unknown-flag"],
        ["show"],
    ],
)
def test_invalid_arguments_exit_before_work(tmp_path: Path, args) -> None:
    out = tmp_path / "out"
    result = runner.invoke(cli.app, [*args, "--out", str(out)] if args[0] == "download" else args)

    assert result.exit_code == 2
    assert not out.exists()


def test_download_and_load_round(tmp_path: Path, offline_download) -> None:
    offline_download.add_entity(1, "bulbasaur", artwork=sprite_url("1.png"))
    offline_download.add_image(sprite_url("1.png"), make_png())
    offline_download.add_entity(2, "ivysaur")
    out = tmp_path / "images"
    db = tmp_path / "catalog.sqlite"

    result = runner.invoke(
        cli.app, ["download", "-o", str(out), "-s", "1", "-e", "2", "-c", "2"]
    )
    assert result.exit_code == 0, result.output
    assert "Download Summary" in result.output
    assert (out / "meta" / "001_bulbasaur.json").is_file()
    assert len(list((out / "meta").glob("summary_*.json"))) == 1

    result = runner.invoke(cli.app, ["load", "-m", str(out / "meta"), "-d", str(db)])
    assert result.exit_code == 0, result.output
    assert "Upserted: 1" in result.output

    result = runner.invoke(cli.app, ["show", "1", "--db", str(db)])
    assert result.exit_code == 0, result.output
    assert "bulbasaur" in result.output
    assert "image/png" in result.output


def test_load_missing_meta_dir_exits_before_opening_catalog(tmp_path: Path) -> None:
    db = tmp_path / "c.sqlite"
    result = runner.invoke(cli.app, ["load", "-m", str(tmp_path / "absent"), "-d", str(db)])

    assert result.exit_code == 2
    assert "does not exist" in result.output
    assert not db.exists()


def test_show_unknown_id(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["show", "42", "-d", str(tmp_path / "c.sqlite")])
    assert result.exit_code == 1
    assert "No catalog row for #42" in result.output


def test_print_config_merges_file_and_env(tmp_path: Path, monkeypatch) -> None:
    config_file = tmp_path / "pokedex.yaml"
    config_file.write_text("download:\n  concurrency: 3\n  end_id: 10\n")
    monkeypatch.setenv("POKEDEX_DOWNLOAD__CONCURRENCY", "8")

    result = runner.invoke(cli.app, ["print-config", "--config", str(config_file), "--raw"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["download"]["concurrency"] == 8
    assert data["download"]["end_id"] == 10


def test_print_config_rejects_bad_file(tmp_path: Path) -> None:
    config_file = tmp_path / "pokedex.yaml"
    config_file.write_text("download:\n  bogus: 1\n")

    result = runner.invoke(cli.app, ["print-config", "--config", str(config_file)])

    assert result.exit_code == 2


def test_show_applies_configured_synchronous_pragma(tmp_path: Path, monkeypatch) -> None:
    seen = {}

    class RecordingStore(cli.CatalogStore):
        def __init__(self, path, **kwargs):
            seen.update(kwargs)
            super().__init__(path, **kwargs)

    monkeypatch.setattr(cli, "CatalogStore", RecordingStore)
    monkeypatch.setenv("POKEDEX_CATALOG__SYNCHRONOUS", "FULL")

    result = runner.invoke(cli.app, ["show", "7", "-d", str(tmp_path / "c.sqlite")])

    assert result.exit_code == 1
    assert seen["synchronous"] == "FULL"


def test_list_prints_remote_rows(offline_listing) -> None:
    offline_listing.add_json(
        f"{API_BASE}/pokemon?limit=2&offset=3",
        {
            "results": [
                {"name": "charmander", "url": f"{API_BASE}/pokemon/4/"},
                {"name": "charmeleon", "url": f"{API_BASE}/pokemon/5/"},
            ],
            "next": None,
        },
    )

    result = runner.invoke(cli.app, ["list", "--limit", "2", "--offset", "3"])

    assert result.exit_code == 0, result.output
    assert "charmander" in result.output
    assert "charmeleon" in result.output
    assert offline_listing.count(f"{API_BASE}/pokemon?limit=2&offset=3") == 1


def test_list_upstream_failure_exits_nonzero(offline_listing) -> None:
    offline_listing.add_json(f"{API_BASE}/pokemon?limit=5&offset=0", {"detail": "gone"}, status=410)

    result = runner.invoke(cli.app, ["list", "-l", "5"])

    assert result.exit_code == 1
    assert "Listing failed" in result.output
