from __future__ import annotations

import argparse
from pathlib import Path
from unittest import mock

import pytest

from order_sync import cli
from order_sync.errors import ConfigError
from order_sync.utils.config import DEFAULT_CONFIG_PATH, DEFAULT_SPREADSHEET_ID, load_config
from order_sync.utils.config import load_env as real_load_env

ENV_KEYS = [
    "STRAPI_API_URL",
    "STRAPI_KEY",
    "LIMIT",
    "PAGE",
    "SHEET_API",
    "GOOGLE_SERVICE_ACCOUNT_EMAIL",
    "GOOGLE_PRIVATE_KEY",
    "ORDER_SYNC_MODE",
    "ORDER_SYNC_INCREMENTAL",
    "ORDER_SYNC_STATE_FILE",
    "ORDER_SYNC_CACHE_DIR",
    "HTTP_RETRY_ATTEMPTS",
    "HTTP_TOTAL_TIMEOUT",
    "HTTP_READ_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("order_sync.utils.config.load_env", lambda: None)
    load_config.cache_clear()
    yield
    load_config.cache_clear()


def _write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "sync.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_env_only_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("STRAPI_API_URL", " https://cms.example.com ")
    monkeypatch.setenv("STRAPI_KEY", "'tok'")
    path = _write_yaml(tmp_path, "{}\n")

    cfg = load_config(path)

    assert cfg.strapi.base_url == "https://cms.example.com"
    assert cfg.strapi.token == "tok"
    assert cfg.strapi.page_size == 100
    assert cfg.strapi.page == 1
    assert cfg.sheets.spreadsheet == DEFAULT_SPREADSHEET_ID
    assert cfg.transform.mode == "flat"
    assert cfg.transform.incremental is True
    assert cfg.state.watermark_file == Path("lastRequestTime.json")
    assert cfg.state.cache_dir is None
    assert cfg.retry.attempts == 4


def test_yaml_expands_env_and_falls_back(monkeypatch, tmp_path):
    monkeypatch.setenv("LIMIT", "25")
    monkeypatch.setenv("SHEET_API", "abc123")
    path = _write_yaml(
        tmp_path,
        "strapi:\n  page_size: ${LIMIT}\n  page: ${PAGE}\n"
        "sheets:\n  spreadsheet: ${SHEET_API}\n"
        "transform:\n  mode: grouped\n  incremental: false\n"
        "state:\n  cache_dir: data/api_cache\n",
    )

    cfg = load_config(path)

    assert cfg.strapi.page_size == 25
    assert cfg.strapi.page == 1
    assert cfg.sheets.spreadsheet == "abc123"
    assert cfg.transform.mode == "grouped"
    assert cfg.transform.incremental is False
    assert cfg.state.cache_dir == Path("data/api_cache")


def test_bad_integer_is_config_error(monkeypatch, tmp_path):
    monkeypatch.setenv("LIMIT", "lots")
    with pytest.raises(ConfigError):
        load_config(_write_yaml(tmp_path, "{}\n"))


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_validate_lists_missing_settings(tmp_path):
    cfg = load_config(_write_yaml(tmp_path, "{}\n"))
    with pytest.raises(ConfigError) as excinfo:
        cfg.validate()
    assert excinfo.value.details["missing"] == [
        "STRAPI_API_URL",
        "STRAPI_KEY",
        "GOOGLE_SERVICE_ACCOUNT_EMAIL",
        "GOOGLE_PRIVATE_KEY",
    ]
    assert cfg.missing_settings(include_sheets=False) == ["STRAPI_API_URL", "STRAPI_KEY"]


def test_cli_overrides(tmp_path):
    cfg = load_config(_write_yaml(tmp_path, "{}\n"))
    args = cli.parse_args(["--page-size", "10", "--page", "2", "--mode", "grouped", "--full", "--state-file", "s.json"])
    out = cli.apply_overrides(cfg, args)
    assert out.strapi.page_size == 10
    assert out.strapi.page == 2
    assert out.transform.mode == "grouped"
    assert out.transform.incremental is False
    assert out.state.watermark_file == Path("s.json")
    assert isinstance(args, argparse.Namespace)


def test_cli_reports_config_error(tmp_path):
    path = _write_yaml(tmp_path, "{}\n")
    with mock.patch("order_sync.cli.run_sync") as run:
        assert cli.main(["--config", str(path)]) == 1
    run.assert_not_called()


def test_shipped_config_defers_to_env(monkeypatch):
    monkeypatch.setenv("ORDER_SYNC_MODE", "grouped")
    monkeypatch.setenv("ORDER_SYNC_INCREMENTAL", "false")
    monkeypatch.setenv("ORDER_SYNC_STATE_FILE", "/var/state.json")
    monkeypatch.setenv("ORDER_SYNC_CACHE_DIR", "/var/cache/orders")
    monkeypatch.setenv("HTTP_RETRY_ATTEMPTS", "2")
    monkeypatch.setenv("HTTP_TOTAL_TIMEOUT", "15")
    monkeypatch.setenv("HTTP_READ_TIMEOUT", "9")

    cfg = load_config(DEFAULT_CONFIG_PATH)

    assert cfg.transform.mode == "grouped"
    assert cfg.transform.incremental is False
    assert cfg.state.watermark_file == Path("/var/state.json")
    assert cfg.state.cache_dir == Path("/var/cache/orders")
    assert cfg.retry.attempts == 2
    assert cfg.retry.total_timeout == 15.0
    assert cfg.strapi.timeout_seconds == 9.0


def test_shipped_config_defaults_without_env():
    cfg = load_config(DEFAULT_CONFIG_PATH)

    assert cfg.transform.mode == "flat"
    assert cfg.transform.incremental is True
    assert cfg.state.watermark_file == Path("lastRequestTime.json")
    assert cfg.state.cache_dir is None
    assert cfg.retry.attempts == 4
    assert cfg.sheets.spreadsheet == DEFAULT_SPREADSHEET_ID


def test_load_env_reads_dotenv_from_working_directory():
    with mock.patch("order_sync.utils.config.find_dotenv", return_value="/work/.env") as find, mock.patch(
        "order_sync.utils.config.load_dotenv"
    ) as load:
        real_load_env()
    find.assert_called_once_with(usecwd=True)
    assert load.call_args_list[-1] == mock.call("/work/.env", override=False)
