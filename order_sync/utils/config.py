"""
Configuration loader for the order sync job.

Reads `config/sync.yaml` (optional), expands environment variables inside it,
and falls back to plain environment variables for anything the file leaves
blank. Secrets are expected to live in `.env` / `.env.local` or the process
environment, never in the YAML file itself.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv

from order_sync.errors import ConfigError

ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = ROOT_DIR / "config" / "sync.yaml"

DEFAULT_SPREADSHEET_ID = "1v1QZOyAoRmHxHxUsQP2TTWpJS6u3OSbyUy3FNjED5bU"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
DEFAULT_LABEL_PATTERN = r"قاب انتخاب شده:\s*([\w\s]+)"
DEFAULT_LABEL = "not"

MODES = ("flat", "grouped")


def load_env() -> None:
    # Load .env then .env.local (allow local overrides)
    load_dotenv(ROOT_DIR / ".env")
    load_dotenv(ROOT_DIR / ".env.local", override=True)
    # then the .env nearest the working directory, without overriding
    load_dotenv(find_dotenv(usecwd=True), override=False)


def _env(name: str) -> str:
    # .env values are often quoted: KEY="value"
    raw = (os.getenv(name) or "").strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
        raw = raw[1:-1]
    return raw


def _expand_env(value: Any) -> Any:
    """Recursively expand environment variables inside CONFIG values."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: _expand_env(val) for key, val in value.items()}
    return value


def _pick(section: Dict[str, Any], key: str, env_name: Optional[str], default: Any = None) -> Any:
    value = section.get(key)
    # unresolved ${VAR} survives expandvars when VAR is unset
    if isinstance(value, str) and (not value.strip() or value.strip().startswith("$")):
        value = None
    if value is None and env_name:
        env_val = _env(env_name)
        if env_val:
            value = env_val
    return default if value is None else value


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RetrySettings:
    attempts: int = 4
    wait_initial: float = 1.0
    wait_max: float = 8.0
    jitter: float = 1.0
    total_timeout: float = 60.0


@dataclass(frozen=True)
class StrapiSettings:
    base_url: str
    token: str
    orders_endpoint: str = "api/orders/"
    case_types_endpoint: str = "api/phone-case-types"
    page_size: int = 100
    page: int = 1
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class SheetSettings:
    spreadsheet: str
    service_account_email: str
    private_key: str
    max_concurrency: int = 4
    value_input_option: str = "USER_ENTERED"


@dataclass(frozen=True)
class TransformSettings:
    mode: str = "flat"
    incremental: bool = True
    label_pattern: str = DEFAULT_LABEL_PATTERN
    default_label: str = DEFAULT_LABEL


@dataclass(frozen=True)
class StateSettings:
    watermark_file: Path = Path("lastRequestTime.json")
    cache_dir: Optional[Path] = None


@dataclass(frozen=True)
class SyncConfig:
    strapi: StrapiSettings
    sheets: SheetSettings
    transform: TransformSettings = field(default_factory=TransformSettings)
    state: StateSettings = field(default_factory=StateSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)

    def missing_settings(self, include_sheets: bool = True) -> List[str]:
        missing = []
        if not self.strapi.base_url:
            missing.append("STRAPI_API_URL")
        if not self.strapi.token:
            missing.append("STRAPI_KEY")
        if include_sheets:
            if not self.sheets.service_account_email:
                missing.append("GOOGLE_SERVICE_ACCOUNT_EMAIL")
            if not self.sheets.private_key:
                missing.append("GOOGLE_PRIVATE_KEY")
        return missing

    def validate(self, include_sheets: bool = True) -> None:
        if self.transform.mode not in MODES:
            raise ConfigError(
                f"Unknown mode {self.transform.mode!r}; expected one of {', '.join(MODES)}"
            )
        if self.strapi.page_size <= 0 or self.strapi.page <= 0:
            raise ConfigError("Page size and page number must be positive")
        missing = self.missing_settings(include_sheets=include_sheets)
        if missing:
            raise ConfigError(
                "Missing required settings: " + ", ".join(missing), details={"missing": missing}
            )


@lru_cache(maxsize=1)
def load_config(path: Optional[Union[str, Path]] = None) -> SyncConfig:
    """
    Load the configuration file and convert it into typed objects.

    Parameters
    ----------
    path: Optional path override; defaults to config/sync.yaml. The default
          file may be absent, in which case only the environment is used.
    """
    load_env()
    cfg_path = Path(path) if path else DEFAULT_CONFIG_PATH
    raw_data: Dict[str, Any] = {}
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as fh:
            raw_data = yaml.safe_load(fh) or {}
    elif path:
        raise FileNotFoundError(f"Configuration file not found: {cfg_path}")

    expanded = _expand_env(raw_data)
    strapi_raw = expanded.get("strapi") or {}
    sheets_raw = expanded.get("sheets") or {}
    transform_raw = expanded.get("transform") or {}
    state_raw = expanded.get("state") or {}
    retry_raw = expanded.get("retry") or {}

    strapi_cfg = StrapiSettings(
        base_url=str(_pick(strapi_raw, "base_url", "STRAPI_API_URL", "")),
        token=str(_pick(strapi_raw, "token", "STRAPI_KEY", "")),
        orders_endpoint=str(_pick(strapi_raw, "orders_endpoint", None, "api/orders/")),
        case_types_endpoint=str(
            _pick(strapi_raw, "case_types_endpoint", None, "api/phone-case-types")
        ),
        page_size=_as_int(_pick(strapi_raw, "page_size", "LIMIT", 100), "LIMIT"),
        page=_as_int(_pick(strapi_raw, "page", "PAGE", 1), "PAGE"),
        timeout_seconds=_as_float(
            _pick(strapi_raw, "timeout_seconds", "HTTP_READ_TIMEOUT", 30.0), "HTTP_READ_TIMEOUT"
        ),
    )
    sheets_cfg = SheetSettings(
        spreadsheet=str(_pick(sheets_raw, "spreadsheet", "SHEET_API", DEFAULT_SPREADSHEET_ID)),
        service_account_email=str(
            _pick(sheets_raw, "service_account_email", "GOOGLE_SERVICE_ACCOUNT_EMAIL", "")
        ),
        private_key=str(_pick(sheets_raw, "private_key", "GOOGLE_PRIVATE_KEY", "")),
        max_concurrency=_as_int(_pick(sheets_raw, "max_concurrency", None, 4), "max_concurrency"),
        value_input_option=str(_pick(sheets_raw, "value_input_option", None, "USER_ENTERED")),
    )
    transform_cfg = TransformSettings(
        mode=str(_pick(transform_raw, "mode", "ORDER_SYNC_MODE", "flat")).lower(),
        incremental=_as_bool(_pick(transform_raw, "incremental", "ORDER_SYNC_INCREMENTAL", True)),
        label_pattern=str(_pick(transform_raw, "label_pattern", None, DEFAULT_LABEL_PATTERN)),
        default_label=str(_pick(transform_raw, "default_label", None, DEFAULT_LABEL)),
    )
    cache_dir = _pick(state_raw, "cache_dir", "ORDER_SYNC_CACHE_DIR", None)
    state_cfg = StateSettings(
        watermark_file=Path(
            _pick(state_raw, "watermark_file", "ORDER_SYNC_STATE_FILE", "lastRequestTime.json")
        ),
        cache_dir=Path(cache_dir) if cache_dir else None,
    )
    retry_cfg = RetrySettings(
        attempts=_as_int(_pick(retry_raw, "attempts", "HTTP_RETRY_ATTEMPTS", 4), "HTTP_RETRY_ATTEMPTS"),
        wait_initial=_as_float(_pick(retry_raw, "wait_initial", None, 1.0), "wait_initial"),
        wait_max=_as_float(_pick(retry_raw, "wait_max", None, 8.0), "wait_max"),
        total_timeout=_as_float(
            _pick(retry_raw, "total_timeout", "HTTP_TOTAL_TIMEOUT", 60.0), "HTTP_TOTAL_TIMEOUT"
        ),
    )

    return SyncConfig(
        strapi=strapi_cfg,
        sheets=sheets_cfg,
        transform=transform_cfg,
        state=state_cfg,
        retry=retry_cfg,
    )


__all__ = [
    "DEFAULT_LABEL",
    "DEFAULT_LABEL_PATTERN",
    "DEFAULT_SPREADSHEET_ID",
    "MODES",
    "RetrySettings",
    "SHEETS_SCOPE",
    "SheetSettings",
    "StateSettings",
    "StrapiSettings",
    "SyncConfig",
    "TransformSettings",
    "load_config",
]
