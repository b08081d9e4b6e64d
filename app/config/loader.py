from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_TWO_THIRDS_MODES = {"exact", "rounded"}

_DEFAULT_TALLY = {
    "two_thirds_mode": "exact",
    "default_abstain_counts": False,
}
_DEFAULT_PROXIES = {
    "max_per_holder": 2,
}
_DEFAULT_EXPORT = {
    "csv_delimiter": ";",
    "decimal_places": 1,
}


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.warning(
            "Configuration file %s not found; using defaults.", _CONFIG_PATH
        )
        return {}
    except Exception as exc:  # noqa: BLE001
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_non_negative_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate >= 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _coerce_two_thirds_mode(value: Any, fallback: str) -> str:
    if value is None:
        return fallback
    candidate = str(value).strip().lower()
    return candidate if candidate in _TWO_THIRDS_MODES else fallback


def get_database_url(default: str) -> str:
    config = load_config()
    url = config.get("database_url")
    return str(url) if url else default


def get_tally_settings() -> Dict[str, Any]:
    """
    Return tallying rules with env/config overrides.

    Priority for the two-thirds cutoff:
    1) VOTEBOX_TWO_THIRDS_MODE env var
    2) config.yaml tally.two_thirds_mode
    3) default "exact" (3 * yes >= 2 * denominator)
    """
    config = load_config()
    section = config.get("tally") or {}
    defaults = dict(_DEFAULT_TALLY)

    mode = os.getenv("VOTEBOX_TWO_THIRDS_MODE")
    if mode is None:
        mode = section.get("two_thirds_mode")

    return {
        "two_thirds_mode": _coerce_two_thirds_mode(mode, defaults["two_thirds_mode"]),
        "default_abstain_counts": _coerce_bool(
            section.get("default_abstain_counts"),
            defaults["default_abstain_counts"],
        ),
    }


def get_proxy_settings() -> Dict[str, int]:
    """Return proxy delegation limits sourced from env/config with safe defaults."""
    config = load_config()
    section = config.get("proxies") or {}
    defaults = dict(_DEFAULT_PROXIES)

    max_per_holder = os.getenv("VOTEBOX_MAX_PROXIES_PER_HOLDER")
    if max_per_holder is None:
        max_per_holder = section.get("max_per_holder")

    return {
        "max_per_holder": _coerce_non_negative_int(
            max_per_holder, defaults["max_per_holder"]
        ),
    }


def get_export_settings() -> Dict[str, Any]:
    """Return CSV/minutes export formatting settings."""
    config = load_config()
    section = config.get("export") or {}
    defaults = dict(_DEFAULT_EXPORT)

    delimiter = section.get("csv_delimiter")
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        delimiter = defaults["csv_delimiter"]

    return {
        "csv_delimiter": delimiter,
        "decimal_places": min(
            6,
            _coerce_non_negative_int(
                section.get("decimal_places"), defaults["decimal_places"]
            ),
        ),
    }


def get_sqlite_settings(defaults: Dict[str, Any]) -> Dict[str, Any]:
    config = load_config()
    sqlite_config = config.get("sqlite") or {}

    return {
        "journal_mode": str(sqlite_config.get("journal_mode") or defaults["journal_mode"]),
        "synchronous": str(sqlite_config.get("synchronous") or defaults["synchronous"]),
        "busy_timeout_ms": _coerce_positive_int(
            sqlite_config.get("busy_timeout_ms"), defaults["busy_timeout_ms"]
        ),
        "write_retries": _coerce_positive_int(
            sqlite_config.get("write_retries"), defaults["write_retries"]
        ),
        "retry_backoff_ms": _coerce_positive_int(
            sqlite_config.get("retry_backoff_ms"), defaults["retry_backoff_ms"]
        ),
    }
