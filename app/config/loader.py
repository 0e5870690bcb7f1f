from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_MEETING_STATUSES_ON_CREATE = {"draft", "scheduled"}

_DEFAULT_MEETING_SETTINGS = {
    "version_history_limit": 5,
    "id_retry_attempts": 5,
    "update_retry_attempts": 3,
    "default_status": "scheduled",
    "upcoming_limit": 10,
    "recent_limit": 5,
}
_DEFAULT_ARCHIVE_SETTINGS = {
    "retention_days": 365,
}
_DEFAULT_NOTIFICATION_SETTINGS = {
    "enabled": False,
    "ses_region": "us-east-1",
    "ses_endpoint_url": None,
    "aws_access_key_id": None,
    "aws_secret_access_key": None,
    "sender": "SIT Student Council <council@localhost>",
    "portal_url": "http://localhost:8000",
    "timeout_seconds": 10,
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


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def get_meeting_settings() -> Dict[str, Any]:
    """Return meeting lifecycle settings sourced from config with safe defaults."""
    config = load_config()
    section = config.get("meetings") or {}
    settings = dict(_DEFAULT_MEETING_SETTINGS)

    for key in (
        "version_history_limit",
        "id_retry_attempts",
        "update_retry_attempts",
        "upcoming_limit",
        "recent_limit",
    ):
        settings[key] = _coerce_positive_int(section.get(key), settings[key])

    default_status = str(section.get("default_status") or "").strip().lower()
    if default_status in _MEETING_STATUSES_ON_CREATE:
        settings["default_status"] = default_status
    elif default_status:
        logging.warning(
            "Unsupported meetings.default_status %r; using %r.",
            default_status,
            settings["default_status"],
        )
    return settings


def get_archive_settings() -> Dict[str, int]:
    """Return archival retention settings."""
    config = load_config()
    section = config.get("archive") or {}
    return {
        "retention_days": _coerce_positive_int(
            section.get("retention_days"), _DEFAULT_ARCHIVE_SETTINGS["retention_days"]
        )
    }


def get_notification_settings() -> Dict[str, Any]:
    """
    Return SES notification settings.

    AWS credentials are read from COUNCIL_AWS_ACCESS_KEY_ID and
    COUNCIL_AWS_SECRET_ACCESS_KEY when set so they can be kept out of
    config.yaml. Left unset, boto3 falls back to its own credential chain.
    """
    config = load_config()
    section = config.get("notifications") or {}
    settings = dict(_DEFAULT_NOTIFICATION_SETTINGS)

    settings["enabled"] = _coerce_bool(section.get("enabled"), settings["enabled"])
    settings["timeout_seconds"] = _coerce_positive_int(
        section.get("timeout_seconds"), settings["timeout_seconds"]
    )
    for key in (
        "ses_region",
        "ses_endpoint_url",
        "aws_access_key_id",
        "aws_secret_access_key",
        "sender",
        "portal_url",
    ):
        value = section.get(key)
        if isinstance(value, str) and value.strip():
            settings[key] = value.strip()

    for key, env_name in (
        ("aws_access_key_id", "COUNCIL_AWS_ACCESS_KEY_ID"),
        ("aws_secret_access_key", "COUNCIL_AWS_SECRET_ACCESS_KEY"),
    ):
        env_value = os.getenv(env_name)
        if env_value:
            settings[key] = env_value
    return settings


def get_secure_cookies_enabled() -> bool:
    """
    Return whether auth cookies should be marked Secure.

    Priority:
    1) COUNCIL_SECURE_COOKIES env var
    2) config.yaml auth.secure_cookies
    3) default False (local HTTP-friendly)
    """
    env_value = os.getenv("COUNCIL_SECURE_COOKIES")
    if env_value is not None:
        return env_value.strip().lower() in {"1", "true", "yes", "on"}

    config = load_config()
    section = config.get("auth") or {}
    return _coerce_bool(section.get("secure_cookies"), False)
