"""Configuration file management for faith-rank.

Reads and writes ~/.faith-rank/config.json for host settings that sit outside
the catalog (catalog location, unknown-action policy, streak timezone).
"""
from __future__ import annotations

import json
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_CONFIG_PATH: Path = Path.home() / ".faith-rank" / "config.json"
DEFAULT_TIMEZONE = "UTC"
VALID_POLICIES = ("permissive", "strict")


def load_config(config_path: Path | None = None) -> dict:
    """Load config from JSON file. Returns {} if file missing or invalid."""
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict, config_path: Path | None = None) -> None:
    """Write config dict to JSON file. Creates parent dirs if needed."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def get_catalog_path(config_path: Path | None = None) -> Path | None:
    """Return the configured catalog file, or None to use the built-in catalog."""
    config = load_config(config_path)
    raw = config.get("catalog_path")
    if raw:
        return Path(raw)
    return None


def set_catalog_path(path: Path, config_path: Path | None = None) -> None:
    """Persist the catalog file path to config."""
    config = load_config(config_path)
    config["catalog_path"] = str(path)
    save_config(config, config_path)


def get_unknown_action_policy(config_path: Path | None = None) -> str:
    """Return 'permissive' (default) or 'strict'. Unrecognized values fall back to permissive."""
    config = load_config(config_path)
    raw = str(config.get("unknown_action_policy", "permissive")).lower()
    return raw if raw in VALID_POLICIES else "permissive"


def set_unknown_action_policy(policy: str, config_path: Path | None = None) -> None:
    """Persist the unknown-action policy. Raises ValueError for unsupported values."""
    if policy not in VALID_POLICIES:
        raise ValueError(f"policy must be one of {VALID_POLICIES}, got {policy!r}")
    config = load_config(config_path)
    config["unknown_action_policy"] = policy
    save_config(config, config_path)


def get_timezone(config_path: Path | None = None) -> ZoneInfo:
    """Return the zone used for streak day boundaries. Unknown names fall back to UTC."""
    config = load_config(config_path)
    name = config.get("timezone") or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(DEFAULT_TIMEZONE)


def set_timezone(name: str, config_path: Path | None = None) -> None:
    """Persist an IANA timezone name. Raises ValueError if the zone does not exist."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone {name!r}") from exc
    config = load_config(config_path)
    config["timezone"] = name
    save_config(config, config_path)
