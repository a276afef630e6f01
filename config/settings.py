"""JSON-backed configuration for the thermal ticket print manager."""

from __future__ import annotations

import json
import os
import sys
import threading
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict

APP_DIR_NAME = "ticket-print-manager"
CONFIG_ENV_VAR = "TICKET_PRINT_MANAGER_CONFIG"

_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "PRINTER": {
        "printer_name": "POS-80",
        "encoding": "latin-1",
        "line_width": 48,
    },
    "LAYOUT": {
        "fiscal_disclaimer": "Ingresos Brutos: EXENTO",
        "qr_width": 200,
    },
    "SERVICE": {
        "host": "127.0.0.1",
        "port": 9100,
        "debug": False,
        "log_level": "INFO",
    },
}

_DATA: Dict[str, Dict[str, Any]] = {}
# Serialises read-modify-write cycles inside one process only.
_LOCK = threading.RLock()


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    if sys.platform == "win32" and os.environ.get("APPDATA"):
        base = Path(os.environ["APPDATA"])
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return base / APP_DIR_NAME / "config.json"


_CONFIG_FILE = default_config_path()


def _ensure_config_file() -> None:
    if not _CONFIG_FILE.exists():
        _write_config(_DEFAULTS)


def _merge_with_defaults(raw: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    merged: Dict[str, Dict[str, Any]] = {}
    for section, defaults in _DEFAULTS.items():
        section_values: Dict[str, Any] = deepcopy(defaults)
        incoming = raw.get(section)
        if isinstance(incoming, dict):
            section_values.update(incoming)
        merged[section] = section_values
    return merged


def _load_config() -> Dict[str, Dict[str, Any]]:
    _ensure_config_file()
    with _CONFIG_FILE.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if not isinstance(raw, dict):
        raw = {}
    return _merge_with_defaults(raw)


def _write_config(data: Dict[str, Dict[str, Any]]) -> None:
    _CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    with _CONFIG_FILE.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, ensure_ascii=False)


def _refresh_globals(new_data: Dict[str, Dict[str, Any]]) -> None:
    global PRINTER, LAYOUT, SERVICE, _DATA
    _DATA = deepcopy(new_data)
    PRINTER = deepcopy(_DATA["PRINTER"])
    LAYOUT = deepcopy(_DATA["LAYOUT"])
    SERVICE = deepcopy(_DATA["SERVICE"])


def use_config_file(path: str | Path) -> None:
    """Point the module at another settings file and load it."""
    global _CONFIG_FILE
    with _LOCK:
        _CONFIG_FILE = Path(path)
        reload()


def config_file() -> Path:
    return _CONFIG_FILE


def reload() -> None:
    """Reload settings from disk."""
    with _LOCK:
        config = _load_config()
        _refresh_globals(config)


def get_all() -> Dict[str, Dict[str, Any]]:
    """Return a copy of the full configuration tree."""
    return deepcopy(_DATA)


def get_defaults() -> Dict[str, Dict[str, Any]]:
    """Return a copy of the default configuration values."""
    return deepcopy(_DEFAULTS)


def save_all(data: Dict[str, Dict[str, Any]]) -> None:
    """Persist the provided configuration tree and refresh module globals."""
    with _LOCK:
        merged = _merge_with_defaults(data)
        _write_config(merged)
        _refresh_globals(merged)


def update_section(section: str, values: Dict[str, Any]) -> None:
    """Update a specific configuration section and persist it.

    The file is re-read before merging so that edits made by another
    process are not discarded, but two processes writing at the same
    moment can still lose one of the updates.
    """
    with _LOCK:
        current = _load_config()
        if section not in current:
            raise KeyError(f"Unknown settings section: {section}")
        current[section].update(values)
        save_all(current)


reload()

__all__ = [
    "PRINTER",
    "LAYOUT",
    "SERVICE",
    "reload",
    "get_all",
    "get_defaults",
    "save_all",
    "update_section",
    "use_config_file",
    "config_file",
    "default_config_path",
]
