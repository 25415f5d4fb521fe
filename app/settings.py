from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, Tuple

from shift_state import DEFAULT_SHIFT_WINDOWS, SHIFT_HALF, SHIFT_NORMAL, parse_time


DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)
SETTINGS_FILE = DATA_DIR / "settings.json"
DISPLAY_MODES = {"dots", "colors"}


def default_settings() -> Dict[str, Any]:
    return {
        "shift_windows": {
            shift_type: {"start": start, "end": end}
            for shift_type, (start, end) in DEFAULT_SHIFT_WINDOWS.items()
        },
        "viewer_days": 30,
        "admin_days": 30,
        "display_mode": "dots",
        "dark_mode": False,
    }


def _merge_windows(target: Dict[str, Any], raw: Any) -> None:
    if not isinstance(raw, dict):
        return
    for shift_type in (SHIFT_NORMAL, SHIFT_HALF):
        entry = raw.get(shift_type)
        if not isinstance(entry, dict):
            continue
        try:
            start = parse_time(entry["start"])
            end = parse_time(entry["end"])
        except (KeyError, ValueError):
            continue
        target["shift_windows"][shift_type] = {"start": start, "end": end}


def load_settings() -> Dict[str, Any]:
    settings = default_settings()
    if not SETTINGS_FILE.exists():
        return settings
    try:
        data = json.loads(SETTINGS_FILE.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError
    except Exception:  # noqa: BLE001
        return settings

    _merge_windows(settings, data.get("shift_windows"))
    for key in ("viewer_days", "admin_days"):
        try:
            value = int(data.get(key, settings[key]))
        except (TypeError, ValueError):
            continue
        if value > 0:
            settings[key] = value
    if data.get("display_mode") in DISPLAY_MODES:
        settings["display_mode"] = data["display_mode"]
    if "dark_mode" in data:
        settings["dark_mode"] = bool(data["dark_mode"])
    return settings


def save_settings(settings: Dict[str, Any]) -> None:
    payload = copy.deepcopy(default_settings())
    payload.update({key: value for key, value in settings.items() if key in payload})
    SETTINGS_FILE.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


def shift_windows(settings: Dict[str, Any] | None = None) -> Dict[str, Tuple[str, str]]:
    """Flatten the configured windows into the calculator's (start, end) form."""
    settings = settings or load_settings()
    windows = dict(DEFAULT_SHIFT_WINDOWS)
    for shift_type, entry in (settings.get("shift_windows") or {}).items():
        if isinstance(entry, dict) and entry.get("start") and entry.get("end"):
            windows[shift_type] = (entry["start"], entry["end"])
    return windows


def days_to_show(is_admin: bool, settings: Dict[str, Any] | None = None) -> int:
    settings = settings or load_settings()
    return int(settings["admin_days"] if is_admin else settings["viewer_days"])
