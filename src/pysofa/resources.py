"""Bundled itemid dictionary and its on-disk overrides."""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

_DATA_PACKAGE = "pysofa.data"

ITEMIDS_FILE = "itemids.json"


def _find_override(filename: str, directories: Optional[Sequence[Path | str]]) -> Optional[Path]:
    for directory in directories or ():
        candidate = Path(directory) / filename
        if candidate.is_file():
            return candidate
    return None


def load_json_payload(
    filename: str,
    directories: Optional[Sequence[Path | str]] = None,
) -> Mapping[str, Any]:
    """Read a JSON mapping, preferring the first override directory holding it.

    Raises:
        FileNotFoundError: If neither an override nor a bundled copy exists
        TypeError: If the file does not hold a JSON object
    """
    override = _find_override(filename, directories)
    if override is not None:
        text = override.read_text(encoding="utf8")
    else:
        bundled = resources.files(_DATA_PACKAGE).joinpath(filename)
        if not bundled.is_file():
            raise FileNotFoundError(f"{filename} not found in package data directory")
        text = bundled.read_text(encoding="utf8")

    payload = json.loads(text)
    if not isinstance(payload, Mapping):
        raise TypeError(f"Expected a JSON object in {filename}, got {type(payload).__name__}")
    return payload


def load_itemids(directories: Optional[Sequence[Path | str]] = None) -> Mapping[str, Any]:
    """Load the itemid dictionary used to pick signals out of charted events.

    Args:
        directories: Optional directories searched for an ``itemids.json``
            override before falling back to the bundled copy.

    Returns:
        Mapping of signal name to a list of itemids (``vasopressors`` maps
        agent name to a list of itemids).
    """
    return load_json_payload(ITEMIDS_FILE, directories)


__all__ = ["ITEMIDS_FILE", "load_json_payload", "load_itemids"]
