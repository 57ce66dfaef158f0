"""Persisted ``name -> version`` records for synchronized assets.

One file per asset category. The file is always read and written as a
whole; a missing or corrupt file reads as an empty mapping, which makes
the synchronizer re-download everything for that category.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

_logger = logging.getLogger(__name__)

_VERSIONS_ADAPTER: TypeAdapter[dict[str, int]] = TypeAdapter(dict[str, int])


def load_versions(path: Path) -> dict[str, int]:
    """Load a version map, failing soft to ``{}``."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return {}
    except OSError as exc:
        _logger.warning("Cannot read version file %s: %s", path, exc)
        return {}
    try:
        return _VERSIONS_ADAPTER.validate_json(raw, strict=True)
    except ValidationError:
        _logger.warning("Ignoring unparsable version file %s", path)
        return {}


def is_current(stored: Mapping[str, int], name: str, version: int) -> bool:
    """Whether *stored* already records *name* at *version* or newer."""
    recorded = stored.get(name)
    return recorded is not None and recorded >= version


def save_versions(path: Path, versions: Mapping[str, int]) -> None:
    """Overwrite the version file with *versions*.

    The write is not atomic; a torn file reads back as empty.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dict(versions), separators=(",", ":")), encoding="utf-8")


class VersionStore:
    """Version file for one asset category."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"VersionStore({str(self.path)!r})"

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> dict[str, int]:
        return load_versions(self.path)

    def save(self, versions: Mapping[str, int]) -> None:
        save_versions(self.path, versions)
