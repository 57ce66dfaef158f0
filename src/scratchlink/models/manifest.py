"""Asset manifest models.

The manifest (``index.json``) lists the libraries and firmwares the broker
keeps in its local cache. Older manifests name entries with
``libraryName``/``firmwareName`` and ``folderName``; both spellings are
accepted.
"""

from __future__ import annotations

from pathlib import Path, PurePath

from pydantic import AliasChoices, Field, ValidationError, field_validator

from scratchlink.exceptions import LinkManifestError
from scratchlink.models._base import LinkBaseModel


class AssetEntry(LinkBaseModel):
    """One versioned asset listed in the manifest."""

    name: str = Field(validation_alias=AliasChoices("name", "libraryName", "firmwareName"), min_length=1)
    version: int
    file_identifier: str | None = Field(
        default=None,
        validation_alias=AliasChoices("fileIdentifier", "file_identifier"),
    )
    directory_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("directoryName", "directory_name", "folderName"),
    )

    @property
    def asset_pattern(self) -> str:
        """Substring a release asset name must contain to belong to this entry."""
        return self.file_identifier or self.name

    @field_validator("directory_name")
    @classmethod
    def _plain_directory_name(cls, value: str | None) -> str | None:
        # Used as a single path component below the libraries root.
        if value is None:
            return value
        if value in {"", ".", ".."} or any(sep in value for sep in "/\\:") or PurePath(value).is_absolute():
            raise ValueError(f"directory name must be a single folder name: {value!r}")
        return value


def _ensure_unique(entries: list[AssetEntry], category: str) -> list[AssetEntry]:
    seen: set[str] = set()
    for entry in entries:
        if entry.name in seen:
            raise ValueError(f"duplicate {category} entry: {entry.name}")
        seen.add(entry.name)
    return entries


class Manifest(LinkBaseModel):
    """Remote document enumerating library and firmware assets."""

    libraries: list[AssetEntry] = Field(default_factory=list)
    firmwares: list[AssetEntry] = Field(default_factory=list)

    @field_validator("libraries")
    @classmethod
    def _unique_libraries(cls, value: list[AssetEntry]) -> list[AssetEntry]:
        for entry in value:
            if not entry.directory_name:
                raise ValueError(f"library entry {entry.name} has no directory name")
        return _ensure_unique(value, "library")

    @field_validator("firmwares")
    @classmethod
    def _unique_firmwares(cls, value: list[AssetEntry]) -> list[AssetEntry]:
        return _ensure_unique(value, "firmware")

    def library_versions(self) -> dict[str, int]:
        return {entry.name: entry.version for entry in self.libraries}

    def firmware_versions(self) -> dict[str, int]:
        return {entry.name: entry.version for entry in self.firmwares}


def load_manifest(path: Path) -> Manifest:
    """Read and validate a downloaded manifest.

    Raises
    ------
    LinkManifestError
        When the file is missing, unreadable or does not validate.
    """
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise LinkManifestError(f"Cannot read manifest {path}: {exc}") from exc
    try:
        return Manifest.model_validate_json(raw)
    except ValidationError as exc:
        raise LinkManifestError(f"Invalid manifest {path}: {exc.error_count()} error(s)") from exc
