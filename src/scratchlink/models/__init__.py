"""Pydantic models for remote documents."""

from scratchlink.models.manifest import AssetEntry, Manifest, load_manifest
from scratchlink.models.release import Release, ReleaseAsset

__all__ = [
    "AssetEntry",
    "Manifest",
    "Release",
    "ReleaseAsset",
    "load_manifest",
]
