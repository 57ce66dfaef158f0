"""Manifest-driven synchronization of the local asset cache.

A run fetches the manifest, then walks the libraries and the firmwares
in manifest order, downloading whatever is missing or outdated. Downloads
are strictly sequential. Individual failures are logged and collected in
the returned :class:`SyncReport`; they never abort the run.

After each category pass the version file is rewritten from the manifest,
whether or not every download in that pass succeeded.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import shutil
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from scratchlink._constants import FIRMWARE_VERSION_FILE, LIBRARY_VERSION_FILE
from scratchlink._transport import ReleaseFetcher, asset_name_contains, stable_release
from scratchlink.config import LinkConfig
from scratchlink.exceptions import LinkError, LinkManifestError
from scratchlink.models.manifest import AssetEntry, Manifest, load_manifest
from scratchlink.versions import VersionStore, is_current

_logger = logging.getLogger(__name__)


class AssetCategory(StrEnum):
    MANIFEST = "manifest"
    LIBRARY = "library"
    FIRMWARE = "firmware"


@dataclass(frozen=True)
class SyncFailure:
    """A single asset that could not be brought up to date."""

    category: AssetCategory
    name: str
    reason: str


@dataclass
class SyncReport:
    """Outcome of one synchronization run."""

    fetched: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)
    aborted: bool = False
    abort_reason: str | None = None

    @property
    def ok(self) -> bool:
        return not self.aborted and not self.failures

    def summary(self) -> str:
        if self.aborted:
            return f"Update aborted: {self.abort_reason}"
        if not self.failures:
            return f"Update complete: {len(self.fetched)} downloaded, {len(self.skipped)} current"
        names = ", ".join(f"{f.category}:{f.name}" for f in self.failures)
        return f"Update incomplete, {len(self.failures)} failed ({names})"


class AssetSynchronizer:
    """Keep libraries and firmwares in step with the remote manifest."""

    def __init__(self, config: LinkConfig, fetcher: ReleaseFetcher) -> None:
        self._config = config
        self._fetcher = fetcher

    async def synchronize(self, tools_path: Path | None = None) -> SyncReport:
        """Run one full synchronization against *tools_path*.

        Parameters
        ----------
        tools_path : Path or None
            Tools root to synchronize. Defaults to ``config.tools_path``.

        Returns
        -------
        SyncReport
            Downloads, skips and failures of this run. A manifest that
            cannot be fetched or parsed marks the report as aborted.
        """
        config = self._config
        if tools_path is not None:
            config = dataclasses.replace(config, tools_path=Path(tools_path))

        report = SyncReport()
        try:
            manifest = await self._fetch_manifest(config)
        except LinkError as exc:
            _logger.error("Manifest update failed: %s", exc)
            report.aborted = True
            report.abort_reason = str(exc)
            report.failures.append(SyncFailure(AssetCategory.MANIFEST, config.manifest_name, str(exc)))
            return report

        await self._sync_libraries(config, manifest, report)
        await self._sync_firmwares(config, manifest, report)

        _logger.info("%s", report.summary())
        return report

    async def _fetch_manifest(self, config: LinkConfig) -> Manifest:
        await self._fetcher.download(
            config.release_owner,
            config.manifest_repository,
            config.tools_path.resolve(),
            release_filter=stable_release,
            asset_filter=asset_name_contains(config.manifest_name),
        )
        _logger.info("%s download complete.", config.manifest_name)
        return load_manifest(config.manifest_path)

    async def _sync_libraries(self, config: LinkConfig, manifest: Manifest, report: SyncReport) -> None:
        libraries_path = config.libraries_path
        store = VersionStore(libraries_path / LIBRARY_VERSION_FILE)
        stored = store.load()

        for entry in manifest.libraries:
            if entry.directory_name is None:
                raise LinkManifestError(f"library entry {entry.name} has no directory name")
            directory = libraries_path / entry.directory_name
            if not directory.exists():
                await self._fetch(AssetCategory.LIBRARY, config.libraries_repository, libraries_path, entry, report)
            elif is_current(stored, entry.name, entry.version):
                _logger.debug("library %s is current (v%d)", entry.name, entry.version)
                report.skipped.append(entry.name)
            else:
                await self._purge(directory, entry, report)
                await self._fetch(AssetCategory.LIBRARY, config.libraries_repository, libraries_path, entry, report)

        self._persist(store, manifest.library_versions(), AssetCategory.LIBRARY, report)

    async def _sync_firmwares(self, config: LinkConfig, manifest: Manifest, report: SyncReport) -> None:
        firmwares_path = config.firmwares_path
        firmwares_path.mkdir(parents=True, exist_ok=True)
        store = VersionStore(firmwares_path / FIRMWARE_VERSION_FILE)

        # No version file at all means nothing was ever synchronized here.
        first_run = not store.exists
        stored = {} if first_run else store.load()

        for entry in manifest.firmwares:
            if first_run or not is_current(stored, entry.name, entry.version):
                await self._fetch(AssetCategory.FIRMWARE, config.firmwares_repository, firmwares_path, entry, report)
            else:
                _logger.debug("firmware %s is current (v%d)", entry.name, entry.version)
                report.skipped.append(entry.name)

        self._persist(store, manifest.firmware_versions(), AssetCategory.FIRMWARE, report)

    async def _fetch(
        self,
        category: AssetCategory,
        repository: str,
        destination: Path,
        entry: AssetEntry,
        report: SyncReport,
    ) -> bool:
        try:
            await self._fetcher.download(
                self._config.release_owner,
                repository,
                destination,
                release_filter=stable_release,
                asset_filter=asset_name_contains(entry.asset_pattern),
            )
        except (LinkError, OSError) as exc:
            _logger.warning("%s %s download failed: %s", category, entry.name, exc)
            report.failures.append(SyncFailure(category, entry.name, str(exc)))
            return False
        _logger.info("%s %s (v%d) download complete.", category, entry.name, entry.version)
        report.fetched.append(entry.name)
        return True

    async def _purge(self, directory: Path, entry: AssetEntry, report: SyncReport) -> None:
        try:
            await asyncio.to_thread(shutil.rmtree, directory)
        except OSError as exc:
            _logger.warning("Cannot remove outdated library %s: %s", directory, exc)
            report.failures.append(SyncFailure(AssetCategory.LIBRARY, entry.name, f"remove failed: {exc}"))

    @staticmethod
    def _persist(
        store: VersionStore,
        versions: dict[str, int],
        category: AssetCategory,
        report: SyncReport,
    ) -> None:
        try:
            store.save(versions)
        except OSError as exc:
            _logger.error("Cannot write %s: %s", store.path, exc)
            report.failures.append(SyncFailure(category, store.path.name, str(exc)))
