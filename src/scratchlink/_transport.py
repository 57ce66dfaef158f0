"""Release download transport.

Downloads the assets attached to the newest matching release of a
repository on the release host, extracting zip archives in place.
"""

from __future__ import annotations

import asyncio
import logging
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import aiohttp
from pydantic import TypeAdapter, ValidationError

from scratchlink._constants import USER_AGENT
from scratchlink.config import LinkConfig
from scratchlink.exceptions import LinkAssetNotFoundError, LinkTransportError
from scratchlink.models.release import Release, ReleaseAsset

_logger = logging.getLogger(__name__)

ReleaseFilter = Callable[[Release], bool]
AssetFilter = Callable[[ReleaseAsset], bool]

_RELEASES_ADAPTER: TypeAdapter[list[Release]] = TypeAdapter(list[Release])

_CHUNK_SIZE = 64 * 1024


def stable_release(release: Release) -> bool:
    """Default release filter: published, non-prerelease releases only."""
    return not release.prerelease and not release.draft


def asset_name_contains(fragment: str) -> AssetFilter:
    """Asset filter selecting assets whose name contains *fragment*."""

    def _match(asset: ReleaseAsset) -> bool:
        return fragment in asset.name

    return _match


class ReleaseFetcher(Protocol):
    """Structural interface for the release download primitive.

    The synchronizer only depends on this protocol so tests can pass a
    recording fake instead of touching the network.
    """

    async def download(
        self,
        owner: str,
        repository: str,
        destination: Path,
        *,
        release_filter: ReleaseFilter = ...,
        asset_filter: AssetFilter = ...,
        leave_zipped: bool = ...,
    ) -> list[Path]:
        ...


def _extract_zip(archive: Path, destination: Path) -> None:
    """Extract *archive* into *destination* and delete it."""
    root = destination.resolve()
    with zipfile.ZipFile(archive) as zf:
        for member in zf.namelist():
            target = (root / member).resolve()
            if target != root and root not in target.parents:
                raise LinkTransportError(f"Archive member escapes destination: {member}")
        zf.extractall(root)
    archive.unlink()


class GithubReleaseFetcher:
    """Release fetcher backed by the GitHub releases API."""

    def __init__(self, config: LinkConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def _get_text(self, url: str) -> str:
        headers = {"accept": "application/vnd.github+json", "user-agent": USER_AGENT}
        _logger.debug("GET %s", url)
        try:
            async with self._http.get(url, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise LinkTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
        except LinkTransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise LinkTransportError(f"Request to {url} failed: {exc}", url=url) from exc
        return text

    async def list_releases(self, owner: str, repository: str) -> list[Release]:
        url = f"{self._config.api_base_url}/repos/{owner}/{repository}/releases"
        text = await self._get_text(url)
        try:
            return _RELEASES_ADAPTER.validate_json(text)
        except ValidationError as exc:
            raise LinkTransportError(f"Invalid release listing from {url}", url=url) from exc

    async def _download_file(self, url: str, target: Path) -> None:
        headers = {"accept": "application/octet-stream", "user-agent": USER_AGENT}
        _logger.debug("GET %s -> %s", url, target)
        try:
            async with self._http.get(url, headers=headers, timeout=self._timeout) as resp:
                if resp.status != 200:
                    raise LinkTransportError(
                        f"HTTP {resp.status} downloading {url}",
                        status_code=resp.status,
                        url=url,
                    )
                with target.open("wb") as fh:
                    async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
                        fh.write(chunk)
        except LinkTransportError:
            target.unlink(missing_ok=True)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            target.unlink(missing_ok=True)
            raise LinkTransportError(f"Download of {url} failed: {exc}", url=url) from exc

    async def download(
        self,
        owner: str,
        repository: str,
        destination: Path,
        *,
        release_filter: ReleaseFilter = stable_release,
        asset_filter: AssetFilter = lambda _asset: True,
        leave_zipped: bool = False,
    ) -> list[Path]:
        """Download matching assets of the newest matching release.

        Returns the paths written (archives are reported by their
        extraction directory).

        Raises
        ------
        LinkAssetNotFoundError
            No release or no asset matched the filters.
        LinkTransportError
            Any network, HTTP or archive failure.
        """
        releases = await self.list_releases(owner, repository)
        release = next((r for r in releases if release_filter(r)), None)
        if release is None:
            raise LinkAssetNotFoundError(f"No matching release in {owner}/{repository}")

        assets = [asset for asset in release.assets if asset_filter(asset)]
        if not assets:
            raise LinkAssetNotFoundError(
                f"No matching asset in {owner}/{repository}@{release.tag_name}",
            )

        destination.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []
        for asset in assets:
            target = destination / asset.name
            await self._download_file(asset.browser_download_url, target)
            if not leave_zipped and target.suffix.lower() == ".zip":
                try:
                    await asyncio.to_thread(_extract_zip, target, destination)
                except zipfile.BadZipFile as exc:
                    target.unlink(missing_ok=True)
                    raise LinkTransportError(f"Corrupt archive {asset.name}: {exc}") from exc
                written.append(destination)
            else:
                written.append(target)
        return written
