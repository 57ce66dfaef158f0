"""Release listing models returned by the release host API."""

from __future__ import annotations

from pydantic import Field

from scratchlink.models._base import LinkBaseModel


class ReleaseAsset(LinkBaseModel):
    """A downloadable file attached to a release."""

    name: str
    browser_download_url: str = Field(alias="browser_download_url")
    size: int = 0


class Release(LinkBaseModel):
    """A published release and its assets."""

    tag_name: str = Field(alias="tag_name")
    prerelease: bool = False
    draft: bool = False
    assets: list[ReleaseAsset] = Field(default_factory=list)
