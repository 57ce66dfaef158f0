from __future__ import annotations

from pathlib import Path

import pytest

from scratchlink.cli import build_parser, tools_asset_filter
from scratchlink.models.release import ReleaseAsset


def _asset(name: str) -> ReleaseAsset:
    return ReleaseAsset(name=name, browser_download_url=f"https://example.invalid/{name}")


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("coconut-tools-Linux-x64.zip", True),
        ("coconut-tools-Linux-arm64.zip", False),
        ("coconut-tools-Win-x64.zip", False),
        ("coconut-tools-Linux.zip", True),
        ("coconut-tools-Linux-x64-arm64.zip", True),
    ],
)
def test_tools_asset_filter(name: str, expected: bool) -> None:
    assert tools_asset_filter("x64", "Linux")(_asset(name)) is expected


def test_arm_does_not_match_arm64() -> None:
    pick = tools_asset_filter("arm", "Linux")
    assert pick(_asset("coconut-tools-Linux-arm.zip"))
    assert not pick(_asset("coconut-tools-Linux-arm64.zip"))


@pytest.mark.parametrize("argv", [["download-tools", "--arch=arm64"], ["download-tools", "--arch", "arm64"]])
def test_download_tools_arch_forms(argv: list[str]) -> None:
    args = build_parser().parse_args(argv)
    assert args.arch == "arm64"
    assert args.output == Path("tools")


def test_serve_options() -> None:
    args = build_parser().parse_args(["--debug", "serve", "--port", "20112", "--no-update"])
    assert args.debug
    assert args.port == 20112
    assert args.host is None
    assert args.no_update


def test_debug_after_subcommand() -> None:
    assert build_parser().parse_args(["serve", "--debug"]).debug
    assert not build_parser().parse_args(["update"]).debug


def test_command_required() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
