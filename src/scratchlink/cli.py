"""Command line entry point.

Usage
-----
::

    scratchlink serve [--host HOST] [--port PORT] [--user-data DIR] [--tools DIR] [--no-update]
    scratchlink update [--tools DIR]
    scratchlink download-tools [--arch ARCH] [--output DIR]

``serve`` listens for connections and synchronizes the asset cache in the
background. ``update`` runs one synchronization and exits.
``download-tools`` fetches the build/flash tool bundle for this platform.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import re
import signal
import sys
from pathlib import Path
from typing import Any

import aiohttp

from scratchlink._constants import KNOWN_ARCHES
from scratchlink._transport import AssetFilter, GithubReleaseFetcher
from scratchlink.broker import Broker
from scratchlink.config import LinkConfig, platform_token, resolve_arch
from scratchlink.events import BrokerEvent
from scratchlink.exceptions import LinkError
from scratchlink.models.release import ReleaseAsset
from scratchlink.sync import SyncReport

_logger = logging.getLogger("scratchlink.cli")

# Longest first so "arm64" is not read as "arm".
_ARCH_TOKEN = re.compile(
    r"(?<![a-z0-9])(" + "|".join(sorted(KNOWN_ARCHES, key=len, reverse=True)) + r")(?![a-z0-9])"
)


def tools_asset_filter(arch: str, platform_name: str) -> AssetFilter:
    """Select the tool bundle for *platform_name*.

    When an asset name carries an architecture token it must equal *arch*;
    assets without one are architecture independent.
    """

    def _match(asset: ReleaseAsset) -> bool:
        if platform_name not in asset.name:
            return False
        named = set(_ARCH_TOKEN.findall(asset.name.lower()))
        return not named or arch.lower() in named

    return _match


def _log_event(event: BrokerEvent, payload: Any) -> None:
    if event == BrokerEvent.UPDATE_ERROR and isinstance(payload, SyncReport):
        print(f"Update error - {payload.summary()}", file=sys.stderr)
    elif event == BrokerEvent.ERROR:
        print(str(payload), file=sys.stderr)
    else:
        _logger.debug("event %s", event)


async def _serve(config: LinkConfig, *, update: bool) -> int:
    async with Broker(config) as broker:
        broker.subscribe(_log_event)
        sync_task = asyncio.create_task(broker.start()) if update else None
        try:
            if not await broker.listen():
                return 1

            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, stop.set)
            await stop.wait()
        finally:
            if sync_task is not None and not sync_task.done():
                sync_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sync_task
    return 0


async def _update(config: LinkConfig) -> int:
    async with Broker(config) as broker:
        broker.subscribe(_log_event)
        report = await broker.start()
    return 0 if report.ok else 1


async def _download_tools(config: LinkConfig, arch: str, output: Path) -> int:
    asset_filter = tools_asset_filter(arch, platform_token())
    async with aiohttp.ClientSession() as http_session:
        fetcher = GithubReleaseFetcher(config, http_session)
        try:
            await fetcher.download(
                config.release_owner,
                config.tools_repository,
                output.resolve(),
                asset_filter=asset_filter,
            )
        except LinkError as exc:
            _logger.error("%s", exc)
            return 1
    _logger.info("Tools download complete")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scratchlink", description="Local hardware-link broker")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    # Also accepted after the subcommand; SUPPRESS keeps the top-level value otherwise.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--debug", action="store_true", default=argparse.SUPPRESS, help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", parents=[common], help="Listen for connections")
    serve.add_argument("--host", default=None, help="Listen host (disables loopback-only binding)")
    serve.add_argument("--port", type=int, default=None, help="Listen port")
    serve.add_argument("--user-data", type=Path, default=None, help="User data directory")
    serve.add_argument("--tools", type=Path, default=None, help="Tools directory")
    serve.add_argument("--no-update", action="store_true", help="Skip asset synchronization")

    update = sub.add_parser("update", parents=[common], help="Synchronize libraries and firmwares once")
    update.add_argument("--tools", type=Path, default=None, help="Tools directory")

    tools = sub.add_parser("download-tools", parents=[common], help="Download the tool bundle for this platform")
    tools.add_argument("--arch", default=None, help="Architecture override (default: this machine)")
    tools.add_argument("--output", type=Path, default=Path("tools"), help="Output directory")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        if args.command == "serve":
            overrides: dict[str, Any] = {
                "port": args.port,
                "user_data_path": args.user_data,
                "tools_path": args.tools,
            }
            if args.host is not None:
                overrides.update(host=args.host, bind_loopback=False)
            config = LinkConfig.from_env(**overrides)
            return asyncio.run(_serve(config, update=not args.no_update))
        if args.command == "update":
            return asyncio.run(_update(LinkConfig.from_env(tools_path=args.tools)))
        config = LinkConfig.from_env(arch=args.arch)
        return asyncio.run(_download_tools(config, resolve_arch(config.arch), args.output))
    except LinkError as exc:
        _logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
