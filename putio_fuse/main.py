#!/usr/bin/env python3
"""
put.io FUSE Driver

Mounts a put.io account as a filesystem.

Usage:
    putiofs /mnt/putio --token YOUR_OAUTH_TOKEN
    PUTIO_TOKEN=... putiofs /mnt/putio --readonly
"""

import argparse
import logging
import signal
import sys

import pyfuse3
import trio

from .api_client import PutioClient, PutioError
from .config import TOKEN_ENV_VAR, FsConfig, load_config
from .filesystem import PutioFS
from .safety import FSNAME, validate_mountpoint

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="putiofs",
        description="Mount your put.io account as a FUSE filesystem",
    )
    parser.add_argument(
        "mountpoint",
        help="Directory to mount the filesystem",
    )
    parser.add_argument(
        "--token",
        help=f"put.io OAuth token (default: ${TOKEN_ENV_VAR} or config file)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--readonly",
        action="store_true",
        help="Mount the filesystem read-only",
    )
    return parser


def fuse_options_for(config: FsConfig) -> set[str]:
    fuse_options = set(pyfuse3.default_options)
    fuse_options.add(f"fsname={FSNAME}")
    if config.readonly:
        fuse_options.add("ro")
    if config.debug:
        fuse_options.add("debug")
    return fuse_options


async def _unmount_on_sigterm(task_status=trio.TASK_STATUS_IGNORED) -> None:
    with trio.open_signal_receiver(signal.SIGTERM) as signals:
        task_status.started()
        async for _ in signals:
            log.info("SIGTERM received, unmounting...")
            pyfuse3.terminate()
            return


async def _serve(fs: PutioFS, mountpoint: str, fuse_options: set[str]) -> None:
    try:
        await fs.resolve_root()
        pyfuse3.init(fs, mountpoint, fuse_options)
        try:
            async with trio.open_nursery() as nursery:
                await nursery.start(_unmount_on_sigterm)
                await pyfuse3.main()
                nursery.cancel_scope.cancel()
        finally:
            pyfuse3.close(unmount=True)
            log.info("Unmounted")
    finally:
        # destroy() closes it on a clean unmount; closing twice is harmless
        await fs.api.close()


def main(argv: list[str] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(cli_token=args.token, readonly=args.readonly, debug=args.debug)
    if not config.token:
        parser.error(f"an OAuth token is required (--token or ${TOKEN_ENV_VAR})")

    error = validate_mountpoint(args.mountpoint)
    if error:
        print(f"Error: {error}", file=sys.stderr)
        sys.exit(1)

    client = PutioClient(
        config.token,
        api_url=config.api_url,
        upload_url=config.upload_url,
        user_agent=config.user_agent,
        timeout=config.api_timeout,
    )
    fs = PutioFS(client, config)

    log.info(f"Mounting put.io at {args.mountpoint}")
    log.info(f"API: {config.api_url}")

    try:
        trio.run(_serve, fs, args.mountpoint, fuse_options_for(config))
    except PutioError as e:
        log.error(f"Could not fetch the put.io root folder: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        log.info("Interrupted, unmounting...")


if __name__ == "__main__":
    main()
