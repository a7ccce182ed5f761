"""Syncwatch entry point."""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from syncwatch.config import ConfigError, load_config
from syncwatch.connection import RelayTransport
from syncwatch.echo import EchoSuppressor
from syncwatch.logging_utils import setup_rotating_logger
from syncwatch.mpv_controller import MpvController
from syncwatch.session import SyncSession


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="syncwatch",
        description="Keep mpv play/pause in sync with a shared room.",
    )
    parser.add_argument("media", nargs="*", help="files or URLs for mpv to open")
    parser.add_argument("--config", type=Path, default=None,
                        help="path to syncwatch.toml (default: mpv config directory)")
    parser.add_argument("--ipc-socket", default=None,
                        help="attach to a running mpv started with --input-ipc-server=PATH")
    parser.add_argument("--log-dir", type=Path, default=Path("logs"))
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    setup_rotating_logger("syncwatch", args.log_dir, verbose=args.verbose)
    logger = logging.getLogger("syncwatch")

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    if args.ipc_socket:
        mpv = MpvController(socket_path=args.ipc_socket)
        ok = mpv.attach()
    else:
        mpv = MpvController()
        ok = mpv.start(args.media)
    if not ok:
        mpv.stop_subprocess()
        return 1

    suppressor = EchoSuppressor()
    transport = RelayTransport(mpv, suppressor, settle_delay=config.settle_delay_ms / 1000.0)
    session = SyncSession(mpv, transport, config, suppressor)

    logger.info("Starting syncwatch [%s]", session.name)
    try:
        session.start()
    except Exception as e:
        logger.error("Unrecoverable error on syncwatch [%s]: %s", session.name, e)
        return 1
    finally:
        # only an owned subprocess is terminated
        mpv.stop_subprocess()

    logger.info("Closing syncwatch [%s]", session.name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
