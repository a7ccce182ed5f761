"""Syncwatch logging utilities."""
from __future__ import annotations
import logging
import logging.handlers
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Loggers of the relay client stack; chatty at INFO
THIRD_PARTY_LOGGERS = ("socketio", "socketio.client", "engineio", "engineio.client", "websocket")


def setup_rotating_logger(name: str, log_dir: Path, verbose: bool = False) -> logging.Logger:
    """File log (5MB x 5, always DEBUG) plus console at INFO, or DEBUG when verbose."""
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        fmt = logging.Formatter(LOG_FORMAT)

        fh = logging.handlers.RotatingFileHandler(
            log_dir / f"{name}.log", maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(logging.DEBUG if verbose else logging.INFO)
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    for noisy in THIRD_PARTY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger
