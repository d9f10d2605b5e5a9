import logging
import os
from datetime import datetime
from pathlib import Path

DEFAULT_LOG_DIR = "logs"
FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_LOGGERS = {}
_RUN_STAMP = datetime.now().strftime("%Y%m%d-%H%M%S")


def _log_dir():
    """
    Resolve the log directory from GLACE_LOG_DIR.

    An explicitly empty value disables file output (console only).
    """
    raw = os.getenv("GLACE_LOG_DIR", DEFAULT_LOG_DIR)
    if not raw.strip():
        return None
    return Path(raw.strip())


def get_logger(
    name: str,
    *,
    runtime: str = "glace",
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. core.sessions.service, discord.client)
    - runtime: log file prefix (glace | discord)

    All loggers of one runtime share a single file per process run.
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(FORMAT)

    # ------------------------------
    # Console handler
    # ------------------------------
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    # ------------------------------
    # File handler (one per run)
    # ------------------------------
    log_dir = _log_dir()
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logfile = log_dir / f"{runtime}-{_RUN_STAMP}.log"

        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger
