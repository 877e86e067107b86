from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple

LOG_FILE_NAME = "bootstrap.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# httpx/httpcore log every request at INFO; progress events already cover that.
_CHATTY_LOGGERS = ("httpx", "httpcore")


def _open_log_file(log_path: str) -> Tuple[logging.FileHandler, str]:
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), log_path
    except OSError:
        fallback = str(Path.cwd() / LOG_FILE_NAME)
        return logging.FileHandler(fallback, encoding="utf-8"), fallback


def configure_logging(
    log_path: str,
    level: int = logging.INFO,
    also_console: bool = False,
) -> str:
    """Send bootstrap logs to log_path (normally <data_root>/log/bootstrap.log).

    Falls back to the working directory when the log directory is not
    writable. The console handler, when enabled, only shows warnings since
    the CLI already prints the event stream. Repeated calls keep the first
    setup and return its path.
    """

    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, "_dive_bootstrap_log_path", None):
        return root._dive_bootstrap_log_path  # type: ignore[attr-defined]

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")

    file_handler, chosen_path = _open_log_file(log_path)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setLevel(logging.WARNING)
        console.setFormatter(formatter)
        root.addHandler(console)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root._dive_bootstrap_log_path = chosen_path  # type: ignore[attr-defined]
    logging.getLogger(__name__).info("Logging to %s (requested %s)", chosen_path, log_path)
    return chosen_path
