from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from core.config import BACKEND_DIR


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"
LOG_FILE = "growf.log"

# Third-party loggers that are too chatty at DEBUG.
_QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "multipart": logging.INFO,
    "python_multipart": logging.INFO,
}


def resolve_level(environment: str, override: str | None = None) -> int:
    if override:
        level = logging.getLevelName(override.strip().upper())
        if isinstance(level, int):
            return level
    return logging.INFO if (environment or "").strip().lower() == "production" else logging.DEBUG


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        log_dir / LOG_FILE,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )


def setup_logging(*, environment: str, level: str | None = None, log_dir: Path | None = None) -> None:
    """Configure root logging once per process.

    Console always; a rotating ``logs/growf.log`` file in production.
    A second call is a no-op when the root logger already has handlers.
    """

    root = logging.getLogger()
    if root.handlers:
        return

    resolved = resolve_level(environment, level)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if (environment or "").strip().lower() == "production":
        handlers.append(_file_handler(log_dir or Path(BACKEND_DIR) / "logs"))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(formatter)
    logging.basicConfig(level=resolved, handlers=handlers)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(resolved)
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(quiet_level, resolved))
