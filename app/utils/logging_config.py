import logging
import logging.config
import os
from pathlib import Path
from typing import Iterable, List


def _prune_backups(log_dir: Path, base_name: str, backup_count: int) -> None:
    if backup_count < 1:
        return
    candidates: Iterable[Path] = sorted(
        log_dir.glob(f"{base_name}.*"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    for stale in list(candidates)[backup_count:]:
        try:
            stale.unlink()
        except OSError:
            continue


def _logger(handlers: List[str], level: str = "INFO") -> dict:
    return {"handlers": handlers, "level": level, "propagate": False}


def setup_logging():
    """
    Configures logging for the portal.
    Logs are written to '<LOG_DIR>/app.log' and '<LOG_DIR>/error.log'
    (LOG_DIR defaults to 'logs').
    """
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    max_bytes = int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024)))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", "3"))
    _prune_backups(log_dir, "app.log", backup_count)
    _prune_backups(log_dir, "error.log", backup_count)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": "INFO",
            },
            "file_app": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "default",
                "filename": str(log_dir / "app.log"),
                "maxBytes": max_bytes,
                "backupCount": backup_count,
                "level": "INFO",
                "encoding": "utf8",
            },
            "file_error": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "default",
                "filename": str(log_dir / "error.log"),
                "maxBytes": max_bytes,
                "backupCount": backup_count,
                "level": "ERROR",
                "encoding": "utf8",
            },
        },
        "loggers": {
            "": {  # Root logger
                "handlers": ["console", "file_app", "file_error"],
                "level": "INFO",
                "propagate": True,
            },
            "uvicorn": _logger(["console", "file_app"]),
            "uvicorn.access": _logger(["console", "file_app"]),
            "uvicorn.error": _logger(["console", "file_error"]),
            "auth_module": _logger(["console", "file_app"]),
            "audit": _logger(["console", "file_app"]),
            # Delivery failures are reported per recipient, so keep them out of error.log.
            "notifications": _logger(["console", "file_app"]),
            "app": _logger(["console", "file_app", "file_error"], level="DEBUG"),
        },
    }

    logging.config.dictConfig(logging_config)
    logging.info("Logging configured successfully.")
