"""
Logging setup for the CV Screener API
"""
import functools
import logging
import logging.config
import os
import time
from pathlib import Path

# ENVIRONMENT -> (default level, write a log file)
PROFILES = {
    "production": ("INFO", True),
    "development": ("DEBUG", True),
    "testing": ("WARNING", False),
}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def configure_for_environment() -> None:
    """Apply one dictConfig chosen by ENVIRONMENT; LOG_LEVEL overrides the profile level."""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    level, to_file = PROFILES.get(environment, ("INFO", False))
    level = os.getenv("LOG_LEVEL", level).upper()

    handlers = {
        "console": {"class": "logging.StreamHandler", "formatter": "default", "stream": "ext://sys.stdout"},
    }
    if to_file:
        log_dir = Path(os.getenv("LOG_DIR", "logs"))
        log_dir.mkdir(exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "default",
            "filename": str(log_dir / "cv_screener.log"),
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"}},
        "handlers": handlers,
        "root": {"level": level, "handlers": list(handlers)},
        "loggers": {
            "uvicorn": {"level": "INFO", "handlers": list(handlers), "propagate": False},
            # pdfminer logs a warning for every odd object in a malformed PDF
            "pdfminer": {"level": "ERROR"},
        },
    })
    get_logger("logging").info(f"Logging configured for {environment}: level={level}, file={to_file}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"cv_screener.{name}")


def log_api_call(operation: str):
    """Log start, duration and failure of an async endpoint."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(f"api.{func.__module__}")
            start = time.time()
            logger.info(f"API {operation} started")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(f"API {operation} failed after {time.time() - start:.3f}s: {e}")
                raise
            logger.info(f"API {operation} completed in {time.time() - start:.3f}s")
            return result
        return wrapper
    return decorator


class PerformanceMonitor:
    """Times a block; warns when it runs longer than threshold_ms."""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.elapsed_ms = None

    def __enter__(self):
        self._start = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.time() - self._start) * 1000
        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(f"{self.operation_name} took {self.elapsed_ms:.2f}ms (threshold {self.threshold_ms:.0f}ms)")
        else:
            self.logger.info(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms")
