"""
Logging setup for the Rubric Screening API.

Everything logs under the ``screening`` namespace. ``configure_for_environment``
picks handlers from ``ENVIRONMENT``/``LOG_LEVEL``; evaluation code times itself
with ``PerformanceMonitor`` and the two decorators below.
"""
import functools
import inspect
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-34s | %(funcName)-22s:%(lineno)-4d | %(message)s",
}

# level, console, file, format
ENVIRONMENT_PRESETS = {
    "production": (None, True, True, "detailed"),
    "development": ("DEBUG", True, True, "detailed"),
    "testing": ("WARNING", True, False, "simple"),
}

MAX_LOG_BYTES = 10 * 1024 * 1024


def _rotating_handler(path: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": 5,
        "encoding": "utf8",
    }


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed",
) -> None:
    """
    Configure root, uvicorn and HTTP-client loggers via ``dictConfig``.

    Args:
        level: root level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: main log file; defaults to ``$LOG_DIR/screening_<date>.log``
        enable_console: log to stdout
        enable_file: log to rotating files (main log plus an errors-only log)
        format_style: 'simple' or 'detailed'
    """
    stamp = datetime.now().strftime("%Y%m%d")
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_file = Path(log_file) if log_file else log_dir / f"screening_{stamp}.log"

    handlers: Dict[str, Any] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": format_style if format_style in LOG_FORMATS else "detailed",
            "stream": "ext://sys.stdout",
        }
    if enable_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = _rotating_handler(log_file, level)
        handlers["error_file"] = _rotating_handler(log_file.parent / f"screening_errors_{stamp}.log", "ERROR")

    app_handlers = list(handlers)
    server_handlers = [h for h in app_handlers if h != "error_file"]

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            name: {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"} for name, fmt in LOG_FORMATS.items()
        },
        "handlers": handlers,
        "loggers": {
            "": {"level": level, "handlers": app_handlers, "propagate": False},
            "uvicorn": {"level": "INFO", "handlers": server_handlers, "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": server_handlers[:1], "propagate": False},
            # one line per Ollama request otherwise
            "urllib3": {"level": "WARNING", "handlers": [], "propagate": True},
        },
    })

    logger = logging.getLogger("screening.logging")
    logger.info(f"Logging configured - Level: {level}, Console: {enable_console}, File: {enable_file}")
    if enable_file:
        logger.info(f"Log file: {log_file}")


def configure_for_environment() -> None:
    """Apply the preset for ``ENVIRONMENT`` (development by default)."""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    preset = ENVIRONMENT_PRESETS.get(environment)
    if preset is None:
        setup_logging(level=log_level)
        return
    level, console, to_file, style = preset
    setup_logging(level=level or log_level, enable_console=console, enable_file=to_file, format_style=style)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``screening.`` namespace (module names already inside it are kept)."""
    if name == "screening" or name.startswith("screening."):
        return logging.getLogger(name)
    return logging.getLogger(f"screening.{name}")


def log_function_call(func):
    """
    Debug-log entry, duration and failures of a service call. Works on plain
    functions and coroutines alike.
    """
    logger = get_logger(func.__module__)

    def _failed(started: float, exc: Exception) -> None:
        logger.error(f"Error in {func.__qualname__} after {time.time() - started:.3f}s: {exc}")

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            started = time.time()
            logger.debug(f"Entering {func.__qualname__} with args={len(args)}, kwargs={list(kwargs)}")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _failed(started, e)
                raise
            logger.debug(f"Completed {func.__qualname__} in {time.time() - started:.3f}s")
            return result

        return async_wrapper

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        started = time.time()
        logger.debug(f"Entering {func.__qualname__} with args={len(args)}, kwargs={list(kwargs)}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _failed(started, e)
            raise
        logger.debug(f"Completed {func.__qualname__} in {time.time() - started:.3f}s")
        return result

    return sync_wrapper


def log_api_call(operation: str):
    """Info-log start and outcome of an async endpoint under ``screening.api.*``."""
    def decorator(func):
        logger = get_logger(f"api.{func.__module__.rsplit('.', 1)[-1]}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.time()
            logger.info(f"API {operation} started")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed = time.time() - started
                logger.error(f"API {operation} failed after {elapsed:.3f}s: {e}",
                             extra={"execution_time": elapsed, "error": str(e)})
                raise
            elapsed = time.time() - started
            logger.info(f"API {operation} completed in {elapsed:.3f}s", extra={"execution_time": elapsed})
            return result

        return wrapper
    return decorator


class PerformanceMonitor:
    """
    ``with PerformanceMonitor("batched evaluation of 40 profiles", logger, threshold_ms=60000):``

    Logs the duration on exit: a warning above ``threshold_ms``, an error if
    the block raised. ``elapsed_ms`` stays readable afterwards.
    """

    def __init__(self, operation_name: str, logger: Optional[logging.Logger] = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.elapsed_ms = 0.0
        self._started = None

    def __enter__(self):
        self._started = time.perf_counter()
        self.logger.debug(f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(f"{self.operation_name} took {self.elapsed_ms:.2f}ms "
                                f"(over the {self.threshold_ms:.0f}ms threshold)")
        else:
            self.logger.info(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms")
        return False
