"""Logging setup and stage timing for the RTX config engine.

Module loggers propagate to the ``rtx_config`` logger, which writes to the
console and a rotating file. Stage timings go to ``rtx_config.perf`` and a
separate ``rtx-config-perf.log`` next to the main log, one line per stage::

    decode               | rtx1210-office  |     1.84ms | OK | feature=tunnel | records=2

Environment Variables:
    RTXCONF_LOG_LEVEL: console level, DEBUG/INFO/WARNING/ERROR (default: INFO)
    RTXCONF_LOG_FILE: main log file (default: ~/.rtx-config/rtx-config.log)
    RTXCONF_LOG_MAX_SIZE: max size of each log file in MB (default: 10)
    RTXCONF_LOG_BACKUPS: rotated files to keep (default: 5)
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager, contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

perf_logger = logging.getLogger("rtx_config.perf")
main_logger = logging.getLogger("rtx_config")

MAIN_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s"
PERF_FORMAT = "%(asctime)s.%(msecs)03d | PERF | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_level() -> int:
    """Console level from RTXCONF_LOG_LEVEL."""
    level_str = os.environ.get("RTXCONF_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Main log path from RTXCONF_LOG_FILE."""
    default_path = Path.home() / ".rtx-config" / "rtx-config.log"
    return Path(os.environ.get("RTXCONF_LOG_FILE", str(default_path)))


def _rotating_handler(path: Path, fmt: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=int(os.environ.get("RTXCONF_LOG_MAX_SIZE", "10")) * 1024 * 1024,
        backupCount=int(os.environ.get("RTXCONF_LOG_BACKUPS", "5")),
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging() -> None:
    """Attach console, file and perf handlers. Call once at startup."""
    log_level = get_log_level()
    log_file = get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    perf_log_file = log_file.parent / "rtx-config-perf.log"

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(MAIN_FORMAT, datefmt=DATE_FORMAT))

    # Handlers filter; the logger itself passes everything
    main_logger.setLevel(logging.DEBUG)
    main_logger.addHandler(console_handler)
    main_logger.addHandler(_rotating_handler(log_file, MAIN_FORMAT))

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(_rotating_handler(perf_log_file, PERF_FORMAT))
    perf_logger.propagate = False

    main_logger.info(
        f"Logging initialized: level={logging.getLevelName(log_level)}, "
        f"file={log_file}, perf={perf_log_file}"
    )


class StageTimer:
    """Timing of one engine stage.

    ``context`` is logged with the timing; callers add counts to it while
    the stage runs (records decoded, ghosts found, commands generated).
    """

    def __init__(self, operation: str, device_id: Optional[str] = None, **context: Any):
        self.operation = operation
        self.device_id = device_id
        self.context = dict(context)
        self.started = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000

    def finish(self, error: Optional[BaseException] = None) -> None:
        status = "OK" if error is None else f"FAIL: {error}"
        line = (
            f"{self.operation:20s} | {self.device_id or 'N/A':15s} | "
            f"{self.elapsed_ms:8.2f}ms | {status}"
        )
        if self.context:
            line += " | " + " | ".join(f"{k}={v}" for k, v in self.context.items())
        if error is None:
            perf_logger.info(line)
        else:
            perf_logger.warning(line)


def timed(operation: str, device_id: Optional[str] = None):
    """Decorator timing a sync or async function.

    Without an explicit device_id, ``self.device_id`` is used when present.
    """
    def decorator(func: Callable) -> Callable:
        def start(args) -> StageTimer:
            dev_id = device_id
            if dev_id is None and args and hasattr(args[0], "device_id"):
                dev_id = args[0].device_id
            return StageTimer(operation, dev_id)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            timer = start(args)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                timer.finish(e)
                raise
            timer.finish()
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            timer = start(args)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                timer.finish(e)
                raise
            timer.finish()
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


@contextmanager
def timed_stage(operation: str, device_id: Optional[str] = None, **context: Any):
    """Time a block of engine work; yields the context dict to fill in.

    Usage:
        with timed_stage("reconcile", feature="ip_filter") as ctx:
            result = engine.reconcile(...)
            ctx["ghosts"] = len(result.ghosts)
    """
    timer = StageTimer(operation, device_id, **context)
    try:
        yield timer.context
    except Exception as e:
        timer.finish(e)
        raise
    timer.finish()


@asynccontextmanager
async def timed_section(operation: str, device_id: Optional[str] = None, **context: Any):
    """Async counterpart of timed_stage, for device round trips."""
    timer = StageTimer(operation, device_id, **context)
    try:
        yield timer.context
    except Exception as e:
        timer.finish(e)
        raise
    timer.finish()
