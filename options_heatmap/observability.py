from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import os
from pathlib import Path
import time

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
PACKAGE_LOGGER = "options_heatmap"


@dataclass(frozen=True)
class RunLogger:
    logger: logging.Logger
    log_path: Path | None
    started_at: datetime
    start_perf: float
    command_name: str


def _safe_name(value: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in value.strip())
    return cleaned or "options_heatmap"


def build_log_path(log_dir: Path, command_name: str, *, now: datetime | None = None) -> Path:
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    return log_dir / f"{_safe_name(command_name)}_{timestamp}_{os.getpid()}.log"


def parse_log_level(value: str | int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level {value!r} (use DEBUG|INFO|WARNING|ERROR)")
    return level


def setup_run_logger(
    log_dir: Path,
    command_name: str,
    *,
    level: int = logging.INFO,
    log_path: Path | None = None,
) -> RunLogger | None:
    """
    Route the package logger to a per-run file under ``{log_dir}/{YYYY-MM-DD}/``.

    Returns None when the log directory cannot be created; commands still run.
    """
    effective_log_path = log_path
    if effective_log_path is None:
        now_utc = datetime.now(timezone.utc)
        effective_log_dir = log_dir / now_utc.strftime("%Y-%m-%d")
        try:
            effective_log_dir.mkdir(parents=True, exist_ok=True)
        except Exception:  # noqa: BLE001
            return None
        effective_log_path = build_log_path(effective_log_dir, command_name, now=now_utc)
    else:
        try:
            effective_log_path.parent.mkdir(parents=True, exist_ok=True)
        except Exception:  # noqa: BLE001
            return None

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = False
    _reset_file_handlers(logger)

    handler = logging.FileHandler(effective_log_path, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    started_at = datetime.now(timezone.utc)
    start_perf = time.perf_counter()
    logger.info("Start %s", command_name)
    return RunLogger(
        logger=logger,
        log_path=effective_log_path,
        started_at=started_at,
        start_perf=start_perf,
        command_name=command_name,
    )


def finalize_run_logger(run_logger: RunLogger) -> None:
    elapsed = time.perf_counter() - run_logger.start_perf
    run_logger.logger.info("End %s duration=%.2fs", run_logger.command_name, elapsed)
    for handler in list(run_logger.logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.flush()


def _reset_file_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            try:
                handler.close()
            except Exception:  # noqa: BLE001
                pass
            logger.removeHandler(handler)
