import logging
import os
from pathlib import Path
from typing import Any


def _env_level(default: int) -> int:
    name = os.environ.get("ZOINER_LOG_LEVEL")
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def get_logger(name: str, level=logging.INFO) -> logging.Logger:
    """Get a named logger with standard formatting.

    Example:
        logger = get_logger(__name__)
        logger.info("This is an info message.")

    ZOINER_LOG_LEVEL in the environment overrides ``level`` for every logger.

    Returns:
        logging.Logger: Configured logger instance.
    """
    level = _env_level(level)
    logger = logging.getLogger(name)
    logs_dir = Path("log")
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except Exception:
        # read-only working dir: stream only
        logs_dir = None

    # repeated calls (tests, reloads) must not stack handlers
    if logger.handlers:
        logger.setLevel(level)
        return logger

    filehandler = None
    if logs_dir is not None:
        filehandler = logging.FileHandler(str(logs_dir / f"{name}.log"), encoding="utf-8")
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s     || %(name)s \n%(levelname)s   || %(message)s \n',
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    if filehandler is not None:
        filehandler.setFormatter(formatter)
        logger.addHandler(filehandler)

    logger.setLevel(level)
    logger.propagate = False
    return logger


def stage_event(logger: logging.Logger, stage: str, cast_hash: str | None, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one structured record for a pipeline stage.

    The fields are rendered into the message as ``key=value`` pairs and are also
    attached to the record (``record.stage``, ``record.cast_hash``, ``record.fields``)
    so handlers can consume them without parsing text.
    """
    rendered = " ".join(f"{k}={v}" for k, v in fields.items())
    logger.log(
        level,
        "stage=%s hash=%s %s",
        stage,
        cast_hash,
        rendered,
        extra={"stage": stage, "cast_hash": cast_hash, "fields": dict(fields)},
    )
