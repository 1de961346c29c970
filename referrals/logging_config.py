"""Настройка loguru для продакшена."""

from __future__ import annotations

import sys
from loguru import logger


def setup_logging(json: bool = False, level: str = "DEBUG", sink=None) -> None:
    """Один sink (stdout по умолчанию); json=True – каждая запись одной JSON-строкой."""

    logger.remove()
    logger.add(
        sink or sys.stdout,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{line} | {message}",
        level=level,
        colorize=not json,
        serialize=json,
        backtrace=False,
        enqueue=True,
    )


__all__ = ["setup_logging"]
