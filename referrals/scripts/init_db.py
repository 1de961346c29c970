"""Утилита для первичной инициализации базы данных."""

from __future__ import annotations

import asyncio

from config.settings import get_settings
from referrals.context import build_store
from referrals.logging_config import setup_logging


async def init_db() -> None:
    store = build_store(get_settings().database)
    try:
        await store.create_schema()
    finally:
        await store.dispose()


def main() -> None:
    cfg = get_settings().logging
    setup_logging(json=cfg.json_format, level=cfg.level)
    asyncio.run(init_db())


if __name__ == "__main__":
    main()
