"""Полная очистка таблицы рефералов (для отладки, подтверждения не спрашивает)."""

from __future__ import annotations

import asyncio

from config.settings import get_settings
from referrals.context import open_repository
from referrals.logging_config import setup_logging


async def reset_db() -> None:
    async with open_repository() as repository:
        await repository.reset_all()


def main() -> None:
    cfg = get_settings().logging
    setup_logging(json=cfg.json_format, level=cfg.level)
    asyncio.run(reset_db())


if __name__ == "__main__":
    main()
