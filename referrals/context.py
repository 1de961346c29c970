"""Сборка хранилища и репозитория из настроек.

Вместо глобального синглтона хранилище создаётся явно и явно закрывается:

    async with open_repository() as referrals:
        await referrals.create_record("alice", "bob")
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger

from config.settings import AppSettings, DatabaseSettings, get_settings
from .services import ReferralRepository
from .store import MemoryReferralStore, ReferralStore, SqlReferralStore


def build_store(database: DatabaseSettings) -> ReferralStore:
    if database.backend == "memory":
        return MemoryReferralStore()
    return SqlReferralStore(database.dsn, echo=database.echo)


async def create_repository(settings: AppSettings | None = None) -> ReferralRepository:
    """Создаёт репозиторий и схему. StoreSetupError не перехватывается."""

    settings = settings or get_settings()
    store = build_store(settings.database)
    await store.create_schema()
    logger.info(
        "Хранилище рефералов открыто (backend={backend})",
        backend=settings.database.backend,
    )
    return ReferralRepository(
        store,
        operation_timeout=settings.repository.operation_timeout_sec,
    )


@asynccontextmanager
async def open_repository(settings: AppSettings | None = None) -> AsyncIterator[ReferralRepository]:
    repository = await create_repository(settings)
    try:
        yield repository
    finally:
        await repository.close()
        logger.info("Хранилище рефералов закрыто")


__all__ = ["build_store", "create_repository", "open_repository"]
