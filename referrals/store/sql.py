"""SQLModel-хранилище поверх async SQLAlchemy (aiosqlite по умолчанию)."""

from __future__ import annotations

import contextlib
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from referrals.repositories import referral_repo as repo
from referrals.models import ReferralRecord, ReferralRecordRow
from .base import ReferralStore, StoreError, StoreSetupError, StoreTransaction

_TABLES = [ReferralRecordRow.__table__]


class _ReadOnlyError(StoreError):
    pass


class SqlTransaction(StoreTransaction):
    """Обёртка над AsyncSession; коммитом управляет хранилище."""

    def __init__(self, session: AsyncSession, *, writable: bool) -> None:
        self._session = session
        self._writable = writable

    def _ensure_writable(self) -> None:
        if not self._writable:
            raise _ReadOnlyError("Запись в транзакции чтения")

    async def fetch_one(self, contact_id: str) -> ReferralRecord | None:
        return await repo.get_record(self._session, contact_id)

    async def fetch_all(self) -> list[ReferralRecord]:
        return await repo.list_records(self._session)

    async def fetch_where_referrer(self, contact_id: str) -> list[ReferralRecord]:
        return await repo.list_referred_by(self._session, contact_id)

    async def insert(self, record: ReferralRecord) -> None:
        self._ensure_writable()
        await repo.insert_record(self._session, record)

    async def upsert(self, record: ReferralRecord) -> None:
        self._ensure_writable()
        await repo.upsert_record(self._session, record)

    async def update(self, record: ReferralRecord) -> bool:
        self._ensure_writable()
        return await repo.update_record(self._session, record)

    async def delete(self, contact_id: str) -> bool:
        self._ensure_writable()
        return await repo.delete_record(self._session, contact_id)


def _is_memory_dsn(dsn: str) -> bool:
    url = make_url(dsn)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _ensure_sqlite_dir(dsn: str) -> None:
    url = make_url(dsn)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def build_engine(dsn: str, *, echo: bool = False) -> AsyncEngine:
    """In-memory SQLite живёт в одном соединении (StaticPool), файл – без пула."""

    if _is_memory_dsn(dsn):
        return create_async_engine(
            dsn,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    _ensure_sqlite_dir(dsn)
    return create_async_engine(dsn, echo=echo, poolclass=NullPool)


class SqlReferralStore(ReferralStore):
    """Таблица contact_referral_records в реляционной БД."""

    def __init__(self, dsn: str, *, echo: bool = False) -> None:
        super().__init__()
        self._dsn = dsn
        self._shared_connection = _is_memory_dsn(dsn)
        self._engine = build_engine(dsn, echo=echo)
        self._session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_schema(self) -> None:
        self._ensure_open()
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all, tables=_TABLES)
        except SQLAlchemyError as exc:
            logger.critical("Не удалось создать схему рефералов ({dsn}): {error}", dsn=self._dsn, error=exc)
            raise StoreSetupError("Создание схемы рефералов завершилось ошибкой") from exc
        logger.debug("Схема рефералов готова: {dsn}", dsn=self._dsn)

    def _read_guard(self):
        # одно общее соединение: чтение не должно пересекаться с открытой записью
        if self._shared_connection:
            return self._write_lock
        return contextlib.nullcontext()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[StoreTransaction]:
        self._ensure_open()
        async with self._read_guard():
            try:
                async with self._session_maker() as session:
                    yield SqlTransaction(session, writable=False)
            except SQLAlchemyError as exc:
                raise StoreError(str(exc)) from exc

    @asynccontextmanager
    async def write(self) -> AsyncIterator[StoreTransaction]:
        self._ensure_open()
        async with self._write_lock:
            self._ensure_open()
            try:
                async with self._session_maker() as session:
                    async with session.begin():
                        yield SqlTransaction(session, writable=True)
            except SQLAlchemyError as exc:
                raise StoreError(str(exc)) from exc

    async def erase(self) -> None:
        """Очищает таблицу одной транзакцией; таблица при этом не исчезает."""

        self._ensure_open()
        async with self._write_lock:
            self._ensure_open()
            try:
                async with self._engine.begin() as conn:
                    await conn.run_sync(SQLModel.metadata.create_all, tables=_TABLES)
                    await conn.execute(delete(ReferralRecordRow))
            except SQLAlchemyError as exc:
                raise StoreError(str(exc)) from exc

    async def dispose(self) -> None:
        if self._closed:
            return
        await super().dispose()
        await self._engine.dispose()
        logger.debug("Движок рефералов закрыт: {dsn}", dsn=self._dsn)


__all__ = ["SqlReferralStore", "SqlTransaction", "build_engine"]
