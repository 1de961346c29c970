"""Контракт хранилища реферальных записей.

Хранилище отвечает только за физическое хранение и «сырые» выборки, бизнес-правил
здесь нет. Все записи идут через один писательский замок (asyncio.Lock отдаёт его
в порядке ожидания), поэтому порядок отправки совпадает с порядком коммита.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager

from referrals.models import ReferralRecord


class StoreError(Exception):
    """Сбой движка хранения (I/O, ограничения, закрытое хранилище)."""


class StoreSetupError(RuntimeError):
    """Не удалось создать схему. Продолжать работу с таким хранилищем нельзя."""


class StoreTransaction(ABC):
    """Операции, доступные внутри одной транзакции."""

    @abstractmethod
    async def fetch_one(self, contact_id: str) -> ReferralRecord | None: ...

    @abstractmethod
    async def fetch_all(self) -> list[ReferralRecord]: ...

    @abstractmethod
    async def fetch_where_referrer(self, contact_id: str) -> list[ReferralRecord]:
        """Записи, приведённые contact_id, без строки contact_id == referrer_id."""

    @abstractmethod
    async def insert(self, record: ReferralRecord) -> None: ...

    @abstractmethod
    async def upsert(self, record: ReferralRecord) -> None: ...

    @abstractmethod
    async def update(self, record: ReferralRecord) -> bool: ...

    @abstractmethod
    async def delete(self, contact_id: str) -> bool: ...


class ReferralStore(ABC):
    """Таблица реферальных записей с дисциплиной read/write транзакций."""

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreError("Хранилище закрыто")

    @abstractmethod
    async def create_schema(self) -> None:
        """Идемпотентно создаёт таблицу. При сбое бросает StoreSetupError."""

    @abstractmethod
    def read(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Транзакция чтения: согласованный снимок, записи внутри запрещены."""

    @abstractmethod
    def write(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Писательская транзакция: всё или ничего, строго по одной."""

    @abstractmethod
    async def erase(self) -> None:
        """Удаляет все данные и заново создаёт схему."""

    async def dispose(self) -> None:
        self._closed = True


__all__ = ["ReferralStore", "StoreError", "StoreSetupError", "StoreTransaction"]
