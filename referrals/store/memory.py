"""In-memory фейк хранилища для тестов и превью.

Повторяет семантику SQL-хранилища: уникальность contact_id, атомарные записи
(изменения применяются к рабочей копии и публикуются только при успехе).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger

from referrals.models import ReferralRecord
from .base import ReferralStore, StoreError, StoreTransaction


class MemoryTransaction(StoreTransaction):
    def __init__(self, rows: dict[str, ReferralRecord], *, writable: bool) -> None:
        self._rows = rows
        self._writable = writable

    def _ensure_writable(self) -> None:
        if not self._writable:
            raise StoreError("Запись в транзакции чтения")

    async def fetch_one(self, contact_id: str) -> ReferralRecord | None:
        return self._rows.get(contact_id)

    async def fetch_all(self) -> list[ReferralRecord]:
        return [self._rows[key] for key in sorted(self._rows)]

    async def fetch_where_referrer(self, contact_id: str) -> list[ReferralRecord]:
        return [
            self._rows[key]
            for key in sorted(self._rows)
            if self._rows[key].referrer_id == contact_id and key != contact_id
        ]

    async def insert(self, record: ReferralRecord) -> None:
        self._ensure_writable()
        if record.contact_id in self._rows:
            raise StoreError(f"UNIQUE constraint failed: contact_id={record.contact_id}")
        self._rows[record.contact_id] = record

    async def upsert(self, record: ReferralRecord) -> None:
        self._ensure_writable()
        self._rows[record.contact_id] = record

    async def update(self, record: ReferralRecord) -> bool:
        self._ensure_writable()
        if record.contact_id not in self._rows:
            return False
        self._rows[record.contact_id] = record
        return True

    async def delete(self, contact_id: str) -> bool:
        self._ensure_writable()
        return self._rows.pop(contact_id, None) is not None


class MemoryReferralStore(ReferralStore):
    """Словарь contact_id -> ReferralRecord; None означает «схема не создана»."""

    def __init__(self) -> None:
        super().__init__()
        self._rows: dict[str, ReferralRecord] | None = None

    def _table(self) -> dict[str, ReferralRecord]:
        self._ensure_open()
        if self._rows is None:
            raise StoreError("no such table: contact_referral_records")
        return self._rows

    async def create_schema(self) -> None:
        self._ensure_open()
        if self._rows is None:
            self._rows = {}
        logger.debug("In-memory схема рефералов готова")

    @asynccontextmanager
    async def read(self) -> AsyncIterator[StoreTransaction]:
        yield MemoryTransaction(dict(self._table()), writable=False)

    @asynccontextmanager
    async def write(self) -> AsyncIterator[StoreTransaction]:
        self._ensure_open()
        async with self._write_lock:
            working = dict(self._table())
            yield MemoryTransaction(working, writable=True)
            self._rows = working

    async def erase(self) -> None:
        self._ensure_open()
        async with self._write_lock:
            self._rows = {}


__all__ = ["MemoryReferralStore", "MemoryTransaction"]
