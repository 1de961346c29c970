"""Реферальные записи контактов: бизнес-правила поверх хранилища.

Инварианты:
- не более одной записи на contact_id;
- контакт не может ссылаться сам на себя;
- двое не могут привести друг друга (проверяется только прямая пара, цепочки
  A -> B -> C -> A допускаются).

Каждая операция записи – одна транзакция хранилища: проверки и изменение строки
применяются вместе или не применяются вовсе. После коммита затронутые подписки
получают сигнал на пересчёт.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from referrals.exceptions import (
    AlreadyReferred,
    DeleteFailed,
    FetchFailed,
    InvalidContactId,
    InvalidReferralRelationship,
    NoExistingRecord,
    NotFound,
    ReferralRecordError,
    SaveFailed,
    SelfReferral,
)
from referrals.models import ReferralRecord, ReferralSnapshot
from referrals.store import ReferralStore, StoreError, StoreTransaction
from .notifier import ReferralChangeNotifier, ReferralSubscription

T = TypeVar("T")

ALL_CONTACTS = "*"


def _require_id(value: str | None, contact_id: str | None = None) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidContactId(
            contact_id or str(value), f"Некорректный идентификатор контакта: {value!r}"
        )


def _validate(contact_id: str, referrer_id: str | None) -> None:
    _require_id(contact_id)
    if referrer_id is None:
        return
    _require_id(referrer_id, contact_id)
    if referrer_id == contact_id:
        raise SelfReferral(contact_id)


async def _check_back_reference(
    tx: StoreTransaction, contact_id: str, referrer_id: str | None
) -> None:
    """Нельзя назначить реферером того, кого контакт сам привёл."""

    if referrer_id is None:
        return
    back = await tx.fetch_one(referrer_id)
    if back is not None and back.referrer_id == contact_id:
        raise InvalidReferralRelationship(contact_id, referrer_id)


class ReferralRepository:
    """Создание, изменение, удаление и выборки реферальных записей."""

    def __init__(
        self,
        store: ReferralStore,
        *,
        operation_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._timeout = operation_timeout
        self._notifier = ReferralChangeNotifier(self.load_snapshot)

    @property
    def store(self) -> ReferralStore:
        return self._store

    @property
    def notifier(self) -> ReferralChangeNotifier:
        return self._notifier

    async def _run(self, operation: Awaitable[T]) -> T:
        if self._timeout is None:
            return await operation
        return await asyncio.wait_for(operation, self._timeout)

    # --- Запись -------------------------------------------------------------

    async def create_record(self, contact_id: str, referrer_id: str | None = None) -> None:
        """Создаёт запись контакта.

        Запись без реферера можно перезаписать (заглушка, созданная раньше), запись
        с реферером – нельзя: AlreadyReferred.
        """

        _validate(contact_id, referrer_id)
        await self._run(self._create(contact_id, referrer_id))

    async def _create(self, contact_id: str, referrer_id: str | None) -> None:
        previous: ReferralRecord | None = None
        try:
            async with self._store.write() as tx:
                previous = await tx.fetch_one(contact_id)
                if previous is not None and previous.referrer_id is not None:
                    raise AlreadyReferred(contact_id, previous.referrer_id)
                await _check_back_reference(tx, contact_id, referrer_id)
                await tx.upsert(ReferralRecord(contact_id, referrer_id))
        except ReferralRecordError as exc:
            logger.warning("Создание записи {contact} отклонено: {error}", contact=contact_id, error=exc)
            raise
        except StoreError as exc:
            logger.exception("Не удалось сохранить запись {contact}", contact=contact_id)
            raise SaveFailed(contact_id) from exc

        logger.info("Реферальная запись создана: {contact} <- {ref}", contact=contact_id, ref=referrer_id)
        self._notifier.publish(
            (contact_id, referrer_id, previous.referrer_id if previous else None)
        )

    async def update_record(self, contact_id: str, referrer_id: str | None = None) -> None:
        """Меняет (или очищает) реферера существующей записи."""

        _validate(contact_id, referrer_id)
        await self._run(self._update(contact_id, referrer_id))

    async def _update(self, contact_id: str, referrer_id: str | None) -> None:
        try:
            async with self._store.write() as tx:
                previous = await tx.fetch_one(contact_id)
                if previous is None:
                    raise NoExistingRecord(contact_id)
                await _check_back_reference(tx, contact_id, referrer_id)
                await tx.update(ReferralRecord(contact_id, referrer_id))
        except ReferralRecordError as exc:
            logger.warning("Обновление записи {contact} отклонено: {error}", contact=contact_id, error=exc)
            raise
        except StoreError as exc:
            logger.exception("Не удалось обновить запись {contact}", contact=contact_id)
            raise SaveFailed(contact_id) from exc

        logger.info(
            "Реферер {contact} изменён: {old} -> {new}",
            contact=contact_id,
            old=previous.referrer_id,
            new=referrer_id,
        )
        self._notifier.publish((contact_id, referrer_id, previous.referrer_id))

    async def delete_record(self, contact_id: str) -> bool:
        """Удаляет запись. False, если удалять было нечего."""

        _require_id(contact_id)
        return await self._run(self._delete(contact_id))

    async def _delete(self, contact_id: str) -> bool:
        try:
            async with self._store.write() as tx:
                previous = await tx.fetch_one(contact_id)
                deleted = await tx.delete(contact_id)
        except StoreError as exc:
            logger.exception("Не удалось удалить запись {contact}", contact=contact_id)
            raise DeleteFailed(contact_id) from exc

        if deleted:
            logger.info("Реферальная запись удалена: {contact}", contact=contact_id)
            self._notifier.publish((contact_id, previous.referrer_id if previous else None))
        return deleted

    async def reset_all(self) -> None:
        """Стирает таблицу целиком и пересоздаёт схему. Необратимо."""

        try:
            await self._run(self._store.erase())
        except StoreError as exc:
            logger.exception("Не удалось очистить таблицу рефералов")
            raise DeleteFailed(ALL_CONTACTS, "Не удалось очистить таблицу рефералов") from exc
        logger.warning("Таблица рефералов очищена")
        self._notifier.publish(None)

    # --- Чтение -------------------------------------------------------------

    async def fetch_record(self, contact_id: str) -> ReferralRecord | None:
        _require_id(contact_id)
        return await self._run(self._read(contact_id, lambda tx: tx.fetch_one(contact_id)))

    async def fetch_all_records(self) -> list[ReferralRecord]:
        return await self._run(self._read(ALL_CONTACTS, lambda tx: tx.fetch_all()))

    async def _read(self, contact_id: str, query: Callable[[StoreTransaction], Awaitable[T]]) -> T:
        try:
            async with self._store.read() as tx:
                return await query(tx)
        except StoreError as exc:
            raise FetchFailed(contact_id) from exc

    async def fetch_referrer(self, contact_id: str) -> ReferralRecord | None:
        """Запись реферера контакта.

        NotFound – у контакта нет записи. None – реферера нет, либо у реферера нет
        собственной записи (referrer_id есть, а строки под ним нет).
        """

        _require_id(contact_id)
        return await self._run(self._fetch_referrer(contact_id))

    async def _fetch_referrer(self, contact_id: str) -> ReferralRecord | None:
        try:
            async with self._store.read() as tx:
                record = await tx.fetch_one(contact_id)
                if record is None:
                    raise NotFound(contact_id)
                if record.referrer_id is None:
                    return None
                return await tx.fetch_one(record.referrer_id)
        except StoreError as exc:
            raise FetchFailed(contact_id) from exc

    async def fetch_referred_contacts(self, contact_id: str) -> list[ReferralRecord]:
        """Кого привёл контакт; порядок не гарантируется."""

        _require_id(contact_id)
        return await self._run(
            self._read(contact_id, lambda tx: tx.fetch_where_referrer(contact_id))
        )

    async def load_snapshot(self, contact_id: str) -> ReferralSnapshot:
        """Запись контакта и приведённые им записи из одного снимка чтения."""

        try:
            async with self._store.read() as tx:
                record = await tx.fetch_one(contact_id)
                referred = await tx.fetch_where_referrer(contact_id)
        except StoreError as exc:
            raise FetchFailed(contact_id) from exc
        return ReferralSnapshot(record, referred)

    # --- Подписки и жизненный цикл ------------------------------------------

    def observe(self, contact_id: str) -> ReferralSubscription:
        _require_id(contact_id)
        return self._notifier.observe(contact_id)

    async def close(self) -> None:
        self._notifier.close()
        await self._store.dispose()

    async def __aenter__(self) -> "ReferralRepository":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


__all__ = ["ReferralRepository"]
