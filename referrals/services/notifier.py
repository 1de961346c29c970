"""Живые подписки на снимок (запись контакта, кого он привёл).

Писатель после коммита вызывает publish() с затронутыми contact_id. Публикация
только помечает подписки «грязными»: пересчёт снимка выполняет сам потребитель,
когда забирает следующий элемент, поэтому медленный подписчик не тормозит запись,
а более старый снимок никогда не приходит после нового.
"""

from __future__ import annotations

import asyncio
import weakref
from collections import defaultdict
from typing import Awaitable, Callable, Iterable

from loguru import logger

from referrals.models import ReferralSnapshot

SnapshotLoader = Callable[[str], Awaitable[ReferralSnapshot]]


class ReferralSubscription:
    """Бесконечная асинхронная последовательность снимков для одного контакта.

    Первый снимок вычисляется сразу, дальше – после каждой публикации, которая
    касается контакта. Одинаковые подряд снимки не повторяются. Ошибка загрузки
    завершает последовательность этой ошибкой и отменяет подписку.

    Любое прерывание шага (отмена задачи-потребителя, asyncio.wait_for с
    таймаутом) тоже снимает подписку. Ждать с дедлайном, не теряя подписку, можно
    через отдельную задачу: asyncio.wait({task}, timeout=...), затем снова await task.
    """

    def __init__(
        self,
        notifier: "ReferralChangeNotifier",
        contact_id: str,
        loader: SnapshotLoader,
    ) -> None:
        self.contact_id = contact_id
        self._notifier = notifier
        self._loader = loader
        self._dirty = asyncio.Event()
        self._dirty.set()
        self._last: ReferralSnapshot | None = None
        self._cancelled = False
        self.emitted = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> bool:
        """Есть непросмотренное изменение (следующий шаг пересчитает снимок)."""

        return self._dirty.is_set() and not self._cancelled

    def invalidate(self) -> None:
        if not self._cancelled:
            self._dirty.set()

    def cancel(self) -> None:
        """Снимает подписку. Повторный вызов ничего не делает."""

        if self._cancelled:
            return
        self._cancelled = True
        self._notifier._discard(self)
        # будим ожидающего потребителя, чтобы итерация завершилась
        self._dirty.set()

    async def aclose(self) -> None:
        self.cancel()

    def __aiter__(self) -> "ReferralSubscription":
        return self

    async def __anext__(self) -> ReferralSnapshot:
        while True:
            if self._cancelled:
                raise StopAsyncIteration
            try:
                await self._dirty.wait()
                if self._cancelled:
                    raise StopAsyncIteration
                self._dirty.clear()
                snapshot = await self._loader(self.contact_id)
            except StopAsyncIteration:
                raise
            except BaseException:
                self.cancel()
                raise
            if self._cancelled:
                raise StopAsyncIteration
            if snapshot == self._last:
                continue
            self._last = snapshot
            self.emitted += 1
            return snapshot

    async def __aenter__(self) -> "ReferralSubscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.cancel()


class ReferralChangeNotifier:
    """Реестр подписок contact_id -> набор подписок (слабые ссылки)."""

    def __init__(self, loader: SnapshotLoader) -> None:
        self._loader = loader
        self._subscriptions: dict[str, weakref.WeakSet[ReferralSubscription]] = defaultdict(
            weakref.WeakSet
        )
        self._closed = False

    def observe(self, contact_id: str) -> ReferralSubscription:
        """Открывает новую подписку; каждая подписка независима и не перезапускается."""

        subscription = ReferralSubscription(self, contact_id, self._loader)
        if self._closed:
            subscription.cancel()
            return subscription
        self._subscriptions[contact_id].add(subscription)
        logger.debug("Подписка на {contact} открыта", contact=contact_id)
        return subscription

    def publish(self, contact_ids: Iterable[str | None] | None = None) -> int:
        """Помечает затронутые подписки. None – затронуто всё (например, сброс таблицы)."""

        if contact_ids is None:
            targets = list(self._subscriptions)
        else:
            targets = {cid for cid in contact_ids if cid is not None}
        touched = 0
        for contact_id in targets:
            watchers = self._subscriptions.get(contact_id)
            if not watchers:
                continue
            for subscription in list(watchers):
                subscription.invalidate()
                touched += 1
        return touched

    def active_count(self, contact_id: str | None = None) -> int:
        if contact_id is not None:
            return len(self._subscriptions.get(contact_id, ()))
        return sum(len(watchers) for watchers in self._subscriptions.values())

    def close(self) -> None:
        """Отменяет все подписки (закрытие хранилища)."""

        self._closed = True
        for watchers in list(self._subscriptions.values()):
            for subscription in list(watchers):
                subscription.cancel()
        self._subscriptions.clear()

    def _discard(self, subscription: ReferralSubscription) -> None:
        watchers = self._subscriptions.get(subscription.contact_id)
        if watchers is None:
            return
        watchers.discard(subscription)
        if not watchers:
            self._subscriptions.pop(subscription.contact_id, None)
        logger.debug("Подписка на {contact} закрыта", contact=subscription.contact_id)


__all__ = ["ReferralChangeNotifier", "ReferralSubscription", "SnapshotLoader"]
