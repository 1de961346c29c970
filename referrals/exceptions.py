"""Доменные ошибки хранилища реферальных связей.

Вызывающий код ветвится по типу ошибки (например, предложить «перезаписать?»
на AlreadyReferred и показать общее сообщение на SaveFailed), поэтому каждая
разновидность – отдельный класс.
"""

from __future__ import annotations


class ReferralRecordError(Exception):
    """Базовая ошибка операций с реферальными записями."""

    def __init__(self, contact_id: str, message: str | None = None) -> None:
        self.contact_id = contact_id
        super().__init__(message or f"{type(self).__name__}: {contact_id}")


class InvalidContactId(ReferralRecordError, ValueError):
    """Пустой идентификатор контакта или реферера."""


class AlreadyReferred(ReferralRecordError):
    """У контакта уже есть реферер, повторное создание запрещено."""

    def __init__(self, contact_id: str, referrer_id: str | None) -> None:
        self.referrer_id = referrer_id
        super().__init__(
            contact_id, f"Контакт {contact_id} уже привязан к рефереру {referrer_id}"
        )


class NoExistingRecord(ReferralRecordError):
    """Обновление записи, которой нет в таблице."""


class InvalidReferralRelationship(ReferralRecordError):
    """Нарушена проверка прямой обратной ссылки (A привёл B, B привёл A)."""

    def __init__(self, contact_id: str, referrer_id: str, message: str | None = None) -> None:
        self.referrer_id = referrer_id
        super().__init__(
            contact_id,
            message or f"{referrer_id} уже приведён контактом {contact_id}",
        )


class SelfReferral(InvalidReferralRelationship):
    """Контакт не может быть собственным реферером."""

    def __init__(self, contact_id: str) -> None:
        super().__init__(contact_id, contact_id, f"Контакт {contact_id} ссылается сам на себя")


class NotFound(ReferralRecordError):
    """Для контакта нет записи."""


class SaveFailed(ReferralRecordError):
    """Ошибка движка при записи."""


class FetchFailed(ReferralRecordError):
    """Ошибка движка при чтении."""


class DeleteFailed(ReferralRecordError):
    """Ошибка движка при удалении."""


__all__ = [
    "AlreadyReferred",
    "DeleteFailed",
    "FetchFailed",
    "InvalidContactId",
    "InvalidReferralRelationship",
    "NoExistingRecord",
    "NotFound",
    "ReferralRecordError",
    "SaveFailed",
    "SelfReferral",
]
