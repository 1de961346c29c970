"""Таблица реферальных связей между контактами."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional

from sqlmodel import Field, SQLModel

TABLE_NAME = "contact_referral_records"


@dataclass(frozen=True, slots=True)
class ReferralRecord:
    """Ребро «кто кого привёл»: контакт и (опционально) его реферер."""

    contact_id: str
    referrer_id: str | None = None

    @property
    def is_referred(self) -> bool:
        return self.referrer_id is not None


class ReferralRecordRow(SQLModel, table=True):
    """Строка таблицы: один контакт – не более одной записи."""

    __tablename__ = TABLE_NAME

    contact_id: str = Field(primary_key=True, unique=True)
    referrer_id: Optional[str] = Field(default=None, nullable=True, index=True)

    @classmethod
    def from_record(cls, record: ReferralRecord) -> "ReferralRecordRow":
        return cls(contact_id=record.contact_id, referrer_id=record.referrer_id)

    def to_record(self) -> ReferralRecord:
        return ReferralRecord(contact_id=self.contact_id, referrer_id=self.referrer_id)


class ReferralSnapshot(NamedTuple):
    """Снимок для подписчиков: собственная запись + кого привёл контакт."""

    record: ReferralRecord | None
    referred: list[ReferralRecord]


__all__ = ["ReferralRecord", "ReferralRecordRow", "ReferralSnapshot", "TABLE_NAME"]
