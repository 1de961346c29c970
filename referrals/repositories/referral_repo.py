"""Функции для работы с таблицей реферальных записей.

Функции не коммитят: границы транзакции задаёт хранилище (store/sql.py).
"""

from __future__ import annotations

from typing import Optional

from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from referrals.models import ReferralRecord, ReferralRecordRow


async def get_row(session: AsyncSession, contact_id: str) -> Optional[ReferralRecordRow]:
    stmt = select(ReferralRecordRow).where(ReferralRecordRow.contact_id == contact_id)
    result = await session.exec(stmt)
    return result.one_or_none()


async def get_record(session: AsyncSession, contact_id: str) -> Optional[ReferralRecord]:
    row = await get_row(session, contact_id)
    return row.to_record() if row else None


async def list_records(session: AsyncSession) -> list[ReferralRecord]:
    stmt = select(ReferralRecordRow).order_by(col(ReferralRecordRow.contact_id))
    result = await session.exec(stmt)
    return [row.to_record() for row in result.all()]


async def list_referred_by(session: AsyncSession, referrer_id: str) -> list[ReferralRecord]:
    """Записи, где referrer_id совпадает, без строки, ссылающейся на саму себя."""

    stmt = (
        select(ReferralRecordRow)
        .where(
            ReferralRecordRow.referrer_id == referrer_id,
            ReferralRecordRow.contact_id != referrer_id,
        )
        .order_by(col(ReferralRecordRow.contact_id))
    )
    result = await session.exec(stmt)
    return [row.to_record() for row in result.all()]


async def insert_record(session: AsyncSession, record: ReferralRecord) -> None:
    session.add(ReferralRecordRow.from_record(record))
    await session.flush()


async def upsert_record(session: AsyncSession, record: ReferralRecord) -> None:
    row = await get_row(session, record.contact_id)
    if row is None:
        row = ReferralRecordRow.from_record(record)
    else:
        row.referrer_id = record.referrer_id
    session.add(row)
    await session.flush()


async def update_record(session: AsyncSession, record: ReferralRecord) -> bool:
    row = await get_row(session, record.contact_id)
    if row is None:
        return False
    row.referrer_id = record.referrer_id
    session.add(row)
    await session.flush()
    return True


async def delete_record(session: AsyncSession, contact_id: str) -> bool:
    row = await get_row(session, contact_id)
    if row is None:
        return False
    await session.delete(row)
    await session.flush()
    return True


__all__ = [
    "delete_record",
    "get_record",
    "get_row",
    "insert_record",
    "list_records",
    "list_referred_by",
    "update_record",
    "upsert_record",
]
