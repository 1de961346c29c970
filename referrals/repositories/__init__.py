"""Репозитории для работы с БД."""

from .referral_repo import (
    delete_record,
    get_record,
    get_row,
    insert_record,
    list_records,
    list_referred_by,
    update_record,
    upsert_record,
)

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
