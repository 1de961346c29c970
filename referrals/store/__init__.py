"""Хранилища реферальных записей: SQL и in-memory."""

from .base import ReferralStore, StoreError, StoreSetupError, StoreTransaction
from .memory import MemoryReferralStore
from .sql import SqlReferralStore

__all__ = [
    "MemoryReferralStore",
    "ReferralStore",
    "SqlReferralStore",
    "StoreError",
    "StoreSetupError",
    "StoreTransaction",
]
