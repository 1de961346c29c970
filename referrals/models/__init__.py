"""SQLModel сущности хранилища рефералов."""

from .referral import TABLE_NAME, ReferralRecord, ReferralRecordRow, ReferralSnapshot  # noqa: F401

__all__ = [
    "ReferralRecord",
    "ReferralRecordRow",
    "ReferralSnapshot",
    "TABLE_NAME",
]
