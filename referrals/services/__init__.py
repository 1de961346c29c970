"""Сервисы реферальных записей."""

from .notifier import ReferralChangeNotifier, ReferralSubscription
from .referral_repository import ReferralRepository

__all__ = ["ReferralChangeNotifier", "ReferralRepository", "ReferralSubscription"]
