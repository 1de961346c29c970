"""Хранилище реферальных связей между контактами."""
