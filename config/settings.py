"""Глобальные настройки хранилища реферальных связей.

Настройки разделены по доменам (хранилище, репозиторий, логирование), вся
конфигурация загружается из переменных окружения через Pydantic Settings.
Для тестов и превью достаточно указать backend=memory или in-memory DSN SQLite.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, PositiveFloat, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
ACCESSIBLE_ENV_FILE = BASE_DIR / "config" / "runtime.env"
DEFAULT_ENV_FILE = BASE_DIR / ".env"
ENV_FILE = ACCESSIBLE_ENV_FILE if ACCESSIBLE_ENV_FILE.exists() else DEFAULT_ENV_FILE


class DatabaseSettings(BaseModel):
    """SQLModel + aiosqlite (по умолчанию) либо in-memory фейк."""

    backend: Literal["sql", "memory"] = "sql"
    dsn: str = Field(
        "sqlite+aiosqlite:///./database/referrals.db",
        description="Строка подключения SQLAlchemy/SQLModel",
    )
    echo: bool = False

    @field_validator("dsn", mode="before")
    @classmethod
    def _strip_dsn(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class RepositorySettings(BaseModel):
    """Параметры операций репозитория."""

    operation_timeout_sec: PositiveFloat | None = Field(
        None, description="Таймаут одной операции (None – без ограничения)"
    )


class LoggingSettings(BaseModel):
    """Формат и уровень loguru."""

    level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"
    json_format: bool = False


class AppSettings(BaseSettings):
    """Главный контейнер настроек."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database: DatabaseSettings = DatabaseSettings()
    repository: RepositorySettings = RepositorySettings()
    logging: LoggingSettings = LoggingSettings()


# Ленивый синглтон (избегаем глобальных переменных в модулях).
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Возвращает единый экземпляр настроек.

    Значения кэшируются, поэтому чтение .env происходит ровно один раз за процесс.
    """

    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reset_settings() -> None:
    """Сбрасывает кэш настроек (нужно тестам, меняющим окружение)."""

    global _settings
    _settings = None


__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "RepositorySettings",
    "get_settings",
    "reset_settings",
]
