# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ride_match"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"
    COMPONENT_MODE: str = "admin_api"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Допустимы только colored и json."""
        if v not in ("colored", "json"):
            raise ValueError(f"Неизвестный формат логов: {v}")
        return v


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "ride"
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class StoreSettings(BaseModel):
    """Настройки хранилища документов."""
    STORE_BACKEND: str = "redis"

    @field_validator("STORE_BACKEND")
    @classmethod
    def check_backend(cls, v: str) -> str:
        """Поддерживаются redis и memory."""
        if v not in ("redis", "memory"):
            raise ValueError(f"Неизвестный бэкенд хранилища: {v}")
        return v


class RideSettings(BaseModel):
    """Правила матчинга и торга."""
    PRESENCE_LIVENESS_SECONDS: int = Field(300, gt=0)
    CALL_STALENESS_HOURS: float = Field(12.0, gt=0)
    DEFAULT_RATING: float = 5.0
    MIN_RATING: int = 1
    MAX_RATING: int = 5
    ALLOW_RENEGOTIATION_AFTER_AGREEMENT: bool = True
    ATOMIC_CLAIMS: bool = True
    DEFAULT_SEARCH_RADIUS_KM: float = Field(5.0, gt=0)


class AdminSettings(BaseModel):
    """Настройки административного API."""
    ADMIN_API_HOST: str = "0.0.0.0"
    ADMIN_API_PORT: int = 8090
    ADMIN_RESET_ENABLED: bool = True
    ADMIN_TOKEN: str = ""

    @field_validator("ADMIN_TOKEN", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает токен из переменных окружения."""
        if not v:
            return os.getenv("ADMIN_TOKEN", "")
        return v


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    ride: RideSettings = Field(default_factory=RideSettings)
    admin: AdminSettings = Field(default_factory=AdminSettings)

    @classmethod
    def from_config_json(cls, path: Path | None = None) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и адреса переопределяются из переменных окружения.
        """
        config_data = load_config_json(path)

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "ride_match"),
                VERSION=data.get("VERSION", "1.0.0"),
                DEBUG=data.get("DEBUG", True),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
                COMPONENT_MODE=os.getenv("COMPONENT_MODE", data.get("COMPONENT_MODE", "admin_api")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=data.get("LOG_LEVEL", "DEBUG"),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", data.get("REDIS_PORT", 6379))),
                REDIS_DB=data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", data.get("REDIS_PASSWORD", "")),
                REDIS_NAMESPACE=data.get("REDIS_NAMESPACE", "ride"),
                REDIS_MAX_CONNECTIONS=data.get("REDIS_MAX_CONNECTIONS", 50),
            ),
            store=StoreSettings(
                STORE_BACKEND=os.getenv("STORE_BACKEND", data.get("STORE_BACKEND", "redis")),
            ),
            ride=RideSettings(
                PRESENCE_LIVENESS_SECONDS=data.get("PRESENCE_LIVENESS_SECONDS", 300),
                CALL_STALENESS_HOURS=data.get("CALL_STALENESS_HOURS", 12.0),
                DEFAULT_RATING=data.get("DEFAULT_RATING", 5.0),
                MIN_RATING=data.get("MIN_RATING", 1),
                MAX_RATING=data.get("MAX_RATING", 5),
                ALLOW_RENEGOTIATION_AFTER_AGREEMENT=data.get("ALLOW_RENEGOTIATION_AFTER_AGREEMENT", True),
                ATOMIC_CLAIMS=data.get("ATOMIC_CLAIMS", True),
                DEFAULT_SEARCH_RADIUS_KM=data.get("DEFAULT_SEARCH_RADIUS_KM", 5.0),
            ),
            admin=AdminSettings(
                ADMIN_API_HOST=data.get("ADMIN_API_HOST", "0.0.0.0"),
                ADMIN_API_PORT=int(os.getenv("ADMIN_API_PORT", data.get("ADMIN_API_PORT", 8090))),
                ADMIN_RESET_ENABLED=data.get("ADMIN_RESET_ENABLED", True),
                ADMIN_TOKEN=os.getenv("ADMIN_TOKEN", data.get("ADMIN_TOKEN", "")),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
