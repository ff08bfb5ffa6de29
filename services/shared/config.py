"""Environment-driven configuration for the salon service.

Precedence for the database URL is ``<SERVICE>_DATABASE_URL``, then
``DATABASE_URL``, then a development default. The development defaults carry
throwaway credentials: they only produce a warning during development and are
refused outright when ``ENVIRONMENT`` is ``production``.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import warnings
from typing import Dict, Iterable, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

_DEFAULT_DATABASE_URLS: Dict[str, str] = {
    "salon": "postgresql://user:password@db_salon:5432/salondb",
}

_DEFAULT_STORAGE_CHANNEL = "salon-storage-events"
_MIN_SECRET_LENGTH = 32

_WEAK_PASSWORDS = frozenset({"password", "123456", "admin", "root", "test"})
_PLACEHOLDER_SECRETS = frozenset({"secret", "changeme", "default", "dev-secret-change-me"})


@dataclass(frozen=True)
class DatabaseConfig:
    url: str


@dataclass(frozen=True)
class RedisConfig:
    """Empty ``url`` means the SQL store is used and no cross-process sync runs."""

    url: str
    channel: str


@dataclass(frozen=True)
class ServiceConfig:
    name: str
    host: str
    port: int
    root_path: str
    log_level: int
    database: DatabaseConfig
    redis: RedisConfig


def _is_production() -> bool:
    env = os.getenv("ENVIRONMENT", os.getenv("ENV", "development"))
    return env.lower() in ("production", "prod")


def _refuse_or_warn(message: str) -> None:
    if _is_production():
        raise ValueError(message)
    warnings.warn(message, UserWarning, stacklevel=3)


def _lookup_database_url(service_name: str) -> str:
    service_env = f"{service_name.upper()}_DATABASE_URL"
    explicit = os.getenv(service_env) or os.getenv("DATABASE_URL")
    if explicit:
        return explicit

    fallback = _DEFAULT_DATABASE_URLS.get(service_name, "")
    if fallback:
        _refuse_or_warn(
            f"Using the development database URL for {service_name}; "
            f"set {service_env} or DATABASE_URL."
        )
    return fallback


def _database_password(db_url: str) -> Optional[str]:
    try:
        return make_url(db_url).password
    except ArgumentError:
        return None


def _check_credentials(db_url: str, secret_key: Optional[str]) -> None:
    password = _database_password(db_url)
    if password is not None and str(password).lower() in _WEAK_PASSWORDS:
        _refuse_or_warn("DATABASE_URL uses a well-known password.")

    if not secret_key:
        return
    if secret_key in _PLACEHOLDER_SECRETS:
        _refuse_or_warn("SECRET_KEY is a placeholder value. Generate one with: openssl rand -hex 64")
    elif len(secret_key) < _MIN_SECRET_LENGTH:
        warnings.warn(
            f"SECRET_KEY has {len(secret_key)} characters; use at least {_MIN_SECRET_LENGTH}.",
            UserWarning,
            stacklevel=2,
        )


def _log_level(value: str, choices: Iterable[str] = ("DEBUG", "INFO", "WARNING", "ERROR")) -> int:
    name = value.upper()
    return getattr(logging, name) if name in choices else logging.INFO


def load_service_config(service_name: str) -> ServiceConfig:
    """Resolve the configuration of ``service_name`` from the environment.

    Raises ``ValueError`` when no database URL is available, or when a
    development default or placeholder secret is used in production.
    """
    name = service_name.lower()
    db_url = _lookup_database_url(name)
    if not db_url:
        raise ValueError(f"No database configured for '{name}'. Set {name.upper()}_DATABASE_URL or DATABASE_URL.")

    _check_credentials(db_url, os.getenv("SECRET_KEY"))

    return ServiceConfig(
        name=name,
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("APP_PORT", "8000")),
        root_path=os.getenv("APP_ROOT_PATH", ""),
        log_level=_log_level(os.getenv("LOG_LEVEL", "INFO")),
        database=DatabaseConfig(url=db_url),
        redis=RedisConfig(
            url=os.getenv("REDIS_URL", ""),
            channel=os.getenv("STORAGE_CHANNEL", _DEFAULT_STORAGE_CHANNEL),
        ),
    )
