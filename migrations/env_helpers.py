"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an alembic context.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlparse, urlunparse

_DRIVER_PREFIX = "postgresql+psycopg2://"


def normalize_database_url(url: str, password: str | None = None) -> str:
    """Turn a managed-Postgres URL into a SQLAlchemy psycopg2 URL.

    Accepts ``postgres://`` and ``postgresql://`` schemes (hosted providers
    hand out either). When the URL has no password and one is supplied
    separately, it is injected URL-encoded.
    """
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = _DRIVER_PREFIX + url[len("postgresql://"):]
    if not url.startswith(_DRIVER_PREFIX):
        raise ValueError("DATABASE_URL must be a postgres:// or postgresql:// URL")

    if password:
        parsed = urlparse(url)
        if not parsed.password:
            netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(password)}@{parsed.hostname}"
            if parsed.port:
                netloc += f":{parsed.port}"
            url = urlunparse(parsed._replace(netloc=netloc))
    return url


def get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    return normalize_database_url(url, os.environ.get("DB_PASSWORD") or None)
