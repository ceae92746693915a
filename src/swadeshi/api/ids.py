"""Identifier checks for values that end up in uuid columns.

Every primary key in the schema is a Postgres uuid. A malformed id is
rejected where it enters the service, so it never reaches a query.
"""

from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator


def canonical_uuid(value: str) -> str:
    """Return the lowercase hyphenated form; ValueError if not a UUID."""
    return str(UUID(value))


def is_uuid(value: str | None) -> bool:
    if not value:
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True


# Request body field holding a row id; fails validation (400) when malformed
UuidStr = Annotated[str, AfterValidator(canonical_uuid)]
