"""Store error taxonomy.

Supabase surfaces failures as PostgREST ``APIError`` objects with PostgreSQL
error codes, or as ``httpx`` transport errors. Everything the feed core sees
is a ``StoreError`` tagged with a ``StoreErrorKind``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

import httpx
from postgrest.exceptions import APIError

UNIQUE_VIOLATION_CODE = "23505"


class StoreErrorKind(str, Enum):
    UNIQUE_VIOLATION = "unique_violation"
    CONNECTIVITY = "connectivity"
    QUERY = "query"
    UNKNOWN = "unknown"


class StoreError(Exception):
    def __init__(
        self,
        message: str,
        kind: StoreErrorKind = StoreErrorKind.UNKNOWN,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.code = code

    def __repr__(self) -> str:
        return f"StoreError(kind={self.kind.value!r}, code={self.code!r}, message={self.message!r})"


def classify_exception(exc: Exception) -> StoreError:
    """Map a client-side exception onto a tagged ``StoreError``."""
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, APIError):
        code = str(exc.code) if exc.code is not None else None
        message = exc.message or str(exc)
        if code == UNIQUE_VIOLATION_CODE:
            return StoreError(message, StoreErrorKind.UNIQUE_VIOLATION, code)
        return StoreError(message, StoreErrorKind.QUERY, code)
    if isinstance(exc, httpx.TransportError):
        return StoreError(str(exc) or exc.__class__.__name__, StoreErrorKind.CONNECTIVITY)
    return StoreError(str(exc) or "Unknown error", StoreErrorKind.UNKNOWN)
