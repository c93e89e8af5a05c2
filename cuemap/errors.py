# cuemap/errors.py

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories surfaced by every CueMap client call."""

    AUTHENTICATION = "authentication"
    REQUEST_FAILED = "request_failed"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"


class CueMapError(Exception):
    """Raised when a call to the CueMap engine fails.

    There is a single exception type for all failures so callers only need
    one `except` clause; inspect `kind` to tell an auth failure from a bad
    status, a network fault or an elapsed deadline. `status_code` is only set
    for `REQUEST_FAILED` (and `AUTHENTICATION`, where it is always 401).
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.cause = cause

    def __repr__(self) -> str:
        return (
            f"CueMapError(kind={self.kind.value!r}, message={str(self)!r}, "
            f"status_code={self.status_code!r})"
        )
