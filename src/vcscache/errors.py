from __future__ import annotations
from typing import List, Optional


class CacheError(Exception):
    """Base class for everything the artifact cache raises on purpose."""


class PreconditionError(CacheError):
    """A required local file or identity field is missing. Never retried."""


class TransferError(CacheError):
    def __init__(self, operation: str, url: str, attempts: int, exhausted: bool, cause: Optional[BaseException] = None) -> None:
        self.operation, self.url, self.attempts, self.exhausted, self.cause = operation, url, attempts, exhausted, cause
        if exhausted:
            msg = f"{operation} of {url} failed after exhausting {attempts} attempts: {cause}"
        else:
            msg = f"{operation} of {url} failed on first attempt: {cause}"
        super().__init__(msg)


class ExtractionError(CacheError):
    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        super().__init__(f"Could not extract {source}: {reason}")


class CommandError(CacheError):
    def __init__(self, argv: List[str], returncode: int, stderr: str = "") -> None:
        self.argv, self.returncode, self.stderr = list(argv), returncode, stderr
        super().__init__(f"Command {' '.join(self.argv)!r} exited with {returncode}: {stderr.strip()}")


class APIError(CacheError):
    def __init__(self, status: int, method: str, url: str, body: str = "") -> None:
        self.status, self.method, self.url, self.body = status, method, url, body
        super().__init__(f"{method} {url} returned HTTP {status}: {body[:200]}")


class NotFoundError(APIError):
    """The index has no record for the namespace. A cache miss, not a failure."""
