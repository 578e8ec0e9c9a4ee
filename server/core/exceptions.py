"""Solution cache exception hierarchy."""

from typing import Optional


class SolutionCacheError(Exception):
    """Base exception for all solution-cache errors."""


class CacheStorageError(SolutionCacheError):
    """The persistence medium is unavailable or corrupt."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"[{operation}] {message}")


class ImportFormatError(SolutionCacheError):
    """An export blob could not be parsed; nothing was imported."""


class ResolverError(SolutionCacheError):
    """The remote resolver failed to produce a solution."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)
