"""
Error taxonomy for gitsecrets.

Every failure that leaves a component is one of the classes below.
Low-level failures (OSError, git exit codes, cipher exceptions, YAML
errors) are caught at the component boundary and re-raised with
``raise ... from exc`` so the original cause stays on ``__cause__``.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    CRYPTO = "crypto"
    REPOSITORY = "repository"
    FILE_SYSTEM = "file_system"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"


class GitSecretsError(Exception):
    """Base class for all gitsecrets errors."""

    kind: ErrorKind

    @property
    def cause(self) -> BaseException | None:
        """The low-level exception this error wraps, if any."""
        return self.__cause__


class CryptoError(GitSecretsError):
    """Bad password, malformed or corrupted ciphertext, cipher failure."""

    kind = ErrorKind.CRYPTO


class IntegrityError(CryptoError):
    """One or more artifacts failed verification during a pull.

    Raised once after the whole batch was attempted; ``failures`` lists
    every ``(file, reason)`` pair.
    """

    def __init__(self, failures: list[tuple[str, str]]):
        self.failures = list(failures)
        details = "; ".join(f"{name}: {reason}" for name, reason in self.failures)
        super().__init__(
            f"integrity check failed for {len(self.failures)} file(s): {details}"
        )


class RepositoryError(GitSecretsError):
    """Git unavailable, bad URL, missing branch, non-fast-forward, push failure."""

    kind = ErrorKind.REPOSITORY


class FileSystemError(GitSecretsError):
    """Missing or unreadable directories, read/write failures, missing backup."""

    kind = ErrorKind.FILE_SYSTEM


class ValidationError(GitSecretsError):
    """Empty or unsafe path input."""

    kind = ErrorKind.VALIDATION


class ConfigurationError(GitSecretsError):
    """Unreadable or malformed configuration file."""

    kind = ErrorKind.CONFIGURATION
