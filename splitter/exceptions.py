"""Custom exception classes for the splitter and the remote sync engine."""

from pathlib import Path
from typing import Optional


class SplitterError(Exception):
    """
    Base exception class for all fatal splitter errors.

    Every subclass carries a remediation string telling the operator
    exactly what to do before running again.
    """

    remediation: str = ""

    def __init__(self, message: str, remediation: Optional[str] = None):
        super().__init__(message)
        if remediation is not None:
            self.remediation = remediation


def _remove_command(path: Path) -> str:
    return f'rm "{path}"'


class ConfigError(SplitterError):
    """
    Raised when run parameters are missing or invalid.
    """
    remediation = "Fix the run parameters and run again."


class SourceUnavailableError(SplitterError):
    """
    Raised when the source file or the output directory does not exist.
    """
    remediation = "Check that the source file and the output directory exist."


class SizeMismatchError(SplitterError):
    """
    Raised when an existing chunk's length differs from its expected length.
    """

    def __init__(self, path: Path, expected: int, actual: int):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Partial chunk detected: {path} (expected {expected} bytes, found {actual} bytes)",
            remediation=(
                "This indicates an incomplete or corrupted chunk from a previous run. "
                f"Remove it and run again: {_remove_command(path)}"
            ),
        )


class IntegrityMismatchError(SplitterError):
    """
    Raised when the boundary chunk's digest differs from the source range digest.
    """

    def __init__(self, path: Path, chunk_digest: str, source_digest: str):
        self.path = path
        self.chunk_digest = chunk_digest
        self.source_digest = source_digest
        super().__init__(
            f"Last chunk integrity verification failed: {path} "
            f"(chunk digest {chunk_digest}, source digest {source_digest})",
            remediation=(
                "This indicates the last chunk is corrupted or incomplete. "
                f"Remove it and run again: {_remove_command(path)}"
            ),
        )


class CopyFailureError(SplitterError):
    """
    Raised when a chunk could not be fully copied from the source.
    """

    def __init__(self, path: Path, expected: int, written: int, reason: str = ""):
        self.path = path
        self.expected = expected
        self.written = written
        message = f"Error creating chunk {path}: wrote {written} of {expected} bytes"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message,
            remediation=(
                "The partial chunk is left in place and will be reported on the next run. "
                f"Free up space or fix the cause, then remove it: {_remove_command(path)}"
            ),
        )


class RemoteUnavailableError(SplitterError):
    """
    Raised when the remote object store cannot be reached.
    """
    remediation = "Check network access to the remote object store and run again."


class RemoteAuthError(RemoteUnavailableError):
    """
    Raised when the remote object store rejects the credentials.
    """
    remediation = "Set B2_APPLICATION_KEY_ID and B2_APPLICATION_KEY (or the config file) and run again."


class UploadFailureError(SplitterError):
    """
    Raised when a chunk upload fails. Handled per chunk, never fatal.
    """
    remediation = "The local chunk was kept; run again to retry the upload."


class UploadVerifyFailureError(UploadFailureError):
    """
    Raised when the remote digest does not match after an upload.
    """


class InvalidSuffixError(ValueError):
    """
    Raised when a string is not a well-formed chunk suffix.
    """


class SuffixRangeError(ValueError):
    """
    Raised when an index cannot be encoded with the configured suffix width.
    """
