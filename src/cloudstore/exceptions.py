"""
cloudstore/exceptions.py - Exit codes and the exceptions which carry them
"""

from enum import IntEnum

from botocore.exceptions import BotoCoreError, ClientError


class ExitCode(IntEnum):
    """Process exit codes shared by every command."""

    SUCCESS = 0
    ERROR = -1
    INVALID_ARGUMENT = -1
    NO_ACCESS = 41
    USAGE = 42
    NOT_FOUND = 44
    EXCEPTION_THROWN = 50
    UNIMPLEMENTED = 51
    SERVICE_UNAVAILABLE = 53
    UNSUPPORTED_VERSION = 55


class StoreExitError(Exception):
    """Base exception for failures which terminate a command."""

    exit_code: int = ExitCode.EXCEPTION_THROWN

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class UsageError(StoreExitError):
    """Raised on invalid command line arguments."""

    exit_code = ExitCode.USAGE


class InvalidArgumentError(StoreExitError):
    """Raised when an option value is present but unusable."""

    exit_code = ExitCode.INVALID_ARGUMENT


class StoreNotFoundError(StoreExitError):
    """Raised when a path, bucket, upload or file does not exist."""

    exit_code = ExitCode.NOT_FOUND


class NoAccessError(StoreExitError):
    """Raised when the store rejects the caller's credentials."""

    exit_code = ExitCode.NO_ACCESS


class ServiceUnavailableError(StoreExitError):
    """Raised when the store is throttling or unavailable."""

    exit_code = ExitCode.SERVICE_UNAVAILABLE


class UnsupportedVersionError(StoreExitError):
    """Raised when a feature is newer than the component asked to provide it."""

    exit_code = ExitCode.UNSUPPORTED_VERSION


class PathExistsError(StoreExitError):
    """Raised when a destination exists and overwriting was not requested."""


class NoMoreElementsError(LookupError):
    """Raised when a listing iterator is advanced past its last page."""


class BulkDeleteError(StoreExitError):
    """A bulk delete call failed; covers every key in the batch."""

    def __init__(self, message: str, keys: list[str], cause: Exception | None = None):
        super().__init__(message)
        self.keys = keys
        self.__cause__ = cause


_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NoSuchUpload", "NotFound"}
_NO_ACCESS_CODES = {"403", "AccessDenied", "InvalidAccessKeyId", "ExpiredToken"}
_UNAVAILABLE_CODES = {"503", "SlowDown", "ServiceUnavailable", "Throttling"}


def translate_exception(action: str, path: str, ex: Exception) -> Exception:
    """
    Convert an SDK exception into the matching StoreExitError.

    Exceptions which are already StoreExitErrors, or not from the SDK,
    are returned unchanged.
    """
    if isinstance(ex, StoreExitError):
        return ex
    if isinstance(ex, ClientError):
        error = ex.response.get("Error", {})
        code = str(error.get("Code", ""))
        message = f"{action} on {path}: {code} {error.get('Message', ex)}".strip()
        if code in _NOT_FOUND_CODES:
            result = StoreNotFoundError(message)
        elif code in _NO_ACCESS_CODES:
            result = NoAccessError(message)
        elif code in _UNAVAILABLE_CODES:
            result = ServiceUnavailableError(message)
        else:
            result = StoreExitError(message)
        result.__cause__ = ex
        return result
    if isinstance(ex, BotoCoreError):
        result = StoreExitError(f"{action} on {path}: {ex}")
        result.__cause__ = ex
        return result
    return ex
