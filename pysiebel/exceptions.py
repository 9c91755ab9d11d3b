"""Custom exceptions for the Siebel REST API client and sync core."""

from typing import Optional


class SiebelError(Exception):
    """Base exception for all pysiebel errors."""

    pass


class SiebelAPIError(SiebelError):
    """Remote call failed (transport or HTTP failure)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SiebelNetworkError(SiebelAPIError):
    """Network-related errors (connection refused, timeout, etc.)."""

    pass


class SiebelAuthenticationError(SiebelAPIError):
    """Invalid credentials or unauthorized access."""

    pass


class SiebelPermissionError(SiebelAPIError):
    """Access to the resource is forbidden."""

    pass


class SiebelInvalidResponseError(SiebelAPIError):
    """Server returned something that is not the JSON envelope."""

    pass


class SiebelConfigError(SiebelError):
    """Settings are missing or inconsistent."""

    pass


class SiebelConnectionNotFoundError(SiebelConfigError):
    """No connection with the given name is configured."""

    def __init__(self, name: str):
        super().__init__(f"Connection not found: {name}")
        self.name = name


class SiebelNoConnectionError(SiebelConfigError):
    """No connection is configured at all."""

    def __init__(self, message: str = "No connection is configured"):
        super().__init__(message)


class SiebelNoWorkspaceError(SiebelConfigError):
    """The active connection has no workspace to work in."""

    def __init__(self, connection: str):
        super().__init__(f"Connection {connection} has no available workspace")
        self.connection = connection


class MalformedPathError(SiebelError):
    """A local file does not sit at a recognized mirror location."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Not a mirrored file ({reason}): {path}")
        self.path = path
        self.reason = reason


class NameValidationError(SiebelError):
    """Script file names and function names differ."""

    def __init__(self, names: list[str]):
        joined = ", ".join(names)
        super().__init__(
            f"File and function names differ for the following script(s): {joined}"
        )
        self.names = names


class PushAllError(SiebelError):
    """A push-all batch stopped at a remote failure."""

    def __init__(
        self, pushed: list[str], failed: str, total: int, cause: SiebelAPIError
    ):
        super().__init__(
            f"Pushed {len(pushed)} of {total} script(s), failed at "
            f"{len(pushed) + 1} ({failed}): {cause}"
        )
        self.pushed = pushed
        self.failed = failed
        self.total = total
        self.cause = cause


class SiebelFileNotFoundError(SiebelError):
    """Local file not found."""

    def __init__(self, file_path: str):
        super().__init__(f"File not found: {file_path}")
        self.file_path = file_path


class SiebelLocalFileError(SiebelError):
    """A mirrored file could not be read or written."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(f"Cannot access {file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason
