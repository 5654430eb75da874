"""Storage error taxonomy.

Backends map their low-level errors onto these classes wherever there is a
semantic match and otherwise raise a plain StorageError chained from the
original exception.
"""
from __future__ import annotations
import typing as t
from filebridge.util import FileBridgeError

if t.TYPE_CHECKING:
    from .uri import URI


class StorageError(FileBridgeError):
    """Error class specifically for storage errors."""

    def __init__(self, msg, code, is_recoverable: bool = False):
        super().__init__(msg, "STORAGE", code, is_recoverable=is_recoverable)


class InvalidURIError(StorageError):

    def __init__(self, value: str):
        super().__init__(f"Invalid URI [{value}]", 1000)


class UnknownSchemeError(StorageError):
    """Raised for a scheme with no registered backend; the parsed URI is kept for diagnostics."""

    def __init__(self, scheme: str, uri: t.Optional[URI] = None):
        super().__init__(f"Unknown scheme [{scheme}]", 1001)
        self.scheme = scheme
        self.uri = uri


class NotFoundError(StorageError):

    def __init__(self, path):
        super().__init__(f"File not found [{path}]", 1002)


class AlreadyExistsError(StorageError):

    def __init__(self, path):
        super().__init__(f"Already exists [{path}]", 1003)


class DirectoryNotEmptyError(StorageError):

    def __init__(self, path):
        super().__init__(f"Directory not empty [{path}]", 1004)


class ConnectError(StorageError):

    def __init__(self, scheme: str, cause: Exception):
        super().__init__(f"Failed to connect filesystem [{scheme or 'local'}]: {cause.__class__.__name__}: {cause}", 1005, True)


class DisconnectError(StorageError):

    def __init__(self, scheme: str, cause: Exception):
        super().__init__(f"Failed to disconnect filesystem [{scheme or 'local'}]: {cause.__class__.__name__}: {cause}", 1006, True)


class WalkError(StorageError):

    def __init__(self, path, cause: Exception):
        super().__init__(f"Error walking [{path}]: {cause.__class__.__name__}: {cause}", 1007)


class IncompleteMoveError(StorageError):
    """The copy half of a move succeeded but the source could not be removed.

    Both the source and the destination copy exist afterwards. The delete
    failure is available as ``__cause__``.
    """

    def __init__(self, src, dst, cause: Exception):
        super().__init__(f"Copied [{src}] to [{dst}] but could not remove the source: {cause}", 1008)
        self.src = src
        self.dst = dst
