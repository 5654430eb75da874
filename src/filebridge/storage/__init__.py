"""
    Provides file operations across storage backends.

    In general, one should parse paths with parse_uri() and hand them to a
    FileManager built on the shared BackendRegistry. The manager knows how to
    copy, move, list, delete and create directories regardless of whether the
    path is on a local drive or in a Google Cloud Storage bucket, and whether
    the source and destination are on the same backend or not.

    Local disks and object stores are very different: a bucket has no real
    directories and no atomic move. Directories in a bucket are simulated
    (see storage.gcs) and a move anywhere other than within a local disk is a
    copy followed by a delete.

    URIs follow the convention that a path ending in a separator names a
    directory (e.g. gs://bucket/directory/). Copying or moving onto such a
    path places the source inside it.
"""
from .uri import URI, Node, parse_uri, LOCAL_SCHEME, GCS_SCHEME
from .errors import (
    StorageError,
    InvalidURIError,
    UnknownSchemeError,
    NotFoundError,
    AlreadyExistsError,
    DirectoryNotEmptyError,
    ConnectError,
    DisconnectError,
    WalkError,
    IncompleteMoveError,
)
from .base import BaseBackend
from .core import BackendRegistry
from .manager import FileManager
