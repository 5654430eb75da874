"""Resource locators and filesystem entries.

A URI is written ``[scheme://]path``. Without a scheme the path refers to the
local filesystem. For the object store the path is ``bucket/key``.
"""
from __future__ import annotations
import re
import typing as t
from .errors import InvalidURIError, UnknownSchemeError

LOCAL_SCHEME = ""
GCS_SCHEME = "gs"

KNOWN_SCHEMES = frozenset((LOCAL_SCHEME, GCS_SCHEME))

_URI_PATTERN = re.compile(r"(?:(\w+)://)?(.+)", re.DOTALL)


def base_name(path: str) -> str:
    """Final segment of the path, ignoring trailing separators."""
    if path == "":
        return "."
    stripped = path.rstrip("/\\")
    if stripped == "":
        return path[0]
    last_sep = max(stripped.rfind("/"), stripped.rfind("\\"))
    return stripped[last_sep + 1:]


class URI:
    """Immutable resource identifier made up of a scheme and a path.

    The name is always derived from the path, so changing a location means
    building a new URI (see ``child()`` and ``with_path()``).
    """

    __slots__ = ('_scheme', '_path', '_name')

    def __init__(self, scheme: str, path: str):
        self._scheme = scheme
        self._path = path
        self._name = base_name(path)

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def path(self) -> str:
        return self._path

    @property
    def name(self) -> str:
        return self._name

    def is_local(self) -> bool:
        return self._scheme == LOCAL_SCHEME

    def has_trailing_separator(self) -> bool:
        """Check if the path explicitly names a directory (e.g. ``gs://bucket/dir/``)."""
        return self._path.endswith("/") or (self.is_local() and self._path.endswith("\\"))

    def with_path(self, path: str) -> URI:
        return URI(self._scheme, path)

    def child(self, sub_path: str) -> URI:
        """Build the URI of an entry below this one."""
        base = self._path.rstrip("/\\" if self.is_local() else "/")
        if base == "" and self._path != "":
            # filesystem root
            return URI(self._scheme, f"{self._path[0]}{sub_path.lstrip('/')}")
        return URI(self._scheme, f"{base}/{sub_path.lstrip('/')}")

    def __str__(self):
        if self._scheme == LOCAL_SCHEME:
            return self._path
        return f"{self._scheme}://{self._path}"

    def __repr__(self):
        return f"URI({self._scheme!r}, {self._path!r})"

    def __eq__(self, other):
        if not isinstance(other, URI):
            return NotImplemented
        return self._scheme == other._scheme and self._path == other._path

    def __hash__(self):
        return hash((self._scheme, self._path))


class Node:
    """A single file or directory as reported by a backend."""

    __slots__ = ('uri', 'is_dir')

    def __init__(self, uri: URI, is_dir: bool):
        self.uri = uri
        self.is_dir = is_dir

    @property
    def name(self) -> str:
        return self.uri.name

    def __repr__(self):
        return f"Node({self.uri!r}, is_dir={self.is_dir})"

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return self.uri == other.uri and self.is_dir == other.is_dir

    def __hash__(self):
        return hash((self.uri, self.is_dir))


def parse_uri(value: str, known_schemes: t.Iterable[str] = KNOWN_SCHEMES) -> URI:
    """Parse ``[scheme://]path`` into a URI.

    Raises InvalidURIError when there is no path and UnknownSchemeError when
    the scheme is not one of ``known_schemes`` (the parsed URI is attached to
    the error).
    """
    match = _URI_PATTERN.fullmatch(value) if value else None
    if match is None:
        raise InvalidURIError(value)
    scheme, path = match.group(1) or LOCAL_SCHEME, match.group(2)
    if scheme == LOCAL_SCHEME and re.fullmatch(r"\w+://", path):
        # "gs://" on its own: a scheme with nothing after it
        raise InvalidURIError(value)
    uri = URI(scheme, path)
    if scheme not in known_schemes:
        raise UnknownSchemeError(scheme, uri)
    return uri
