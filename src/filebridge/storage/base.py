from __future__ import annotations
import errno
import functools
import typing as t
from .uri import URI, Node
from .errors import StorageError, NotFoundError, AlreadyExistsError, DirectoryNotEmptyError, IncompleteMoveError


DEFAULT_CHUNK_SIZE = 4194304


def local_file_error_wrap(cb):
    """Converts typical local file-system errors into the storage error taxonomy.

        The first positional argument after self is taken to be the URI being
        operated on; the filename attached to the OS error is preferred when set.
    """

    @functools.wraps(cb)
    def _inner(self, uri, *args, **kwargs):
        try:
            return cb(self, uri, *args, **kwargs)
        except OSError as ex:
            path = ex.filename if ex.filename is not None else uri
            if isinstance(ex, FileNotFoundError):
                raise NotFoundError(path) from ex
            elif isinstance(ex, FileExistsError):
                raise AlreadyExistsError(path) from ex
            elif isinstance(ex, PermissionError):
                raise StorageError(f"Access to local file denied [{path}]", 1010, True) from ex
            elif isinstance(ex, IsADirectoryError):
                raise StorageError(f"Local file is a directory [{path}]", 1011) from ex
            elif isinstance(ex, NotADirectoryError):
                raise StorageError(f"Local directory is not a directory [{path}]", 1012) from ex
            elif ex.errno == errno.ENOTEMPTY:
                raise DirectoryNotEmptyError(path) from ex
            raise StorageError(f"Exception processing local file [{path}]: {ex.__class__.__name__}: {str(ex)}", 1013) from ex

    return _inner


def copy_stream(readable: t.BinaryIO, writable: t.BinaryIO, buffer_size: t.Optional[int] = None) -> int:
    """Copy a readable object into a writable one in chunks, returning the number of bytes copied."""
    if buffer_size is None:
        buffer_size = DEFAULT_CHUNK_SIZE
    total = 0
    x = readable.read(buffer_size)
    while x:
        writable.write(x)
        total += len(x)
        x = readable.read(buffer_size)
    return total


class BaseBackend:
    """Operations every storage backend provides.

        connect() must be called before any other method and disconnect()
        after the operation is complete, whatever its outcome. Paths are
        always given as URIs belonging to this backend's scheme.
    """

    scheme: str = None

    def connect(self):
        """Open whatever session the backend needs."""
        pass

    def disconnect(self):
        """Release the session opened by connect()."""
        pass

    def writer(self, uri: URI) -> t.BinaryIO:
        """Open the file for sequential writing, creating it if needed."""
        raise NotImplementedError

    def reader(self, uri: URI) -> t.BinaryIO:
        """Open the file for sequential reading."""
        raise NotImplementedError

    def delete(self, uri: URI, recursive: bool = False):
        """Remove a file, or a directory tree when recursive is set."""
        raise NotImplementedError

    def copy(self, src: URI, dst: URI, recursive: bool = False):
        """Copy a file or directory to another location on this backend."""
        raise NotImplementedError

    def move(self, src: URI, dst: URI, recursive: bool = False):
        """Move a file or directory to another location on this backend.

            Not atomic: the copy is made first and the source removed after.
            If the removal fails, both copies remain and IncompleteMoveError
            is raised.
        """
        self.check_movable(src, recursive)
        self.copy(src, dst, recursive)
        try:
            self.delete(src, recursive)
        except StorageError as ex:
            raise IncompleteMoveError(src, dst, ex) from ex

    def check_movable(self, src: URI, recursive: bool = False):
        """Raise DirectoryNotEmptyError if src is a non-empty directory and recursive is not set."""
        if not recursive and self.get(src).is_dir and self.list(src):
            raise DirectoryNotEmptyError(src)

    def list(self, uri: URI, recursive: bool = False) -> list[Node]:
        """List the entries of a directory, sorted so that a directory precedes its contents.

            Listing a file gives a list containing only that file.
        """
        raise NotImplementedError

    def get(self, uri: URI) -> Node:
        """Get the node at the given location."""
        raise NotImplementedError

    def exists(self, uri: URI) -> bool:
        try:
            self.get(uri)
            return True
        except NotFoundError:
            return False

    def mkdir(self, uri: URI) -> Node:
        """Create a directory along with any missing parents."""
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}(scheme={self.scheme!r})"
