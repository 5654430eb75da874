"""Operations that work the same whether the paths share a backend or not.

Every operation resolves the backends for its URIs, connects them, runs and
disconnects them again no matter how the run ended. When source and
destination share a backend the backend's own copy or move is used;
otherwise the files are streamed across one at a time, in listing order.

Moves are never atomic. A move is a copy followed by a delete of the
source, so a failure (or a crash) between the two leaves both copies in
place. That case raises IncompleteMoveError rather than being reported as a
clean move.
"""
from __future__ import annotations
import contextlib
import typing as t
import zirconium as zr
import zrlog
from autoinject import injector
from .base import BaseBackend, copy_stream, DEFAULT_CHUNK_SIZE
from .core import BackendRegistry
from .errors import StorageError, NotFoundError, AlreadyExistsError, ConnectError, DisconnectError, IncompleteMoveError
from .uri import URI, Node
from filebridge.util import ConfigError


class FileManager:

    config: zr.ApplicationConfig = None

    @injector.construct
    def __init__(self, registry: BackendRegistry, buffer_size: t.Optional[int] = None):
        self._registry = registry
        self._buffer_size = buffer_size
        self._log = zrlog.get_logger("filebridge.manager")

    def buffer_size(self) -> int:
        if self._buffer_size is None:
            try:
                self._buffer_size = int(self.config.get(("filebridge", "transfer", "buffer_size"), default=DEFAULT_CHUNK_SIZE))
            except (TypeError, ValueError) as ex:
                raise ConfigError("filebridge.transfer.buffer_size", "TRANSFER", 1000) from ex
        return self._buffer_size

    def copy(self, src: URI, dst: URI, recursive: bool = False):
        """Copy a file or directory, possibly to another backend.

            If dst names a directory (it ends with a separator, already exists
            as a directory, or src is a directory), the source name is added
            to it.
        """
        with self._session(src, dst) as (src_fs, dst_fs):
            self._copy(src_fs, dst_fs, src, dst, recursive)

    def move(self, src: URI, dst: URI, recursive: bool = False):
        """Move a file or directory, possibly to another backend (not atomic)."""
        with self._session(src, dst) as (src_fs, dst_fs):
            src_node = src_fs.get(src)
            target = self._destination(src_node, dst_fs, dst)
            if src_fs is dst_fs:
                self._log.debug(f"Moving [{src}] to [{target}] within one backend")
                src_fs.move(src, target, recursive)
                return
            src_fs.check_movable(src, recursive)
            self._log.debug(f"Moving [{src}] to [{target}] across backends")
            self._transfer(src_fs, dst_fs, src_node, target, recursive)
            try:
                src_fs.delete(src, recursive)
            except StorageError as ex:
                self._log.warning(f"Copied [{src}] to [{target}] but the source could not be removed")
                raise IncompleteMoveError(src, target, ex) from ex

    def list(self, uri: URI, recursive: bool = False) -> list[Node]:
        """List the contents of a directory, recursively if requested."""
        with self._session(uri) as (fs,):
            return fs.list(uri, recursive)

    def delete(self, uri: URI, recursive: bool = False):
        """Delete a file or directory."""
        with self._session(uri) as (fs,):
            fs.delete(uri, recursive)

    def mkdir(self, uri: URI) -> Node:
        """Create a directory, including missing parents."""
        with self._session(uri) as (fs,):
            return fs.mkdir(uri)

    @contextlib.contextmanager
    def _session(self, *uris: URI) -> t.Iterator[tuple[BaseBackend, ...]]:
        backends = tuple(self._registry.get_backend(uri.scheme) for uri in uris)
        connected: list[BaseBackend] = []
        error = None
        try:
            for backend in backends:
                if any(backend is x for x in connected):
                    continue
                self._log.debug(f"Connecting {backend!r}")
                try:
                    backend.connect()
                except Exception as ex:
                    raise ConnectError(backend.scheme, ex) from ex
                connected.append(backend)
            yield backends
        except BaseException as ex:
            error = ex
            raise
        finally:
            disconnect_error = self._disconnect_all(connected)
            if disconnect_error is not None:
                if error is None:
                    raise disconnect_error
                self._log.warning(f"Disconnect failed after an earlier error: {disconnect_error}")

    def _disconnect_all(self, backends: list[BaseBackend]) -> t.Optional[DisconnectError]:
        first_error = None
        for backend in reversed(backends):
            self._log.debug(f"Disconnecting {backend!r}")
            try:
                backend.disconnect()
            except Exception as ex:
                disconnect_error = DisconnectError(backend.scheme, ex)
                disconnect_error.__cause__ = ex
                if first_error is None:
                    first_error = disconnect_error
                else:
                    self._log.warning(str(disconnect_error))
        return first_error

    def _copy(self, src_fs: BaseBackend, dst_fs: BaseBackend, src: URI, dst: URI, recursive: bool):
        src_node = src_fs.get(src)
        target = self._destination(src_node, dst_fs, dst)
        if src_fs is dst_fs:
            self._log.debug(f"Copying [{src}] to [{target}] within one backend")
            src_fs.copy(src, target, recursive)
        else:
            self._log.debug(f"Copying [{src}] to [{target}] across backends")
            self._transfer(src_fs, dst_fs, src_node, target, recursive)

    @staticmethod
    def _destination(src_node: Node, dst_fs: BaseBackend, dst: URI) -> URI:
        if dst.has_trailing_separator() or src_node.is_dir:
            return dst.child(src_node.name)
        try:
            if dst_fs.get(dst).is_dir:
                return dst.child(src_node.name)
        except NotFoundError:
            pass
        return dst

    def _transfer(self, src_fs: BaseBackend, dst_fs: BaseBackend, src_node: Node, target: URI, recursive: bool):
        """Stream a file or tree from one backend to another."""
        if not src_node.is_dir:
            self._transfer_file(src_fs, dst_fs, src_node.uri, target)
            return
        self._ensure_directory(dst_fs, target)
        root = src_node.uri.path
        for node in src_fs.list(src_node.uri, recursive):
            node_target = target.child(self._relative_path(root, node.uri.path))
            if node.is_dir:
                self._ensure_directory(dst_fs, node_target)
            else:
                self._transfer_file(src_fs, dst_fs, node.uri, node_target)

    @staticmethod
    def _relative_path(root: str, path: str) -> str:
        stripped_root = root.rstrip("/\\")
        if not path.startswith(stripped_root):
            raise StorageError(f"Listed path [{path}] is not below [{root}]", 1015)
        return path[len(stripped_root):].lstrip("/\\").replace("\\", "/")

    def _ensure_directory(self, fs: BaseBackend, uri: URI):
        try:
            fs.mkdir(uri)
        except AlreadyExistsError:
            if not fs.get(uri).is_dir:
                raise

    def _transfer_file(self, src_fs: BaseBackend, dst_fs: BaseBackend, src: URI, dst: URI):
        if dst_fs.exists(dst):
            raise AlreadyExistsError(dst)
        self._log.debug(f"Streaming [{src}] to [{dst}]")
        with src_fs.reader(src) as readable:
            try:
                with dst_fs.writer(dst) as writable:
                    copy_stream(readable, writable, self.buffer_size())
            except Exception as ex:
                self._remove_partial(dst_fs, dst)
                raise ex

    def _remove_partial(self, fs: BaseBackend, uri: URI):
        try:
            if fs.exists(uri):
                fs.delete(uri, False)
        except StorageError as ex:
            self._log.warning(f"Could not remove partial file [{uri}]: {ex}")
