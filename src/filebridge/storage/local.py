"""Local file backend"""
import errno
import os
import pathlib
import shutil
import stat
import typing as t
from .base import BaseBackend, local_file_error_wrap
from .errors import StorageError, NotFoundError, AlreadyExistsError, DirectoryNotEmptyError, WalkError
from .uri import URI, Node, LOCAL_SCHEME


class LocalBackend(BaseBackend):
    """Backend for files stored on a local disk or accessible network drive.

        Directories are real, so emptiness is checked before a non-recursive
        delete or move and moves are done by renaming whenever possible.
    """

    scheme = LOCAL_SCHEME

    @staticmethod
    def _path(uri: URI) -> pathlib.Path:
        return pathlib.Path(uri.path).expanduser()

    @staticmethod
    def _is_empty(path: pathlib.Path) -> bool:
        with os.scandir(path) as entries:
            return next(entries, None) is None

    @local_file_error_wrap
    def writer(self, uri: URI) -> t.BinaryIO:
        path = self._path(uri)
        path.parent.mkdir(parents=True, exist_ok=True)
        return open(path, "wb")

    @local_file_error_wrap
    def reader(self, uri: URI) -> t.BinaryIO:
        return open(self._path(uri), "rb")

    @local_file_error_wrap
    def delete(self, uri: URI, recursive: bool = False):
        path = self._path(uri)
        if not os.path.lexists(path):
            raise NotFoundError(uri)
        if path.is_dir() and not path.is_symlink():
            if recursive:
                shutil.rmtree(path)
            elif not self._is_empty(path):
                raise DirectoryNotEmptyError(uri)
            else:
                path.rmdir()
        else:
            path.unlink()

    @local_file_error_wrap
    def copy(self, src: URI, dst: URI, recursive: bool = False):
        src_path = self._path(src)
        dst_path = self._path(dst)
        if not src_path.exists():
            raise NotFoundError(src)
        if src_path.is_dir():
            if dst_path.resolve().is_relative_to(src_path.resolve()):
                raise StorageError(f"Cannot copy [{src}] into itself [{dst}]", 1014)
            self._copy_dir(src_path, dst_path, recursive)
        else:
            self._copy_file(src_path, dst_path)

    def _copy_file(self, src_path: pathlib.Path, dst_path: pathlib.Path, follow_symlinks: bool = True):
        if os.path.lexists(dst_path):
            raise AlreadyExistsError(dst_path)
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dst_path, follow_symlinks=follow_symlinks)

    def _copy_dir(self, src_path: pathlib.Path, dst_path: pathlib.Path, recursive: bool):
        if os.path.lexists(dst_path) and not dst_path.is_dir():
            raise AlreadyExistsError(dst_path)
        dst_path.mkdir(parents=True, exist_ok=True)
        for entry in sorted(src_path.iterdir()):
            target = dst_path / entry.name
            if entry.is_dir() and entry.is_symlink():
                # linked directories are copied as links, never followed
                self._copy_file(entry, target, False)
            elif not entry.is_dir():
                self._copy_file(entry, target)
            elif recursive:
                self._copy_dir(entry, target, True)
            else:
                target.mkdir(exist_ok=True)

    @local_file_error_wrap
    def move(self, src: URI, dst: URI, recursive: bool = False):
        src_path = self._path(src)
        dst_path = self._path(dst)
        if not os.path.lexists(src_path):
            raise NotFoundError(src)
        if src_path.is_dir() and not recursive and not self._is_empty(src_path):
            raise DirectoryNotEmptyError(src)
        if os.path.lexists(dst_path):
            raise AlreadyExistsError(dst)
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.rename(src_path, dst_path)
        except OSError as ex:
            if ex.errno != errno.EXDEV:
                raise
            # different device, rename can't cross it
            super().move(src, dst, recursive)

    def list(self, uri: URI, recursive: bool = False) -> list[Node]:
        node = self.get(uri)
        if not node.is_dir:
            return [node]
        nodes = []
        try:
            self._walk(uri, recursive, nodes)
        except OSError as ex:
            raise WalkError(uri, ex) from ex
        return nodes

    def _walk(self, dir_uri: URI, recursive: bool, nodes: list):
        with os.scandir(self._path(dir_uri)) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            child = dir_uri.child(entry.name)
            is_dir = entry.is_dir()
            nodes.append(Node(child, is_dir))
            if is_dir and recursive and not entry.is_symlink():
                self._walk(child, True, nodes)

    @local_file_error_wrap
    def get(self, uri: URI) -> Node:
        info = self._path(uri).stat()
        return Node(uri, stat.S_ISDIR(info.st_mode))

    @local_file_error_wrap
    def mkdir(self, uri: URI) -> Node:
        path = self._path(uri)
        if os.path.lexists(path):
            raise AlreadyExistsError(uri)
        path.mkdir(parents=True)
        return Node(uri, True)
