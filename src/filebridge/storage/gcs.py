"""Google Cloud Storage backend.

Paths are written ``bucket/key``. The store has no real directories: a
directory is any prefix ending in ``/`` that has at least one object below
it, and mkdir() writes an empty marker object whose key ends with ``/`` so
that empty directories survive.
"""
import functools
import typing as t
import zirconium as zr
from autoinject import injector
from google.cloud import storage
from google.api_core import exceptions as gcs_exceptions
from .base import BaseBackend
from .errors import StorageError, NotFoundError, AlreadyExistsError, DirectoryNotEmptyError, WalkError
from .uri import URI, Node, GCS_SCHEME
from filebridge.util import ConfigError


def wrap_gcs_errors(cb):

    @functools.wraps(cb)
    def _inner(self, uri, *args, **kwargs):
        try:
            return cb(self, uri, *args, **kwargs)
        except gcs_exceptions.NotFound as ex:
            raise NotFoundError(uri) from ex
        except (gcs_exceptions.Conflict, gcs_exceptions.PreconditionFailed) as ex:
            raise AlreadyExistsError(uri) from ex
        except (gcs_exceptions.Forbidden, gcs_exceptions.Unauthorized) as ex:
            raise StorageError(f"GCS: Access denied [{uri}]: {ex.__class__.__name__}: {str(ex)}", 2001, True) from ex
        except (gcs_exceptions.ServerError, gcs_exceptions.TooManyRequests) as ex:
            raise StorageError(f"GCS: Server unavailable [{uri}]: {ex.__class__.__name__}: {str(ex)}", 2002, True) from ex
        except gcs_exceptions.GoogleAPIError as ex:
            raise StorageError(f"GCS: {ex.__class__.__name__}: {str(ex)}", 2000) from ex

    return _inner


def split_gcs_path(path: str) -> tuple[str, str]:
    """Split ``bucket/some/key`` into the bucket name and the object key."""
    bucket, _, key = path.partition("/")
    return bucket, key


def _dir_prefix(key: str) -> str:
    key = key.rstrip("/")
    return f"{key}/" if key else ""


class GCSBackend(BaseBackend):

    config: zr.ApplicationConfig = None

    scheme = GCS_SCHEME

    @injector.construct
    def __init__(self, client_factory: t.Optional[t.Callable[[], storage.Client]] = None):
        self._client_factory = client_factory or self._build_client
        self._client: t.Optional[storage.Client] = None

    def _build_client(self) -> storage.Client:
        project = self.config.as_str(("filebridge", "gcs", "project"), default=None)
        credentials_file = self.config.as_str(("filebridge", "gcs", "credentials_file"), default=None)
        if credentials_file:
            return storage.Client.from_service_account_json(credentials_file, project=project)
        return storage.Client(project=project)

    def _chunk_size(self) -> t.Optional[int]:
        chunk_size = self.config.get(("filebridge", "gcs", "chunk_size"), default=None)
        if chunk_size is None:
            return None
        try:
            return int(chunk_size)
        except (TypeError, ValueError) as ex:
            raise ConfigError("filebridge.gcs.chunk_size", "GCS", 1000) from ex

    def connect(self):
        self._client = self._client_factory()

    def disconnect(self):
        client, self._client = self._client, None
        if client is not None:
            client.close()

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            raise StorageError("GCS backend is not connected", 2003)
        return self._client

    def _bucket(self, uri: URI) -> tuple[storage.Bucket, str]:
        bucket_name, key = split_gcs_path(uri.path)
        if not bucket_name:
            raise StorageError(f"Missing bucket name [{uri}]", 2004)
        return self.client.bucket(bucket_name), key

    def _node(self, bucket_name: str, key: str, is_dir: bool) -> Node:
        key = key.rstrip("/")
        return Node(URI(self.scheme, f"{bucket_name}/{key}" if key else bucket_name), is_dir)

    def _has_objects(self, bucket_name: str, prefix: str) -> bool:
        return any(True for _ in self.client.list_blobs(bucket_name, prefix=prefix, max_results=1))

    @wrap_gcs_errors
    def writer(self, uri: URI) -> t.BinaryIO:
        bucket, key = self._bucket(uri)
        if key == "" or key.endswith("/"):
            raise StorageError(f"Not a file name [{uri}]", 2005)
        return bucket.blob(key, chunk_size=self._chunk_size()).open("wb")

    @wrap_gcs_errors
    def reader(self, uri: URI) -> t.BinaryIO:
        bucket, key = self._bucket(uri)
        blob = bucket.blob(key, chunk_size=self._chunk_size())
        if key == "" or not blob.exists():
            raise NotFoundError(uri)
        return blob.open("rb")

    @wrap_gcs_errors
    def get(self, uri: URI) -> Node:
        bucket, key = self._bucket(uri)
        key = key.rstrip("/")
        if key == "":
            if not bucket.exists():
                raise NotFoundError(uri)
            return Node(uri, True)
        if bucket.blob(key).exists():
            return Node(uri, False)
        if self._has_objects(bucket.name, f"{key}/"):
            return Node(uri, True)
        raise NotFoundError(uri)

    def list(self, uri: URI, recursive: bool = False) -> list[Node]:
        node = self.get(uri)
        if not node.is_dir:
            return [node]
        bucket_name, key = split_gcs_path(uri.path)
        prefix = _dir_prefix(key)
        try:
            if recursive:
                entries = self._list_tree(bucket_name, prefix)
            else:
                entries = self._list_level(bucket_name, prefix)
        except gcs_exceptions.GoogleAPIError as ex:
            raise WalkError(uri, ex) from ex
        return [self._node(bucket_name, name, is_dir) for name, is_dir in sorted(entries, key=lambda e: e[0].split("/"))]

    def _list_level(self, bucket_name: str, prefix: str) -> set[tuple[str, bool]]:
        entries = set()
        blobs = self.client.list_blobs(bucket_name, prefix=prefix, delimiter="/")
        for blob in blobs:
            if blob.name != prefix:
                entries.add((blob.name, False))
        # prefixes are only populated once the iterator has been consumed
        for sub_prefix in blobs.prefixes:
            entries.add((sub_prefix.rstrip("/"), True))
        return entries

    def _list_tree(self, bucket_name: str, prefix: str) -> set[tuple[str, bool]]:
        entries = set()
        for blob in self.client.list_blobs(bucket_name, prefix=prefix):
            relative = blob.name[len(prefix):]
            if relative == "":
                continue
            parts = relative.rstrip("/").split("/")
            for i in range(1, len(parts)):
                entries.add((prefix + "/".join(parts[:i]), True))
            entries.add((prefix + relative.rstrip("/"), blob.name.endswith("/")))
        return entries

    @wrap_gcs_errors
    def delete(self, uri: URI, recursive: bool = False):
        node = self.get(uri)
        bucket, key = self._bucket(uri)
        if not node.is_dir:
            bucket.blob(key).delete()
            return
        prefix = _dir_prefix(key)
        blobs = list(self.client.list_blobs(bucket.name, prefix=prefix))
        if not recursive and any(blob.name != prefix for blob in blobs):
            raise DirectoryNotEmptyError(uri)
        for blob in blobs:
            blob.delete()

    @wrap_gcs_errors
    def copy(self, src: URI, dst: URI, recursive: bool = False):
        src_node = self.get(src)
        src_bucket, src_key = self._bucket(src)
        dst_bucket, dst_key = self._bucket(dst)
        if not src_node.is_dir:
            self._copy_object(src_bucket, src_key, dst_bucket, dst_key.rstrip("/"))
            return
        src_prefix = _dir_prefix(src_key)
        dst_prefix = _dir_prefix(dst_key)
        if src_bucket.name == dst_bucket.name and dst_prefix.startswith(src_prefix):
            raise StorageError(f"Cannot copy [{src}] into itself [{dst}]", 2006)
        if dst_prefix and dst_bucket.blob(dst_prefix.rstrip("/")).exists():
            raise AlreadyExistsError(dst)
        self._ensure_marker(dst_bucket, dst_prefix)
        for node in self.list(src, recursive):
            _, key = split_gcs_path(node.uri.path)
            target = dst_prefix + key[len(src_prefix):]
            if node.is_dir:
                self._ensure_marker(dst_bucket, f"{target}/")
            else:
                self._copy_object(src_bucket, key, dst_bucket, target)

    def _copy_object(self, src_bucket: storage.Bucket, src_key: str, dst_bucket: storage.Bucket, dst_key: str):
        if dst_key == "":
            raise StorageError(f"Not a file name [{dst_bucket.name}/]", 2005)
        if dst_bucket.blob(dst_key).exists():
            raise AlreadyExistsError(f"{dst_bucket.name}/{dst_key}")
        src_bucket.copy_blob(src_bucket.blob(src_key), dst_bucket, dst_key)

    @staticmethod
    def _ensure_marker(bucket: storage.Bucket, prefix: str):
        if prefix:
            marker = bucket.blob(prefix)
            if not marker.exists():
                marker.upload_from_string(b"")

    @wrap_gcs_errors
    def mkdir(self, uri: URI) -> Node:
        if self.exists(uri):
            raise AlreadyExistsError(uri)
        bucket, key = self._bucket(uri)
        key = key.rstrip("/")
        if key == "":
            raise StorageError(f"Creating buckets is not supported [{uri}]", 2007)
        bucket.blob(f"{key}/").upload_from_string(b"")
        return self._node(bucket.name, key, True)
