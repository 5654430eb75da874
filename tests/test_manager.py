import io
import pathlib
import tempfile
import unittest as ut
from filebridge.storage import (
    BackendRegistry, FileManager, URI, Node, LOCAL_SCHEME, GCS_SCHEME,
    StorageError, NotFoundError, AlreadyExistsError, UnknownSchemeError, DirectoryNotEmptyError,
    ConnectError, DisconnectError, IncompleteMoveError,
)
from filebridge.storage.gcs import GCSBackend
from filebridge.storage.local import LocalBackend
from tests.fake_gcs import FakeClient


class _TrackingLocalBackend(LocalBackend):

    def __init__(self, connect_error=None, disconnect_error=None):
        super().__init__()
        self.calls = []
        self._connect_error = connect_error
        self._disconnect_error = disconnect_error

    def connect(self):
        self.calls.append("connect")
        if self._connect_error:
            raise self._connect_error

    def disconnect(self):
        self.calls.append("disconnect")
        if self._disconnect_error:
            raise self._disconnect_error


class _InterruptedLocalBackend(_TrackingLocalBackend):

    def list(self, uri, recursive=False):
        raise KeyboardInterrupt


class _UndeletableLocalBackend(LocalBackend):

    def delete(self, uri, recursive=False):
        raise StorageError(f"Read-only [{uri}]", 1099)


class _BrokenReader(io.BytesIO):

    def read(self, size=-1):
        if self.tell() > 0:
            raise OSError("connection reset")
        return super().read(size)


class _FlakyLocalBackend(LocalBackend):

    def reader(self, uri):
        with super().reader(uri) as h:
            return _BrokenReader(h.read())


class ManagerTestCase(ut.TestCase):

    def setUp(self):
        self._temp_dir = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self._temp_dir.name)
        self.client = FakeClient({
            "bucket": {
                "top.txt": b"top of the bucket",
                "data/a.txt": b"aaa",
                "data/sub/b.txt": b"bbb",
                "data/empty/": b"",
            },
        })
        self.connections = 0
        self.local = self.make_local()
        self.gcs = GCSBackend(client_factory=self._client_factory)
        self.manager = self.make_manager(self.local)

    def tearDown(self):
        self._temp_dir.cleanup()

    def _client_factory(self):
        self.connections += 1
        return self.client

    def make_local(self) -> LocalBackend:
        return LocalBackend()

    def make_manager(self, local: LocalBackend) -> FileManager:
        registry = BackendRegistry({LOCAL_SCHEME: local, GCS_SCHEME: self.gcs})
        return FileManager(registry, buffer_size=5)

    def local_uri(self, *parts) -> URI:
        return URI(LOCAL_SCHEME, str(self.root.joinpath(*parts)))

    def make_file(self, *parts, content: bytes = b"hello world") -> pathlib.Path:
        path = self.root.joinpath(*parts)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    def objects(self) -> dict[str, bytes]:
        return self.client.buckets["bucket"]


class TestCrossBackendCopy(ManagerTestCase):

    def test_local_to_gcs(self):
        content = bytes(range(256)) * 3
        self.make_file("tmp.txt", content=content)
        self.manager.copy(self.local_uri("tmp.txt"), URI(GCS_SCHEME, "bucket/tmp.txt"))
        self.assertEqual(self.objects()["tmp.txt"], content)
        self.assertTrue(self.root.joinpath("tmp.txt").exists())

    def test_gcs_to_local(self):
        self.manager.copy(URI(GCS_SCHEME, "bucket/top.txt"), self.local_uri("copy.txt"))
        self.assertEqual(self.root.joinpath("copy.txt").read_bytes(), b"top of the bucket")

    def test_trailing_separator_appends_name(self):
        self.make_file("tmp.txt")
        self.manager.copy(self.local_uri("tmp.txt"), URI(GCS_SCHEME, "bucket/dir/"))
        self.assertIn("dir/tmp.txt", self.objects())

    def test_existing_directory_appends_name(self):
        self.make_file("tmp.txt")
        self.manager.copy(self.local_uri("tmp.txt"), URI(GCS_SCHEME, "bucket/data"))
        self.assertIn("data/tmp.txt", self.objects())

    def test_tree_to_gcs(self):
        self.make_file("src", "a.txt", content=b"a")
        self.make_file("src", "one", "b.txt", content=b"b")
        self.root.joinpath("src", "empty").mkdir()
        self.manager.copy(self.local_uri("src"), URI(GCS_SCHEME, "bucket/backup"), True)
        copied = sorted(k for k in self.objects() if k.startswith("backup/"))
        self.assertEqual(copied, [
            "backup/src/",
            "backup/src/a.txt",
            "backup/src/empty/",
            "backup/src/one/",
            "backup/src/one/b.txt",
        ])
        self.assertEqual(self.objects()["backup/src/one/b.txt"], b"b")

    def test_tree_to_local(self):
        self.manager.copy(URI(GCS_SCHEME, "bucket/data"), self.local_uri("restored"), True)
        base = self.root / "restored" / "data"
        self.assertEqual(base.joinpath("a.txt").read_bytes(), b"aaa")
        self.assertEqual(base.joinpath("sub", "b.txt").read_bytes(), b"bbb")
        self.assertTrue(base.joinpath("empty").is_dir())

    def test_copy_onto_existing_file(self):
        self.make_file("tmp.txt")
        with self.assertRaises(AlreadyExistsError):
            self.manager.copy(self.local_uri("tmp.txt"), URI(GCS_SCHEME, "bucket/top.txt"))
        self.assertEqual(self.objects()["top.txt"], b"top of the bucket")

    def test_copy_missing_source(self):
        with self.assertRaises(NotFoundError):
            self.manager.copy(self.local_uri("missing.txt"), URI(GCS_SCHEME, "bucket/x.txt"))


class TestPartialTransfer(ManagerTestCase):

    def make_local(self) -> LocalBackend:
        return _FlakyLocalBackend()

    def test_partial_file_is_removed(self):
        self.make_file("tmp.txt", content=b"0123456789abcdef")
        with self.assertRaises(OSError):
            self.manager.copy(self.local_uri("tmp.txt"), URI(GCS_SCHEME, "bucket/out.txt"))
        self.assertNotIn("out.txt", self.objects())


class TestSameBackendCopy(ManagerTestCase):

    def test_native_copy(self):
        self.manager.copy(URI(GCS_SCHEME, "bucket/top.txt"), URI(GCS_SCHEME, "bucket/copy.txt"))
        self.assertEqual(self.client.copies, [("bucket/top.txt", "bucket/copy.txt")])
        self.assertEqual(self.connections, 1)
        self.assertTrue(self.client.closed)

    def test_local_copy_into_directory(self):
        self.make_file("a.txt", content=b"abc")
        self.root.joinpath("dir").mkdir()
        self.manager.copy(self.local_uri("a.txt"), self.local_uri("dir"))
        self.assertEqual(self.root.joinpath("dir", "a.txt").read_bytes(), b"abc")


class TestMove(ManagerTestCase):

    def test_cross_backend_move(self):
        self.manager.move(URI(GCS_SCHEME, "bucket/top.txt"), self.local_uri("top.txt"))
        self.assertNotIn("top.txt", self.objects())
        self.assertEqual(self.root.joinpath("top.txt").read_bytes(), b"top of the bucket")

    def test_cross_backend_tree_move(self):
        self.manager.move(URI(GCS_SCHEME, "bucket/data"), self.local_uri(), True)
        self.assertTrue(self.root.joinpath("data", "sub", "b.txt").exists())
        self.assertFalse(any(k.startswith("data/") for k in self.objects()))

    def test_local_move(self):
        self.make_file("a.txt", content=b"abc")
        self.manager.move(self.local_uri("a.txt"), self.local_uri("b.txt"))
        self.assertFalse(self.root.joinpath("a.txt").exists())
        self.assertEqual(self.root.joinpath("b.txt").read_bytes(), b"abc")

    def test_cross_backend_move_non_empty_directory_requires_recursive(self):
        before = dict(self.objects())
        with self.assertRaises(DirectoryNotEmptyError):
            self.manager.move(URI(GCS_SCHEME, "bucket/data"), URI(LOCAL_SCHEME, f"{self.root / 'out'}/"), False)
        self.assertFalse(self.root.joinpath("out").exists())
        self.assertEqual(before, self.objects())

    def test_gcs_move_non_empty_directory_requires_recursive(self):
        before = dict(self.objects())
        with self.assertRaises(DirectoryNotEmptyError):
            self.manager.move(URI(GCS_SCHEME, "bucket/data"), URI(GCS_SCHEME, "bucket/moved/"), False)
        self.assertEqual(before, self.objects())

    def test_gcs_move(self):
        self.manager.move(URI(GCS_SCHEME, "bucket/top.txt"), URI(GCS_SCHEME, "bucket/moved/"))
        self.assertEqual(self.objects()["moved/top.txt"], b"top of the bucket")
        self.assertNotIn("top.txt", self.objects())


class TestIncompleteMove(ManagerTestCase):

    def make_local(self) -> LocalBackend:
        return _UndeletableLocalBackend()

    def test_source_kept_when_delete_fails(self):
        self.make_file("a.txt", content=b"abc")
        with self.assertRaises(IncompleteMoveError) as h:
            self.manager.move(self.local_uri("a.txt"), URI(GCS_SCHEME, "bucket/a.txt"))
        self.assertEqual(self.objects()["a.txt"], b"abc")
        self.assertEqual(self.root.joinpath("a.txt").read_bytes(), b"abc")
        self.assertIsInstance(h.exception.__cause__, StorageError)
        self.assertEqual(h.exception.internal_code, "STORAGE-1008")


class TestOtherOperations(ManagerTestCase):

    def test_list(self):
        self.assertEqual(self.manager.list(URI(GCS_SCHEME, "bucket/data")), [
            Node(URI(GCS_SCHEME, "bucket/data/a.txt"), False),
            Node(URI(GCS_SCHEME, "bucket/data/empty"), True),
            Node(URI(GCS_SCHEME, "bucket/data/sub"), True),
        ])

    def test_mkdir_and_delete(self):
        node = self.manager.mkdir(URI(GCS_SCHEME, "bucket/new"))
        self.assertTrue(node.is_dir)
        self.assertIn("new/", self.objects())
        self.manager.delete(URI(GCS_SCHEME, "bucket/new"))
        self.assertNotIn("new/", self.objects())

    def test_unknown_scheme(self):
        with self.assertRaises(UnknownSchemeError):
            self.manager.list(URI("moc", "x"))

    def test_buffer_size_from_config(self):
        manager = FileManager(BackendRegistry({LOCAL_SCHEME: self.local}))
        self.assertEqual(manager.buffer_size(), 1024)


class TestSessions(ManagerTestCase):

    def make_local(self) -> LocalBackend:
        return _TrackingLocalBackend()

    def test_disconnect_after_error(self):
        with self.assertRaises(NotFoundError):
            self.manager.list(self.local_uri("missing"))
        self.assertEqual(self.local.calls, ["connect", "disconnect"])

    def test_backend_connected_once(self):
        self.make_file("a.txt")
        self.manager.copy(self.local_uri("a.txt"), self.local_uri("b.txt"))
        self.assertEqual(self.local.calls, ["connect", "disconnect"])

    def test_connect_failure_disconnects_others(self):
        failing = GCSBackend(client_factory=self._broken_factory)
        manager = FileManager(BackendRegistry({LOCAL_SCHEME: self.local, GCS_SCHEME: failing}))
        self.make_file("a.txt")
        with self.assertRaises(ConnectError) as h:
            manager.copy(self.local_uri("a.txt"), URI(GCS_SCHEME, "bucket/a.txt"))
        self.assertTrue(h.exception.is_recoverable)
        self.assertEqual(self.local.calls, ["connect", "disconnect"])
        self.assertNotIn("a.txt", self.objects())

    @staticmethod
    def _broken_factory():
        raise RuntimeError("no credentials")

    def test_disconnect_failure_reported(self):
        local = _TrackingLocalBackend(disconnect_error=RuntimeError("stuck"))
        manager = self.make_manager(local)
        with self.assertRaises(DisconnectError) as h:
            manager.list(self.local_uri())
        self.assertIsInstance(h.exception.__cause__, RuntimeError)

    def test_disconnect_failure_does_not_hide_error(self):
        local = _TrackingLocalBackend(disconnect_error=RuntimeError("stuck"))
        manager = self.make_manager(local)
        with self.assertRaises(NotFoundError):
            manager.list(self.local_uri("missing"))
        self.assertEqual(local.calls, ["connect", "disconnect"])

    def test_disconnect_failure_does_not_hide_interrupt(self):
        local = _InterruptedLocalBackend(disconnect_error=RuntimeError("stuck"))
        manager = self.make_manager(local)
        with self.assertRaises(KeyboardInterrupt):
            manager.list(self.local_uri())
        self.assertEqual(local.calls, ["connect", "disconnect"])
