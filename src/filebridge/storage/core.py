from autoinject import injector
from filebridge.storage.base import BaseBackend
from filebridge.storage.errors import UnknownSchemeError
from filebridge.storage.gcs import GCSBackend
from filebridge.storage.local import LocalBackend
from filebridge.storage.uri import URI, parse_uri
import typing as t


@injector.injectable_global
class BackendRegistry:
    """Maps a URI scheme to the one backend instance that serves it.

        (no scheme) -> LocalBackend
        gs://BUCKET/KEY -> GCSBackend

        The default instance is shared process-wide through autoinject. A
        registry can also be built with its own mapping, which is how tests
        substitute backends.
    """

    def __init__(self, backends: t.Optional[dict[str, BaseBackend]] = None):
        if backends is None:
            backends = {
                LocalBackend.scheme: LocalBackend(),
                GCSBackend.scheme: GCSBackend(),
            }
        self._backends: dict[str, BaseBackend] = dict(backends)

    def schemes(self) -> frozenset[str]:
        return frozenset(self._backends.keys())

    def get_backend(self, scheme: str) -> BaseBackend:
        """Find the backend for the given scheme."""
        if scheme not in self._backends:
            raise UnknownSchemeError(scheme)
        return self._backends[scheme]

    def parse(self, value: str) -> URI:
        """Parse a URI, accepting only the schemes this registry serves."""
        return parse_uri(value, self.schemes())
