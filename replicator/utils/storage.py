"""
Durable storage access for the replication workspace.

Wraps an fsspec filesystem rooted at the configured storage URI (local
path, file://, s3://, ...). The workspace holds the progress markers, the
snapshot dump and the change-capture output.
"""

import json
import logging
import posixpath
from typing import Any, Dict, List, Optional

import fsspec

from replicator.exceptions import StorageCheckError

logger = logging.getLogger(__name__)


class ReplicationStorage:
    """Relative-path access to one storage root."""

    def __init__(self, root_uri: str, storage_options: Optional[Dict[str, Any]] = None):
        """
        Args:
            root_uri: Root of the workspace, e.g. "s3://bucket/replicate/orders"
            storage_options: fsspec options for the backend (credentials, endpoint)
        """
        self.root_uri = root_uri.rstrip('/')
        self.storage_options = storage_options or {}
        self._fs = None
        self._root_path = None

    def __repr__(self) -> str:
        return f"ReplicationStorage({self.root_uri!r})"

    def _ensure_fs(self) -> fsspec.AbstractFileSystem:
        """Lazy initialization of the fsspec filesystem."""
        if self._fs is None:
            self._fs, root_path = fsspec.core.url_to_fs(
                self.root_uri, **self.storage_options
            )
            self._root_path = root_path.rstrip('/')
        return self._fs

    @property
    def fs(self) -> fsspec.AbstractFileSystem:
        return self._ensure_fs()

    @property
    def root_path(self) -> str:
        """Root path as the filesystem sees it (protocol stripped)."""
        self._ensure_fs()
        return self._root_path

    def uri(self, relative: str = '') -> str:
        """Full URI of a path relative to the root."""
        relative = relative.strip('/')
        return f"{self.root_uri}/{relative}" if relative else self.root_uri

    def child(self, relative: str) -> 'ReplicationStorage':
        """Storage rooted at a sub-path of this one."""
        return ReplicationStorage(self.uri(relative), self.storage_options)

    def _path(self, relative: str) -> str:
        relative = relative.strip('/')
        return f"{self.root_path}/{relative}" if relative else self.root_path

    def exists(self, relative: str) -> bool:
        """
        Check whether a file exists.

        Returns False only when the backend reports the path as not found;
        any other failure while probing raises StorageCheckError.
        """
        try:
            self.fs.info(self._path(relative))
            return True
        except FileNotFoundError:
            return False
        except Exception as e:
            raise StorageCheckError(
                f"Failed to check {self.uri(relative)}: {str(e)}"
            ) from e

    def read_text(self, relative: str) -> str:
        with self.fs.open(self._path(relative), 'r', encoding='utf-8') as f:
            return f.read()

    def read_json(self, relative: str) -> Any:
        return json.loads(self.read_text(relative))

    def write_text(self, relative: str, content: str):
        path = self._path(relative)
        self.fs.makedirs(posixpath.dirname(path), exist_ok=True)
        with self.fs.open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        logger.debug(f"Wrote {self.uri(relative)}")

    def write_json(self, relative: str, data: Any):
        self.write_text(relative, json.dumps(data, indent=2, sort_keys=True))

    def list_files(self, prefix: str = '') -> List[str]:
        """
        List files under a prefix, recursively.

        Returns:
            Sorted paths relative to the storage root; empty if the prefix is absent
        """
        base = self._path(prefix)
        try:
            found = self.fs.find(base)
        except FileNotFoundError:
            return []

        root = self.root_path + '/'
        return sorted(p[len(root):] if p.startswith(root) else p for p in found)
