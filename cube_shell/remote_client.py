"""
Remote client protocol definition.

Defines the interface the shell needs from the remote filesystem service,
so the session, resolver and builtins work against any implementation
(the HTTP client in production, mocks in tests).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable


@dataclass
class ListingItem:
    """One entry of a remote directory listing."""

    name: str
    type: str  # "dir", "file", "link" or "plugin"
    size: int = 0
    owner: str = ""
    mtime: str = ""
    path: str = ""
    target: str = ""
    url: str = ""

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"


@dataclass
class TransferSummary:
    transferred_count: int = 0
    failed_count: int = 0
    total_bytes: int = 0
    duration: float = 0.0


@runtime_checkable
class RemoteClient(Protocol):
    """Protocol defining the remote service client interface.

    Paths are absolute remote paths. Errors are reported with built-in
    exception types: FileNotFoundError, PermissionError, ConnectionError,
    or OSError for anything else.
    """

    url: str
    username: str
    token: str

    def list_dir(self, path: str) -> list[ListingItem]:
        """List a directory.

        Raises:
            FileNotFoundError: If path does not exist.
        """
        ...

    def read_file(self, path: str) -> bytes:
        """Return the full content of a remote file."""
        ...

    def create_dir(self, path: str) -> None:
        """Create a directory."""
        ...

    def create_file(self, path: str, data: bytes = b"") -> None:
        """Create (or overwrite) a file with the given content."""
        ...

    def rename(self, old_path: str, new_path: str) -> None:
        """Rename or move a file/directory."""
        ...

    def delete(self, path: str, recursive: bool = False) -> None:
        """Delete a file, or a directory when recursive is set."""
        ...

    def upload(self, local_path: Path, remote_path: str) -> TransferSummary:
        """Upload a local file or directory tree under remote_path."""
        ...

    def download(self, remote_path: str, local_path: Path, force: bool = False) -> TransferSummary:
        """Download a remote file or directory tree to local_path."""
        ...

    def plugins_list_exact(self, name: str, version: str) -> list[dict]:
        """Catalog search by exact name and version. May be fuzzy in practice."""
        ...

    def plugins_list_all(self, name: str | None = None) -> list[dict]:
        """All catalog entries, or all versions of one plugin name."""
        ...

    def plugin_readme(self, plugin_id: int) -> str | None:
        """README text of a plugin, or None when it has none."""
        ...

    def plugin_parameters(self, plugin_id: int) -> list[dict]:
        """Parameter definitions of a plugin."""
        ...

    def feed_name(self, feed_id: int) -> str | None:
        """Display name of a feed."""
        ...

    def plugin_instance(self, instance_id: int) -> dict:
        """Metadata of a plugin instance (plugin_name, plugin_version)."""
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...
