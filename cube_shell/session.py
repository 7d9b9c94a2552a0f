"""
Shell session state.

Holds the current working directory, the remote connection and the
logical/physical path mode for the lifetime of the process. The saved
context (URL, user, token, cwd) is persisted between runs in a small JSON
file.
"""

import json
import logging
from pathlib import Path

from .cache import ListingCache
from .remote_client import RemoteClient

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_FILE = Path.home() / ".cube-shell" / "context.json"


class NotConnectedError(ConnectionError):
    """Raised when a command needs a remote connection and there is none."""

    def __init__(self, message: str = "not connected"):
        super().__init__(message)


class Session:
    """
    Process-wide shell state.

    Every change of the working directory is forwarded to the listing
    cache, which drops its entries when the directory actually changed.
    """

    def __init__(self, cache: ListingCache, cwd: str = "/", physical_mode: bool = False):
        self.cache = cache
        self._cwd = "/"
        self._physical_mode = physical_mode
        self.connection: RemoteClient | None = None
        self.set_cwd(cwd)

    @property
    def cwd(self) -> str:
        return self._cwd

    def set_cwd(self, path: str) -> None:
        if not path.startswith("/"):
            path = "/" + path
        self._cwd = path
        self.cache.cwd_update(path)

    @property
    def physical_mode(self) -> bool:
        return self._physical_mode

    def set_physical_mode(self, enabled: bool) -> None:
        if enabled != self._physical_mode:
            # cached listings were fetched under the other mapping
            self.cache.invalidate()
        self._physical_mode = enabled

    @property
    def user(self) -> str | None:
        return self.connection.username if self.connection is not None else None

    @property
    def home(self) -> str:
        return f"/home/{self.user}" if self.user else "/"

    @property
    def connected(self) -> bool:
        return self.connection is not None

    def connect(self, client: RemoteClient) -> None:
        if self.connection is not None and self.connection is not client:
            self.disconnect()
        self.connection = client
        self.cache.invalidate()
        logger.info("Session connected to %s as %s", client.url, client.username)

    def disconnect(self) -> None:
        if self.connection is None:
            return
        try:
            self.connection.close()
        except Exception as e:
            logger.warning("Error closing connection: %s", e)
        self.connection = None
        self.cache.invalidate()
        logger.info("Session disconnected")

    def require_connection(self) -> RemoteClient:
        if self.connection is None:
            raise NotConnectedError()
        return self.connection


def get_context_path(context_file: str | None = None) -> Path:
    """Get the context file path, using default if not specified."""
    if context_file:
        return Path(context_file).expanduser()
    return DEFAULT_CONTEXT_FILE


def load_context(context_path: Path) -> dict | None:
    """
    Load the saved session context from disk.

    Returns None if no saved context exists or it can't be loaded.
    """
    if not context_path.exists():
        logger.debug("No saved context at %s", context_path)
        return None

    try:
        data = json.loads(context_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load saved context: %s", e)
        return None

    if not isinstance(data, dict) or not data.get("url") or not data.get("token"):
        logger.warning("Ignoring incomplete context in %s", context_path)
        return None
    logger.debug("Loaded context from %s", context_path)
    return data


def save_context(context: dict, context_path: Path) -> None:
    """Save the session context to disk for future runs."""
    context_path.parent.mkdir(parents=True, exist_ok=True)
    context_path.write_text(json.dumps(context, indent=2), encoding="utf-8")
    logger.info("Saved context to %s", context_path)


def clear_context(context_path: Path) -> None:
    if context_path.exists():
        context_path.unlink()
        logger.info("Removed saved context %s", context_path)
