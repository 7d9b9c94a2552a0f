"""
HTTP client for the remote filesystem service.

Implements the RemoteClient interface on top of the service's REST API
using requests. Listings are assembled from the folder, file and link
collections of a path; plugin catalog and feed lookups go through the
corresponding search endpoints.
"""

import logging
import time
from pathlib import Path
from urllib.parse import urljoin

import requests

from .config import ConnectionConfig, normalize_url
from .remote_client import ListingItem, TransferSummary

logger = logging.getLogger(__name__)

LINK_SUFFIX = ".chrislink"
RETRY_STATUS = {429, 500, 502, 503, 504}


def _relative(path: str) -> str:
    """The API addresses paths without the leading slash."""
    return path.strip("/")


def _absolute(path: str) -> str:
    return "/" + path.strip("/")


def _basename(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


class CubeClient:
    """
    Token-authenticated client with retry logic and the RemoteClient interface.
    """

    def __init__(
        self,
        url: str,
        token: str,
        username: str,
        conn_config: ConnectionConfig,
        http: requests.Session | None = None,
    ):
        self.url = normalize_url(url)
        self.token = token
        self.username = username
        self.conn_config = conn_config
        self._http = http or requests.Session()
        self._http.headers.update(
            {"Authorization": f"Token {token}", "Accept": "application/json"}
        )

    @classmethod
    def login(
        cls,
        url: str,
        username: str,
        password: str,
        conn_config: ConnectionConfig,
        http: requests.Session | None = None,
    ) -> "CubeClient":
        """
        Obtain an auth token and return a connected client.

        Raises:
            PermissionError: If the credentials are rejected.
            ConnectionError: If the service cannot be reached.
        """
        url = normalize_url(url)
        http = http or requests.Session()
        logger.debug("Requesting token for %s at %s", username, url)
        try:
            response = http.post(
                urljoin(url, "auth-token/"),
                json={"username": username, "password": password},
                timeout=conn_config.timeout_seconds,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error("Connection to %s failed: %s", url, e)
            raise ConnectionError(f"Could not reach {url}: {e}") from e

        if response.status_code in (400, 401, 403):
            raise PermissionError(f"Authentication failed for user {username}")
        if not response.ok:
            raise ConnectionError(f"Login failed: HTTP {response.status_code}")

        token = response.json().get("token")
        if not token:
            raise ConnectionError("Login failed: no token in response")
        logger.info("Logged in to %s as %s", url, username)
        return cls(url, token, username, conn_config, http=http)

    def close(self) -> None:
        """Close the HTTP session."""
        self._http.close()
        logger.debug("HTTP session closed")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _with_retry(self, operation: str, func, *args, **kwargs):
        """Execute with retry logic, translating HTTP errors to built-ins."""
        last_exception = None

        for attempt in range(self.conn_config.retry_attempts):
            try:
                return func(*args, **kwargs)
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else 0
                if status == 404:
                    raise FileNotFoundError(f"Not found: {operation}") from e
                if status in (401, 403):
                    raise PermissionError(f"Access denied: {operation}") from e
                if status not in RETRY_STATUS:
                    raise OSError(f"{operation} failed: HTTP {status}") from e
                last_exception = e
                logger.warning(
                    "%s failed (attempt %d/%d): HTTP %d",
                    operation,
                    attempt + 1,
                    self.conn_config.retry_attempts,
                    status,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                last_exception = e
                logger.warning(
                    "%s failed (attempt %d/%d): %s",
                    operation,
                    attempt + 1,
                    self.conn_config.retry_attempts,
                    e,
                )

            if attempt < self.conn_config.retry_attempts - 1:
                time.sleep(self.conn_config.retry_delay_seconds)

        logger.error("%s failed after %d attempts", operation, self.conn_config.retry_attempts)
        if isinstance(last_exception, (requests.ConnectionError, requests.Timeout)):
            raise ConnectionError(f"{operation} failed: {last_exception}") from last_exception
        raise OSError(f"{operation} failed: {last_exception}") from last_exception

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        if not url.startswith("http"):
            url = urljoin(self.url, url)
        response = self._http.request(
            method, url, timeout=self.conn_config.timeout_seconds, **kwargs
        )
        response.raise_for_status()
        return response

    def _get_json(self, url: str, params: dict | None = None) -> dict:
        return self._request("GET", url, params=params).json()

    def _collect(self, url: str, params: dict | None = None) -> list[dict]:
        """Follow 'next' links of a paginated collection."""
        results = []
        params = dict(params or {})
        params.setdefault("limit", self.conn_config.page_size)
        next_url = url
        while next_url:
            page = self._get_json(next_url, params)
            results.extend(page.get("results", []))
            next_url = page.get("next")
            # the next link already carries the query string
            params = None
        return results

    # ------------------------------------------------------------------
    # Filesystem
    # ------------------------------------------------------------------

    def _folder(self, path: str) -> dict:
        page = self._get_json("filebrowser/search/", {"path": _relative(path)})
        folders = page.get("results", [])
        if not folders:
            raise FileNotFoundError(f"No such file or directory: {path}")
        return folders[0]

    def _parse_folder(self, data: dict) -> ListingItem:
        path = _absolute(data.get("path", ""))
        return ListingItem(
            name=_basename(path),
            type="dir",
            owner=data.get("owner_username", ""),
            mtime=data.get("creation_date", ""),
            path=path,
            url=data.get("url", ""),
        )

    def _parse_file(self, data: dict) -> ListingItem:
        path = _absolute(data.get("fname", ""))
        return ListingItem(
            name=_basename(path),
            type="file",
            size=int(data.get("fsize") or 0),
            owner=data.get("owner_username", ""),
            mtime=data.get("creation_date", ""),
            path=path,
            url=data.get("url", ""),
        )

    def _parse_link(self, data: dict) -> ListingItem:
        path = _absolute(data.get("fname", ""))
        name = _basename(path)
        if name.endswith(LINK_SUFFIX):
            name = name[: -len(LINK_SUFFIX)]
        return ListingItem(
            name=name,
            type="link",
            size=int(data.get("fsize") or 0),
            owner=data.get("owner_username", ""),
            mtime=data.get("creation_date", ""),
            path=path,
            target=_absolute(data.get("path", "")),
            url=data.get("url", ""),
        )

    def list_dir(self, path: str) -> list[ListingItem]:
        """List the folders, files and links under path."""
        logger.debug("Listing directory: %s", path)

        def _list_dir_internal() -> list[ListingItem]:
            folder = self._folder(path)
            items = []
            if folder.get("child_folders"):
                items += [self._parse_folder(d) for d in self._collect(folder["child_folders"])]
            if folder.get("files"):
                items += [self._parse_file(f) for f in self._collect(folder["files"])]
            if folder.get("link_files"):
                items += [self._parse_link(ln) for ln in self._collect(folder["link_files"])]
            items.sort(key=lambda item: item.name)
            logger.debug("Listed %d entries in %s", len(items), path)
            return items

        return self._with_retry(f"list_dir({path})", _list_dir_internal)

    def _find(self, path: str) -> ListingItem:
        """Locate a single item through its parent's listing."""
        if path.rstrip("/") == "":
            raise FileNotFoundError("The root directory is not an item")
        parent = path.rstrip("/").rsplit("/", 1)[0] or "/"
        name = _basename(path)
        for item in self.list_dir(parent):
            if item.name == name:
                return item
        raise FileNotFoundError(f"No such file or directory: {path}")

    def read_file(self, path: str) -> bytes:
        item = self._find(path)
        if item.is_dir:
            raise IsADirectoryError(f"Is a directory: {path}")

        def _read_internal() -> bytes:
            meta = self._get_json(item.url)
            data = self._request("GET", meta["file_resource"]).content
            logger.debug("Read %d bytes from %s", len(data), path)
            return data

        return self._with_retry(f"read_file({path})", _read_internal)

    def create_dir(self, path: str) -> None:
        logger.debug("Creating directory: %s", path)
        self._with_retry(
            f"create_dir({path})",
            self._request,
            "POST",
            "filebrowser/",
            json={"path": _relative(path)},
        )

    def create_file(self, path: str, data: bytes = b"") -> None:
        logger.debug("Creating file: %s (%d bytes)", path, len(data))
        self._with_retry(
            f"create_file({path})",
            self._request,
            "POST",
            "userfiles/",
            data={"upload_path": _relative(path)},
            files={"fname": (_basename(path), data)},
        )

    def rename(self, old_path: str, new_path: str) -> None:
        logger.debug("Renaming: %s -> %s", old_path, new_path)
        item = self._find(old_path)
        if item.is_dir:
            payload = {"path": _relative(new_path)}
        else:
            payload = {"new_file_path": _relative(new_path)}
        self._with_retry(
            f"rename({old_path}, {new_path})", self._request, "PUT", item.url, json=payload
        )

    def delete(self, path: str, recursive: bool = False) -> None:
        logger.debug("Deleting: %s (recursive=%s)", path, recursive)
        item = self._find(path)
        if item.is_dir and not recursive:
            raise IsADirectoryError(f"Is a directory: {path}")
        self._with_retry(f"delete({path})", self._request, "DELETE", item.url)

    def upload(self, local_path: Path, remote_path: str) -> TransferSummary:
        summary = TransferSummary()
        started = time.monotonic()
        local_path = Path(local_path)
        if not local_path.exists():
            raise FileNotFoundError(f"No such local file or directory: {local_path}")

        if local_path.is_file():
            pairs = [(local_path, f"{remote_path.rstrip('/')}/{local_path.name}")]
        else:
            base = f"{remote_path.rstrip('/')}/{local_path.name}"
            pairs = [
                (f, f"{base}/{f.relative_to(local_path).as_posix()}")
                for f in sorted(local_path.rglob("*"))
                if f.is_file()
            ]

        for source, target in pairs:
            data = source.read_bytes()
            try:
                self.create_file(target, data)
                summary.transferred_count += 1
                summary.total_bytes += len(data)
            except OSError as e:
                logger.warning("Upload of %s failed: %s", source, e)
                summary.failed_count += 1

        summary.duration = time.monotonic() - started
        return summary

    def download(self, remote_path: str, local_path: Path, force: bool = False) -> TransferSummary:
        summary = TransferSummary()
        started = time.monotonic()
        local_path = Path(local_path)
        item = self._find(remote_path)

        if item.is_dir:
            self._download_tree(item.path, local_path / item.name, force, summary)
        else:
            target = local_path / item.name if local_path.is_dir() else local_path
            self._download_file(item.path, target, force, summary)

        summary.duration = time.monotonic() - started
        return summary

    def _download_tree(self, remote_dir: str, local_dir: Path, force: bool, summary) -> None:
        local_dir.mkdir(parents=True, exist_ok=True)
        for item in self.list_dir(remote_dir):
            if item.is_dir:
                self._download_tree(item.path, local_dir / item.name, force, summary)
            elif item.type == "file":
                self._download_file(item.path, local_dir / item.name, force, summary)

    def _download_file(self, remote_file: str, target: Path, force: bool, summary) -> None:
        if target.exists() and not force:
            logger.warning("Refusing to overwrite %s", target)
            summary.failed_count += 1
            return
        try:
            data = self.read_file(remote_file)
        except OSError as e:
            logger.warning("Download of %s failed: %s", remote_file, e)
            summary.failed_count += 1
            return
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        summary.transferred_count += 1
        summary.total_bytes += len(data)

    # ------------------------------------------------------------------
    # Plugin catalog and feeds
    # ------------------------------------------------------------------

    def plugins_list_exact(self, name: str, version: str) -> list[dict]:
        return self._with_retry(
            f"plugins_list_exact({name}, {version})",
            self._collect,
            "plugins/search/",
            {"name_exact": name, "version": version},
        )

    def plugins_list_all(self, name: str | None = None) -> list[dict]:
        if name is None:
            return self._with_retry("plugins_list_all()", self._collect, "plugins/")
        return self._with_retry(
            f"plugins_list_all({name})", self._collect, "plugins/search/", {"name": name}
        )

    def plugin_readme(self, plugin_id: int) -> str | None:
        meta = self._with_retry(f"plugin({plugin_id})", self._get_json, f"plugins/{plugin_id}/")
        documentation = meta.get("documentation") or ""
        if not documentation.startswith("http"):
            return documentation or None
        response = self._with_retry(
            f"plugin_readme({plugin_id})", self._request, "GET", documentation
        )
        return response.text or None

    def plugin_parameters(self, plugin_id: int) -> list[dict]:
        return self._with_retry(
            f"plugin_parameters({plugin_id})",
            self._collect,
            f"plugins/{plugin_id}/parameters/",
        )

    def feed_name(self, feed_id: int) -> str | None:
        meta = self._with_retry(f"feed({feed_id})", self._get_json, f"{feed_id}/")
        return meta.get("name") or None

    def plugin_instance(self, instance_id: int) -> dict:
        return self._with_retry(
            f"plugin_instance({instance_id})",
            self._get_json,
            f"plugins/instances/{instance_id}/",
        )
