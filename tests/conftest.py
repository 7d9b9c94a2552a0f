"""
Shared pytest fixtures for cube-shell tests.
"""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cube_shell.builtins import BuiltinTable
from cube_shell.cache import ListingCache
from cube_shell.config import (
    AppConfig,
    CacheConfig,
    ConnectionConfig,
    CubeConfig,
    LogConfig,
    SessionConfig,
    ShellConfig,
)
from cube_shell.cube_client import CubeClient
from cube_shell.dispatcher import Dispatcher, ExternalCommand
from cube_shell.interceptor import PluginInterceptor
from cube_shell.remote_client import ListingItem
from cube_shell.resolver import PathResolver
from cube_shell.session import Session


def _dir(name: str, parent: str) -> ListingItem:
    path = f"{parent.rstrip('/')}/{name}"
    return ListingItem(name=name, type="dir", owner="chris", mtime="2024-01-15T10:30:00", path=path)


def _file(name: str, parent: str, size: int = 100) -> ListingItem:
    path = f"{parent.rstrip('/')}/{name}"
    return ListingItem(
        name=name, type="file", size=size, owner="chris", mtime="2024-01-15T10:30:00", path=path
    )


@pytest.fixture
def tmp_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a temporary INI configuration file for config tests.

    Returns:
        Path to the temporary config file.
    """
    config_content = """[cube]
url = http://cube.test/api/v1
username = chris
password = chris1234

[session]
start_dir = /home/chris/uploads
physical_mode = true
context_file = ~/ctx.json

[cache]
enabled = false
plugin_ttl_seconds = 120

[connection]
timeout_seconds = 45
retry_attempts = 5
retry_delay_seconds = 2
page_size = 50

[shell]
history_file = ~/hist
external_command = /usr/local/bin/chili

[logging]
level = DEBUG
file = test.log
console = false
"""
    config_path = tmp_path / "test_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    yield config_path


@pytest.fixture
def conn_config() -> ConnectionConfig:
    """Creates a ConnectionConfig with no retry delay for testing."""
    return ConnectionConfig(
        timeout_seconds=30,
        retry_attempts=3,
        retry_delay_seconds=0,
        page_size=100,
    )


@pytest.fixture
def app_config(tmp_path: Path, conn_config: ConnectionConfig) -> AppConfig:
    """Creates an AppConfig whose context file lives in tmp_path."""
    return AppConfig(
        cube=CubeConfig(),
        session=SessionConfig(context_file=str(tmp_path / "context.json")),
        cache=CacheConfig(),
        connection=conn_config,
        shell=ShellConfig(history_file=str(tmp_path / "history"), external_command="chili"),
        logging=LogConfig(file=""),
    )


@pytest.fixture
def remote_tree() -> dict[str, list[ListingItem]]:
    """
    A small remote filesystem keyed by physical directory path.

    /home/chris/shared is a link to /SHARED.
    """
    return {
        "/": [_dir("home", "/"), _dir("SHARED", "/")],
        "/home": [_dir("chris", "/home")],
        "/home/chris": [
            _dir("My Folder", "/home/chris"),
            _file("data.csv", "/home/chris", size=2048),
            _file("notes.txt", "/home/chris", size=12),
            ListingItem(
                name="shared",
                type="link",
                owner="chris",
                path="/home/chris/shared.chrislink",
                target="/SHARED",
            ),
            _dir("uploads", "/home/chris"),
        ],
        "/home/chris/My Folder": [_file("inside.txt", "/home/chris/My Folder")],
        "/home/chris/uploads": [
            _file("a.txt", "/home/chris/uploads"),
            _file("b.txt", "/home/chris/uploads"),
            _file("c.dcm", "/home/chris/uploads"),
        ],
        "/SHARED": [_file("pub.txt", "/SHARED")],
    }


@pytest.fixture
def mock_client(remote_tree: dict[str, list[ListingItem]]) -> Generator[MagicMock, None, None]:
    """
    Creates a fully mocked CubeClient serving remote_tree.

    Returns:
        Mocked client whose list_dir raises FileNotFoundError for unknown paths.
    """
    mock = MagicMock(spec=CubeClient)
    mock.url = "http://cube.test/api/v1/"
    mock.username = "chris"
    mock.token = "secret-token"

    def _list_dir(path: str) -> list[ListingItem]:
        if path not in remote_tree:
            raise FileNotFoundError(f"No such file or directory: {path}")
        return list(remote_tree[path])

    mock.list_dir.side_effect = _list_dir
    mock.read_file.return_value = b"hello\n"
    mock.plugins_list_all.return_value = [
        {"id": 1, "name": "pl-dircopy", "version": "2.1.1", "creation_date": "2024-01-01"},
        {"id": 7, "name": "pl-simpledsapp", "version": "2.1.3", "creation_date": "2024-02-01"},
    ]
    yield mock


@pytest.fixture
def listing_cache() -> ListingCache:
    return ListingCache()


@pytest.fixture
def session(listing_cache: ListingCache, mock_client: MagicMock) -> Session:
    """A session connected to mock_client with cwd /home/chris."""
    session = Session(listing_cache)
    session.connect(mock_client)
    session.set_cwd("/home/chris")
    return session


@pytest.fixture
def resolver(session: Session) -> PathResolver:
    return PathResolver(session)


@pytest.fixture
def builtins(
    session: Session, resolver: PathResolver, app_config: AppConfig, mock_client: MagicMock
) -> BuiltinTable:
    """A BuiltinTable whose connector returns mock_client."""
    connector = MagicMock(return_value=mock_client)
    return BuiltinTable(session, resolver, app_config, connector=connector)


@pytest.fixture
def dispatcher(session: Session, builtins: BuiltinTable) -> Dispatcher:
    return Dispatcher(PluginInterceptor(session), builtins, ExternalCommand("chili"))
