__version__ = "0.1.0"

# Public API exports
from .cache import CacheStats, ListingCache
from .completer import BUILTINS, Completer
from .config import (
    AppConfig,
    CacheConfig,
    ConnectionConfig,
    CubeConfig,
    LogConfig,
    SessionConfig,
    ShellConfig,
    load_config,
)
from .cube_client import CubeClient
from .dispatcher import Dispatcher, ExternalCommand
from .interceptor import PluginInterceptor, ResolvedPlugin, parse_plugin_token
from .remote_client import ListingItem, RemoteClient, TransferSummary
from .resolver import PathResolver, ProbeResult, resolve_path
from .session import NotConnectedError, Session
from .status import CommandStatus

__all__ = [
    "__version__",
    # Configuration
    "AppConfig",
    "CubeConfig",
    "SessionConfig",
    "CacheConfig",
    "ConnectionConfig",
    "ShellConfig",
    "LogConfig",
    "load_config",
    # Clients
    "RemoteClient",
    "CubeClient",
    "ListingItem",
    "TransferSummary",
    # Session and cache
    "Session",
    "NotConnectedError",
    "ListingCache",
    "CacheStats",
    # Shell
    "PathResolver",
    "ProbeResult",
    "resolve_path",
    "Completer",
    "BUILTINS",
    "PluginInterceptor",
    "ResolvedPlugin",
    "parse_plugin_token",
    "Dispatcher",
    "ExternalCommand",
    "CommandStatus",
]
