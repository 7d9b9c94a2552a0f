import configparser
from dataclasses import dataclass
from pathlib import Path

TRUE_VALUES = ("true", "1", "yes")


@dataclass
class CubeConfig:
    url: str | None = None
    username: str | None = None
    password: str | None = None


@dataclass
class SessionConfig:
    start_dir: str = "~"
    physical_mode: bool = False
    context_file: str = "~/.cube-shell/context.json"


@dataclass
class CacheConfig:
    enabled: bool = True
    plugin_ttl_seconds: int = 60


@dataclass
class ConnectionConfig:
    timeout_seconds: int = 30
    retry_attempts: int = 3
    retry_delay_seconds: int = 1
    page_size: int = 100


@dataclass
class ShellConfig:
    history_file: str = "~/.cube-shell/history"
    external_command: str = "chili"


@dataclass
class LogConfig:
    level: str = "INFO"
    file: str = "cube-shell.log"
    console: bool = False


@dataclass
class AppConfig:
    cube: CubeConfig
    session: SessionConfig
    cache: CacheConfig
    connection: ConnectionConfig
    shell: ShellConfig
    logging: LogConfig


def normalize_url(url: str) -> str:
    """Ensure an API base URL ends with a single slash."""
    return url.rstrip("/") + "/"


def _get_int(section: configparser.SectionProxy, key: str, section_name: str) -> int:
    value = section.get(key)
    try:
        return int(value)
    except ValueError:
        raise ValueError(
            f"Invalid {key} value in [{section_name}]: '{value}' - must be an integer"
        )


def _get_bool(section: configparser.SectionProxy, key: str) -> bool:
    return section.get(key, "false").lower() in TRUE_VALUES


def load_config(config_path: str | None = None, **cli_args) -> AppConfig:
    """
    Load configuration from an INI file and/or CLI arguments.
    CLI arguments take precedence over config file.

    Args:
        config_path: Path to the INI configuration file.
        **cli_args: Key-value pairs from command line arguments.

    Returns:
        AppConfig: The populated configuration object.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If an integer field holds a non-integer value.
    """
    # Initialize with defaults
    cube_config = {
        "url": None,
        "username": None,
        "password": None,
    }
    session_config = {
        "start_dir": "~",
        "physical_mode": False,
        "context_file": "~/.cube-shell/context.json",
    }
    cache_config = {
        "enabled": True,
        "plugin_ttl_seconds": 60,
    }
    connection_config = {
        "timeout_seconds": 30,
        "retry_attempts": 3,
        "retry_delay_seconds": 1,
        "page_size": 100,
    }
    shell_config = {
        "history_file": "~/.cube-shell/history",
        "external_command": "chili",
    }
    log_config = {
        "level": "INFO",
        "file": "cube-shell.log",
        "console": False,
    }

    # Parse INI file if provided
    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_file, encoding="utf-8")

        # Load [cube] section
        if parser.has_section("cube"):
            cube_section = parser["cube"]
            for key in ("url", "username", "password"):
                if cube_section.get(key):
                    cube_config[key] = cube_section.get(key)

        # Load [session] section
        if parser.has_section("session"):
            session_section = parser["session"]
            if session_section.get("start_dir"):
                session_config["start_dir"] = session_section.get("start_dir")
            if session_section.get("physical_mode"):
                session_config["physical_mode"] = _get_bool(session_section, "physical_mode")
            if session_section.get("context_file"):
                session_config["context_file"] = session_section.get("context_file")

        # Load [cache] section
        if parser.has_section("cache"):
            cache_section = parser["cache"]
            if cache_section.get("enabled"):
                cache_config["enabled"] = _get_bool(cache_section, "enabled")
            if cache_section.get("plugin_ttl_seconds"):
                cache_config["plugin_ttl_seconds"] = _get_int(
                    cache_section, "plugin_ttl_seconds", "cache"
                )

        # Load [connection] section
        if parser.has_section("connection"):
            conn_section = parser["connection"]
            for key in connection_config:
                if conn_section.get(key):
                    connection_config[key] = _get_int(conn_section, key, "connection")

        # Load [shell] section
        if parser.has_section("shell"):
            shell_section = parser["shell"]
            if shell_section.get("history_file"):
                shell_config["history_file"] = shell_section.get("history_file")
            if shell_section.get("external_command"):
                shell_config["external_command"] = shell_section.get("external_command")

        # Load [logging] section
        if parser.has_section("logging"):
            log_section = parser["logging"]
            if log_section.get("level"):
                log_config["level"] = log_section.get("level")
            if "file" in log_section:
                log_config["file"] = log_section.get("file")
            if log_section.get("console"):
                log_config["console"] = _get_bool(log_section, "console")

    # Override with CLI arguments (cli_args take precedence)
    if cli_args.get("url") is not None:
        cube_config["url"] = cli_args["url"]
    if cli_args.get("username") is not None:
        cube_config["username"] = cli_args["username"] or None
    if cli_args.get("password") is not None:
        cube_config["password"] = cli_args["password"] or None
    if cli_args.get("physical_mode"):
        session_config["physical_mode"] = True
    if cli_args.get("debug"):
        log_config["level"] = "DEBUG"
        log_config["console"] = True

    if cube_config["url"]:
        cube_config["url"] = normalize_url(cube_config["url"])

    return AppConfig(
        cube=CubeConfig(**cube_config),
        session=SessionConfig(**session_config),
        cache=CacheConfig(**cache_config),
        connection=ConnectionConfig(**connection_config),
        shell=ShellConfig(**shell_config),
        logging=LogConfig(**log_config),
    )
