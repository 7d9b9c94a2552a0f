"""
Plugin executable interceptor.

A command token of the form ``<plugin-name>-v<version>`` (for example
``pl-simpledsapp-v2.1.3``) is treated as an executable for the catalog
plugin of that name and version. The interceptor answers the
introspection flags itself and leaves anything else to the dispatcher.
"""

import logging
import sys
from dataclasses import dataclass

from .session import Session
from .status import CommandStatus
from .views import format_parameters

logger = logging.getLogger(__name__)

VERSION_SEPARATOR = "-v"


@dataclass(frozen=True)
class ResolvedPlugin:
    id: int
    name: str
    version: str


def parse_plugin_token(token: str) -> tuple[str, str] | None:
    """
    Split a plugin executable token on the last ``-v``.

    Returns:
        (name, version), or None if the token is not a plugin executable.
    """
    index = token.rfind(VERSION_SEPARATOR)
    if index == -1:
        return None
    name = token[:index]
    version = token[index + len(VERSION_SEPARATOR):]
    if not name or not version:
        return None
    return name, version


def _as_resolved(candidate: dict | None) -> ResolvedPlugin | None:
    if not isinstance(candidate, dict):
        return None
    plugin_id = candidate.get("id")
    name = candidate.get("name")
    version = candidate.get("version")
    if isinstance(plugin_id, bool) or not isinstance(plugin_id, int):
        return None
    if not isinstance(name, str) or not isinstance(version, str):
        return None
    return ResolvedPlugin(id=plugin_id, name=name, version=version)


def usage(name: str, version: str) -> str:
    return (
        f"Usage: {name}-v{version} [--parameters] [--readme] [-h|--help]\n"
        f"  --parameters  list the parameters of {name} v{version}\n"
        f"  --readme      show the plugin README\n"
        f"  -h, --help    show this message"
    )


def _report_lookup_error(name: str, version: str, error: OSError) -> None:
    logger.warning("Resolving plugin %s v%s failed: %s", name, version, error)
    print(f"{name}-v{version}: error resolving plugin: {error}", file=sys.stderr)


class PluginInterceptor:
    """First handler offered every command line."""

    def __init__(self, session: Session):
        self.session = session

    def _lookup(self, name: str, version: str) -> ResolvedPlugin | None:
        """
        The exact search is tried first. Its top result is only trusted if
        it matches both name and version; otherwise all versions of name
        are scanned. Remote errors propagate.
        """
        client = self.session.require_connection()
        results = client.plugins_list_exact(name, version)
        candidate = results[0] if results else None
        if not candidate or candidate.get("name") != name or candidate.get("version") != version:
            logger.debug("Exact search for %s v%s was not exact, scanning catalog", name, version)
            candidate = next(
                (
                    p
                    for p in client.plugins_list_all(name)
                    if p.get("name") == name and p.get("version") == version
                ),
                None,
            )
        return _as_resolved(candidate)

    def resolve_exact(self, name: str, version: str) -> ResolvedPlugin | None:
        """Resolve name and version to a catalog entry. Remote errors are reported and give None."""
        try:
            return self._lookup(name, version)
        except OSError as e:
            _report_lookup_error(name, version, e)
            return None

    def handle(self, command: str, args: list[str]) -> CommandStatus:
        parsed = parse_plugin_token(command)
        if parsed is None:
            return CommandStatus.NOT_HANDLED
        name, version = parsed

        if "-h" in args or "--help" in args:
            print(usage(name, version))
            return CommandStatus.HANDLED

        wants_readme = "--readme" in args
        wants_parameters = "--parameters" in args
        if not wants_readme and not wants_parameters:
            return CommandStatus.NOT_HANDLED

        try:
            plugin = self._lookup(name, version)
        except OSError as e:
            _report_lookup_error(name, version, e)
            return CommandStatus.HANDLED_WITH_ERROR
        if plugin is None:
            print(f"{command}: plugin {name} v{version} not found", file=sys.stderr)
            return CommandStatus.HANDLED_WITH_ERROR
        logger.debug("Resolved %s to plugin id %d", command, plugin.id)

        status = CommandStatus.HANDLED
        if wants_readme:
            status = self._readme(command, plugin)
        if wants_parameters:
            parameters_status = self._parameters(command, plugin)
            if parameters_status is CommandStatus.HANDLED_WITH_ERROR:
                status = parameters_status
        return status

    def _readme(self, command: str, plugin: ResolvedPlugin) -> CommandStatus:
        try:
            text = self.session.require_connection().plugin_readme(plugin.id)
        except OSError as e:
            print(f"{command}: error fetching README: {e}", file=sys.stderr)
            return CommandStatus.HANDLED_WITH_ERROR
        if not text or not text.strip():
            print(f"No README available for {plugin.name} v{plugin.version}")
        else:
            print(text)
        return CommandStatus.HANDLED

    def _parameters(self, command: str, plugin: ResolvedPlugin) -> CommandStatus:
        print(f"Resolved plugin: {plugin.name} v{plugin.version} (ID: {plugin.id})")
        try:
            parameters = self.session.require_connection().plugin_parameters(plugin.id)
        except OSError as e:
            print(f"{command}: error fetching parameters: {e}", file=sys.stderr)
            return CommandStatus.HANDLED_WITH_ERROR
        for line in format_parameters(parameters):
            print(line)
        return CommandStatus.HANDLED
