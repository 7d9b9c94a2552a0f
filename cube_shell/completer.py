"""
Tab completion for the shell.

The engine is independent of any terminal library: ``complete(line)``
returns the candidate strings and the text they replace. The REPL adapts
it to prompt_toolkit.
"""

import logging

from cachetools import TTLCache

from .parser import tokenize
from .resolver import PathResolver
from .session import Session

logger = logging.getLogger(__name__)

# Declaration order is the completion order.
BUILTINS = (
    "cd",
    "pwd",
    "ls",
    "cat",
    "mkdir",
    "touch",
    "mv",
    "rm",
    "tree",
    "upload",
    "download",
    "connect",
    "logout",
    "context",
    "physicalmode",
    "cache",
    "help",
    "exit",
    "quit",
)

PATH_COMMANDS = {"cd", "ls", "cat", "mkdir", "touch", "mv", "rm", "tree", "download"}
DIR_ONLY_COMMANDS = {"cd"}


class Completer:
    """
    Completion engine over builtins, plugin executables and remote paths.

    Args:
        session: The shell session (connection and cwd).
        resolver: Path resolver whose listings go through the listing cache.
        plugin_ttl: Seconds the plugin-name catalog is reused before refetching.
    """

    def __init__(self, session: Session, resolver: PathResolver, plugin_ttl: int = 60):
        self.session = session
        self.resolver = resolver
        self._plugins: TTLCache = TTLCache(maxsize=4, ttl=max(plugin_ttl, 1))

    def complete(self, line: str) -> tuple[list[str], str]:
        """
        Complete a partial command line.

        Returns:
            (candidates, prefix): the replacements in stable order and the
            trailing text they replace.
        """
        if not line:
            return list(BUILTINS), ""

        stripped = line.lstrip()
        if " " not in stripped:
            return self._complete_command(stripped), line

        tokens = tokenize(line)
        if line.endswith(" "):
            tokens.append("")
        command, partial = tokens[0], tokens[-1]
        if command not in PATH_COMMANDS or partial.startswith("-"):
            return [], partial
        return self._complete_path(partial, dirs_only=command in DIR_ONLY_COMMANDS), partial

    def _complete_command(self, prefix: str) -> list[str]:
        matches = [name for name in BUILTINS if name.startswith(prefix)]
        matches += [name for name in self.plugin_names() if name.startswith(prefix)]
        return matches

    def plugin_names(self) -> list[str]:
        """Executable names of the catalog plugins; empty when disconnected."""
        client = self.session.connection
        if client is None:
            return []
        names = self._plugins.get(client.url)
        if names is not None:
            return names
        try:
            names = [f"{p['name']}-v{p['version']}" for p in client.plugins_list_all()]
        except (OSError, KeyError) as e:
            logger.debug("Plugin catalog unavailable for completion: %s", e)
            return []
        self._plugins[client.url] = names
        return names

    def _complete_path(self, partial: str, dirs_only: bool = False) -> list[str]:
        if not self.session.connected:
            return []
        if "/" in partial:
            dir_part, name_part = partial.rsplit("/", 1)
            dir_part += "/"
        else:
            dir_part, name_part = "", partial

        try:
            directory = self.resolver.resolve(dir_part or ".")
            items = self.resolver.listing(directory)
        except OSError as e:
            logger.debug("No path completions for %r: %s", partial, e)
            return []

        candidates = []
        for item in items:
            if not item.name.startswith(name_part):
                continue
            if item.is_dir or item.type == "link":
                candidates.append(f"{dir_part}{item.name}/")
            elif not dirs_only:
                candidates.append(f"{dir_part}{item.name}")
        return candidates
