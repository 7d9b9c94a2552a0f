"""
Builtin shell commands.

Each builtin takes its argument tokens and returns a CommandStatus. Remote
errors are caught here and reported as one line on stderr prefixed with
the command name; they never reach the dispatcher loop. Commands that
change the remote tree invalidate the affected listings in the cache.
"""

import logging
import posixpath
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .cache import parent_of
from .config import AppConfig
from .cube_client import CubeClient
from .parser import parse_args
from .remote_client import RemoteClient
from .resolver import (
    BIN_DIR,
    FEED_RE,
    PLUGIN_INSTANCE_RE,
    SORT_KEYS,
    ListOptions,
    PathResolver,
    sort_items,
)
from .session import NotConnectedError, Session, clear_context, get_context_path, save_context
from .status import CommandStatus
from .views import (
    TreeNode,
    format_context,
    format_listing,
    format_size,
    format_stats,
    format_tree,
    tree_totals,
)

logger = logging.getLogger(__name__)

ERROR_MESSAGES = (
    (IsADirectoryError, "Is a directory"),
    (NotADirectoryError, "Not a directory"),
    (FileNotFoundError, "No such file or directory"),
    (PermissionError, "Permission denied"),
)


@dataclass(frozen=True)
class HelpEntry:
    usage: str
    summary: str


HELP = {
    "cd": HelpEntry("cd [path]", "Change the working directory (default: home)"),
    "pwd": HelpEntry("pwd [--title]", "Print the working directory, optionally with feed and plugin titles"),
    "ls": HelpEntry(
        "ls [-l] [-h] [-d] [-r|--reverse] [-f|--refresh] [--sort name|size|date|owner] [path...]",
        "List directory contents",
    ),
    "cat": HelpEntry("cat <file...>", "Print file contents"),
    "mkdir": HelpEntry("mkdir <dir...>", "Create directories"),
    "touch": HelpEntry("touch [--withContents <text>] <file...>", "Create files"),
    "mv": HelpEntry("mv <source...> <dest>", "Move or rename files and directories"),
    "rm": HelpEntry("rm [-r] <path...>", "Remove files, or directories with -r"),
    "tree": HelpEntry("tree [path]", "Show the directory tree"),
    "upload": HelpEntry("upload <local> <remote>", "Upload a local file or directory"),
    "download": HelpEntry("download [-f] <remote> [local]", "Download a remote file or directory"),
    "connect": HelpEntry("connect --user <user> --password <password> <url>", "Log in to a server"),
    "logout": HelpEntry("logout", "Log out and forget the saved session"),
    "context": HelpEntry("context", "Show the user, server, folder, feed and plugin instance of this session"),
    "physicalmode": HelpEntry("physicalmode [on|off]", "Show or set physical path mode"),
    "cache": HelpEntry("cache [stats|clear|reset]", "Show listing cache statistics, clear it or reset counters"),
    "help": HelpEntry("help [command]", "Show help"),
    "exit": HelpEntry("exit", "Leave the shell"),
    "quit": HelpEntry("quit", "Leave the shell"),
}


def _message(error: Exception) -> str:
    for error_type, message in ERROR_MESSAGES:
        if isinstance(error, error_type):
            return message
    return str(error)


def report(verb: str, arg: str | None, error: Exception | str) -> CommandStatus:
    """Print a one-line failure for verb (and arg) and return the error status."""
    message = error if isinstance(error, str) else _message(error)
    if isinstance(error, NotConnectedError) or arg is None:
        print(f"{verb}: {message}", file=sys.stderr)
    else:
        print(f"{verb}: {arg}: {message}", file=sys.stderr)
    return CommandStatus.HANDLED_WITH_ERROR


def usage(verb: str) -> CommandStatus:
    print(f"Usage: {HELP[verb].usage}", file=sys.stderr)
    return CommandStatus.HANDLED_WITH_ERROR


class BuiltinTable:
    """
    The fixed table of builtin commands.

    Args:
        session: Shell session state.
        resolver: Path resolver sharing the session's listing cache.
        config: Application configuration (connection settings, context file).
        connector: Callable(url, username, password, conn_config) returning a
            logged-in RemoteClient.
    """

    def __init__(
        self,
        session: Session,
        resolver: PathResolver,
        config: AppConfig,
        connector: Callable[..., RemoteClient] = CubeClient.login,
    ):
        self.session = session
        self.resolver = resolver
        self.cache = session.cache
        self.config = config
        self.connector = connector
        self.exit_requested = False
        self.commands: dict[str, Callable[[list[str]], CommandStatus]] = {
            "cd": self.do_cd,
            "pwd": self.do_pwd,
            "ls": self.do_ls,
            "cat": self.do_cat,
            "mkdir": self.do_mkdir,
            "touch": self.do_touch,
            "mv": self.do_mv,
            "rm": self.do_rm,
            "tree": self.do_tree,
            "upload": self.do_upload,
            "download": self.do_download,
            "connect": self.do_connect,
            "logout": self.do_logout,
            "context": self.do_context,
            "physicalmode": self.do_physicalmode,
            "cache": self.do_cache,
            "help": self.do_help,
            "exit": self.do_exit,
            "quit": self.do_exit,
        }

    def handle(self, command: str, args: list[str]) -> CommandStatus:
        handler = self.commands.get(command)
        if handler is None:
            return CommandStatus.NOT_HANDLED
        if "--help" in args:
            return self.do_help([command])
        return handler(args)

    def _remote(self, path: str) -> str:
        return self.resolver.physical(path)

    def _client(self) -> RemoteClient:
        return self.session.require_connection()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def do_cd(self, args: list[str]) -> CommandStatus:
        # names may contain spaces
        raw = " ".join(args) if args else "~"
        target = self.resolver.resolve(raw)

        if target == BIN_DIR:
            self.session.set_cwd(BIN_DIR)
            return CommandStatus.HANDLED

        try:
            client = self._client()
            physical = self.resolver.resolve_links(target)
            client.list_dir(physical)
        except NotConnectedError as e:
            return report("cd", raw, e)
        except OSError as e:
            logger.debug("cd %s failed: %s", target, e)
            return report("cd", raw, FileNotFoundError())

        self.session.set_cwd(physical if self.session.physical_mode else target)
        return CommandStatus.HANDLED

    def do_pwd(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args, boolean=("title",))
        if parsed.flag("title"):
            print(self.resolver.titled(self.session.cwd))
        else:
            print(self.session.cwd)
        return CommandStatus.HANDLED

    def do_ls(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args, boolean=("reverse", "refresh"))
        sort = parsed.value("sort") or "name"
        if sort not in SORT_KEYS:
            return report("ls", sort, f"invalid sort key (choose from {', '.join(SORT_KEYS)})")
        options = ListOptions(
            sort=sort,
            reverse=parsed.flag("r", "reverse"),
            directory=parsed.flag("d"),
        )
        long, human = parsed.flag("l"), parsed.flag("h")

        if parsed.flag("f", "refresh"):
            targets = [self.resolver.resolve(p) for p in parsed.positional] or [self.session.cwd]
            for target in targets:
                self.cache.invalidate(target)
            self.cache.invalidate()

        try:
            request = self.resolver.plan_listing(parsed)
        except OSError as e:
            return report("ls", " ".join(parsed.positional), e)

        if request.mode == "directory":
            path = request.paths[0]
            try:
                items = self.resolver.list_target(path, options)
            except OSError as e:
                return report("ls", path, e)
            for line in format_listing(items, long=long, human=human):
                print(line)
            return CommandStatus.HANDLED

        status = CommandStatus.HANDLED
        entries = []
        for path in request.paths:
            try:
                entries.append(self.resolver.entry(path))
            except OSError as e:
                status = report("ls", path, e)
        entries = sort_items(entries, options.sort, options.reverse)
        for line in format_listing(entries, long=long, human=human):
            print(line)
        return status

    def do_tree(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args)
        root = self.resolver.resolve(parsed.positional[0]) if parsed.positional else self.session.cwd
        try:
            nodes = self._tree_nodes(root)
        except OSError as e:
            return report("tree", root, e)
        for line in format_tree(root, nodes):
            print(line)
        total_size, count = tree_totals(nodes)
        print(f"Total size: {format_size(total_size)}")
        print(f"{count} items")
        return CommandStatus.HANDLED

    def _tree_nodes(self, path: str) -> list[TreeNode]:
        nodes = []
        for item in sort_items(self.resolver.listing(path)):
            node = TreeNode(item)
            child = posixpath.join(path, item.name)
            if item.is_dir and child != BIN_DIR:
                node.children = self._tree_nodes(child)
            nodes.append(node)
        return nodes

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    def do_cat(self, args: list[str]) -> CommandStatus:
        if not args:
            return usage("cat")
        try:
            client = self._client()
            paths = self.resolver.expand_all(args)
        except OSError as e:
            return report("cat", None, e)

        status = CommandStatus.HANDLED
        for arg in paths:
            path = self.resolver.resolve(arg)
            try:
                data = client.read_file(self._remote(path))
            except OSError as e:
                status = report("cat", arg, e)
                continue
            text = data.decode("utf-8", errors="replace")
            sys.stdout.write(text if text.endswith("\n") or not text else text + "\n")
        return status

    def do_mkdir(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args)
        if not parsed.positional:
            return usage("mkdir")
        try:
            client = self._client()
        except NotConnectedError as e:
            return report("mkdir", None, e)

        status = CommandStatus.HANDLED
        for arg in parsed.positional:
            path = self.resolver.resolve(arg)
            try:
                client.create_dir(self._remote(path))
            except OSError as e:
                status = report("mkdir", arg, e)
            self.cache.invalidate_parent(path)
        return status

    def do_touch(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args)
        if not parsed.positional:
            return usage("touch")
        contents = parsed.value("withContents") or ""
        try:
            client = self._client()
        except NotConnectedError as e:
            return report("touch", None, e)

        status = CommandStatus.HANDLED
        for arg in parsed.positional:
            path = self.resolver.resolve(arg)
            try:
                client.create_file(self._remote(path), contents.encode("utf-8"))
            except OSError as e:
                status = report("touch", arg, e)
            self.cache.invalidate_parent(path)
        return status

    def do_mv(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args)
        if len(parsed.positional) < 2:
            return usage("mv")
        try:
            client = self._client()
            sources = self.resolver.expand_all(parsed.positional[:-1])
        except OSError as e:
            return report("mv", None, e)

        dest = self.resolver.resolve(parsed.positional[-1])
        dest_is_dir = self.resolver.probe(dest).ok
        if len(sources) > 1 and not dest_is_dir:
            return report("mv", parsed.positional[-1], NotADirectoryError())

        status = CommandStatus.HANDLED
        for arg in sources:
            source = self.resolver.resolve(arg)
            target = posixpath.join(dest, posixpath.basename(source)) if dest_is_dir else dest
            try:
                client.rename(self._remote(source), self._remote(target))
            except OSError as e:
                status = report("mv", arg, e)
            self.cache.invalidate_parent(source)
            self.cache.invalidate(source)
        self.cache.invalidate(dest)
        self.cache.invalidate(parent_of(dest))
        return status

    def do_rm(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args)
        if not parsed.positional:
            return usage("rm")
        recursive = parsed.flag("r", "R", "recursive")
        try:
            client = self._client()
            paths = self.resolver.expand_all(parsed.positional)
        except OSError as e:
            return report("rm", None, e)

        status = CommandStatus.HANDLED
        for arg in paths:
            path = self.resolver.resolve(arg)
            try:
                client.delete(self._remote(path), recursive=recursive)
            except IsADirectoryError:
                status = report("rm", arg, "Is a directory (use -r)")
                continue
            except OSError as e:
                status = report("rm", arg, e)
            self.cache.invalidate_parent(path)
            self.cache.invalidate(path)
        return status

    def do_upload(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args)
        if len(parsed.positional) != 2:
            return usage("upload")
        local, remote = parsed.positional
        target = self.resolver.resolve(remote)
        try:
            summary = self._client().upload(Path(local).expanduser(), self._remote(target))
        except OSError as e:
            return report("upload", local, e)
        finally:
            self.cache.invalidate(target)
            self.cache.invalidate_parent(target)

        print(
            f"[OK] Uploaded {summary.transferred_count} file(s), "
            f"{format_size(summary.total_bytes)} in {summary.duration:.1f}s"
        )
        if summary.failed_count:
            return report("upload", local, f"{summary.failed_count} file(s) failed")
        return CommandStatus.HANDLED

    def do_download(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args, boolean=("force",))
        if not 1 <= len(parsed.positional) <= 2:
            return usage("download")
        remote = parsed.positional[0]
        local = Path(parsed.positional[1] if len(parsed.positional) == 2 else ".").expanduser()
        source = self.resolver.resolve(remote)
        try:
            summary = self._client().download(
                self._remote(source), local, force=parsed.flag("f", "force")
            )
        except OSError as e:
            return report("download", remote, e)

        print(
            f"[OK] Downloaded {summary.transferred_count} file(s), "
            f"{format_size(summary.total_bytes)} in {summary.duration:.1f}s"
        )
        if summary.failed_count:
            return report("download", remote, f"{summary.failed_count} file(s) skipped or failed")
        return CommandStatus.HANDLED

    # ------------------------------------------------------------------
    # Connection and session
    # ------------------------------------------------------------------

    def do_connect(self, args: list[str]) -> CommandStatus:
        parsed = parse_args(args)
        url = parsed.positional[0] if parsed.positional else self.config.cube.url
        username = parsed.value("user") or self.config.cube.username
        password = parsed.value("password") or self.config.cube.password
        if not url or not username or not password:
            return usage("connect")

        try:
            client = self.connector(url, username, password, self.config.connection)
        except OSError as e:
            print(f"[ERROR] Login to {url} as {username} failed: {e}", file=sys.stderr)
            return CommandStatus.HANDLED_WITH_ERROR

        self.session.connect(client)
        self.resolver.reset()
        self.session.set_cwd(self.session.home)
        save_context(
            {"url": client.url, "username": client.username, "token": client.token, "cwd": self.session.cwd},
            get_context_path(self.config.session.context_file),
        )
        print(f"[OK] Connected to {client.url} as {client.username}")
        return CommandStatus.HANDLED

    def do_logout(self, args: list[str]) -> CommandStatus:
        if not self.session.connected:
            return report("logout", None, NotConnectedError())
        self.session.disconnect()
        self.resolver.reset()
        self.session.set_cwd("/")
        clear_context(get_context_path(self.config.session.context_file))
        print("[OK] Logged out")
        return CommandStatus.HANDLED

    def do_context(self, args: list[str]) -> CommandStatus:
        client = self.session.connection
        feed = plugin = None
        for segment in self.session.cwd.split("/"):
            if feed is None and FEED_RE.match(segment):
                feed = segment
            if PLUGIN_INSTANCE_RE.match(segment):
                plugin = segment
        rows = [
            ("User", self.session.user),
            ("URL", client.url if client is not None else None),
            ("Folder", self.session.cwd),
            ("Feed", feed),
            ("Plugin instance", plugin),
            ("Physical mode", "Enabled" if self.session.physical_mode else "Disabled"),
        ]
        for line in format_context(rows):
            print(line)
        return CommandStatus.HANDLED

    def do_physicalmode(self, args: list[str]) -> CommandStatus:
        if not args:
            print(f"physical mode: {'on' if self.session.physical_mode else 'off'}")
            return CommandStatus.HANDLED
        if args[0] not in ("on", "off"):
            return usage("physicalmode")
        self.session.set_physical_mode(args[0] == "on")
        print(f"physical mode: {args[0]}")
        return CommandStatus.HANDLED

    def do_cache(self, args: list[str]) -> CommandStatus:
        action = args[0] if args else "stats"
        if action == "stats":
            for line in format_stats(self.cache.stats()):
                print(line)
        elif action == "clear":
            self.cache.invalidate()
            print("[OK] Listing cache cleared")
        elif action == "reset":
            self.cache.reset_stats()
            print("[OK] Cache statistics reset")
        else:
            return usage("cache")
        return CommandStatus.HANDLED

    def do_help(self, args: list[str]) -> CommandStatus:
        if args:
            entry = HELP.get(args[0])
            if entry is None:
                return report("help", args[0], "no such command")
            print(f"Usage: {entry.usage}")
            print(f"  {entry.summary}")
            return CommandStatus.HANDLED

        width = max(len(name) for name in HELP)
        for name, entry in HELP.items():
            print(f"  {name:<{width}}  {entry.summary}")
        print()
        print("Plugin executables: <plugin>-v<version> [--parameters] [--readme] [-h]")
        print("Anything else is passed to the external resource tool.")
        return CommandStatus.HANDLED

    def do_exit(self, args: list[str]) -> CommandStatus:
        self.exit_requested = True
        return CommandStatus.HANDLED
