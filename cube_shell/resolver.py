"""
Path resolution over the remote filesystem.

Turns user path arguments into canonical absolute paths and serves
directory listings through the listing cache. Also owns the pieces of
path handling that need remote knowledge: the virtual /bin directory,
wildcard expansion, logical-to-physical link mapping, the joined-path
probe for names containing spaces, and display titles for feed and
plugin-instance directories.
"""

import fnmatch
import logging
import posixpath
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable

from .parser import ParsedArgs
from .remote_client import ListingItem
from .session import Session

logger = logging.getLogger(__name__)

BIN_DIR = "/bin"
SORT_KEYS = ("name", "size", "date", "owner")
WILDCARD_RE = re.compile(r"[*?\[\]]")
FEED_RE = re.compile(r"^feed_(\d+)$")
PLUGIN_INSTANCE_RE = re.compile(r"^(pl-.+)_(\d+)$")


@dataclass
class ProbeResult:
    """Outcome of a trial listing: items on success, the error otherwise."""

    ok: bool
    items: list[ListingItem] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class ListOptions:
    sort: str = "name"
    reverse: bool = False
    directory: bool = False


@dataclass
class ListingRequest:
    """What ls should show.

    mode "directory" lists the contents of the single path in paths;
    mode "entries" lists the named paths themselves.
    """

    mode: str
    paths: list[str]


def has_wildcard(arg: str) -> bool:
    return bool(WILDCARD_RE.search(arg))


def resolve_path(raw: str, cwd: str, user: str | None = None) -> str:
    """
    Resolve a path argument against cwd, expanding ``~`` to the user's home.

    The result is absolute and normalised, without a trailing slash
    except for the root.
    """
    resolved = raw
    if raw.startswith("~"):
        home = f"/home/{user}" if user else "/"
        if raw in ("~", "~/"):
            resolved = home
        elif raw.startswith("~/"):
            resolved = posixpath.join(home, raw[2:])

    if not resolved.startswith("/"):
        resolved = posixpath.join(cwd, resolved)

    resolved = posixpath.normpath(resolved)
    # normpath keeps a leading double slash
    if resolved.startswith("//"):
        resolved = "/" + resolved.lstrip("/")
    return resolved


def sort_items(items: list[ListingItem], sort: str = "name", reverse: bool = False) -> list[ListingItem]:
    keys: dict[str, Callable[[ListingItem], object]] = {
        "name": lambda item: item.name.lower(),
        "size": lambda item: item.size,
        "date": lambda item: item.mtime,
        "owner": lambda item: (item.owner, item.name.lower()),
    }
    return sorted(items, key=keys.get(sort, keys["name"]), reverse=reverse)


def segment_titles(segments: list[str], lookup: Callable[[str], str | None]) -> list[str]:
    """
    Map path segments to display names.

    All lookups run concurrently; the result is assembled only once every
    lookup has settled. A segment whose lookup returns None or fails keeps
    its original text.
    """

    def _title(segment: str) -> str:
        try:
            return lookup(segment) or segment
        except Exception as e:
            logger.debug("Title lookup for %s failed: %s", segment, e)
            return segment

    if not segments:
        return []
    with ThreadPoolExecutor(max_workers=min(8, len(segments))) as pool:
        return list(pool.map(_title, segments))


class PathResolver:
    """
    Resolves user paths and serves listings with the cache as a
    read-through layer.
    """

    def __init__(self, session: Session):
        self.session = session
        self.cache = session.cache
        # physical link path -> physical target, learnt from listings
        self._links: dict[str, str] = {}
        self._scanned: set[str] = set()

    def resolve(self, raw: str) -> str:
        return resolve_path(raw, self.session.cwd, self.session.user)

    # ------------------------------------------------------------------
    # Logical / physical mapping
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget learnt links, e.g. after the connection changed."""
        self._links.clear()
        self._scanned.clear()

    def _record_links(self, physical_dir: str, items: list[ListingItem]) -> None:
        self._scanned.add(physical_dir)
        for item in items:
            if item.type == "link" and item.target:
                self._links[posixpath.join(physical_dir, item.name)] = item.target

    def to_physical(self, path: str) -> str:
        """
        Map a logical path to the physical path the service addresses,
        replacing every component that is a known link by its target.
        Paths are used verbatim in physical mode.
        """
        if self.session.physical_mode:
            return path
        current = "/"
        for component in [c for c in path.split("/") if c]:
            candidate = posixpath.join(current, component)
            current = self._links.get(candidate, candidate)
        return current

    def resolve_links(self, path: str) -> str:
        """
        Follow links component by component, listing each parent whose
        links are not known yet. Unlistable parents are passed through.
        """
        client = self.session.require_connection()
        current = "/"
        for component in [c for c in path.split("/") if c]:
            candidate = posixpath.join(current, component)
            if current not in self._scanned and current != BIN_DIR:
                try:
                    self._record_links(current, client.list_dir(current))
                except OSError as e:
                    logger.debug("Could not scan %s for links: %s", current, e)
            current = self._links.get(candidate, candidate)
        return current

    def physical(self, path: str) -> str:
        """Physical path for a remote call, learning links on the way if needed."""
        if self.session.physical_mode:
            return path
        return self.resolve_links(path)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _bin_items(self) -> list[ListingItem]:
        client = self.session.require_connection()
        items = []
        for plugin in client.plugins_list_all():
            name = f"{plugin['name']}-v{plugin['version']}"
            items.append(
                ListingItem(
                    name=name,
                    type="plugin",
                    owner="system",
                    mtime=plugin.get("creation_date", ""),
                    path=f"{BIN_DIR}/{name}",
                )
            )
        return items

    def listing(self, path: str, refresh: bool = False) -> list[ListingItem]:
        """
        Return the listing of an absolute directory path.

        The cache is consulted first; on a miss the listing is fetched,
        stored and returned. Remote errors propagate to the caller.
        """
        if not refresh:
            cached = self.cache.get(path)
            if cached is not None:
                return cached

        if path == BIN_DIR:
            items = self._bin_items()
        else:
            client = self.session.require_connection()
            physical = self.to_physical(path)
            try:
                items = client.list_dir(physical)
            except FileNotFoundError:
                # a link on the way that no listing has shown yet
                mapped = self.physical(path)
                if mapped == physical:
                    raise
                logger.debug("Listing %s through link target %s", path, mapped)
                physical = mapped
                items = client.list_dir(physical)
            self._record_links(physical, items)
            if path == "/" and not any(item.name == "bin" for item in items):
                items = items + [ListingItem(name="bin", type="dir", owner="system", path=BIN_DIR)]

        self.cache.put(path, items)
        return items

    def probe(self, path: str) -> ProbeResult:
        """Trial listing that reports failure as a value instead of raising."""
        try:
            return ProbeResult(ok=True, items=self.listing(path))
        except OSError as e:
            return ProbeResult(ok=False, error=e)

    def entry(self, path: str) -> ListingItem:
        """
        Look up the listing entry describing path itself.

        Raises:
            FileNotFoundError: If the parent does not contain it.
        """
        if path == "/":
            return ListingItem(name="/", type="dir", path="/")
        parent, name = posixpath.split(path)
        for item in self.listing(parent or "/"):
            if item.name == name:
                return item
        raise FileNotFoundError(f"No such file or directory: {path}")

    def list_target(self, path: str, options: ListOptions | None = None) -> list[ListingItem]:
        """
        Items to show for one path: the directory's contents, or the entry
        itself for a file (or with options.directory).
        """
        options = options or ListOptions()
        if options.directory:
            return [self.entry(path)]
        try:
            items = self.listing(path)
        except FileNotFoundError:
            entry = self.entry(path)
            if entry.is_dir:
                raise
            items = [entry]
        return sort_items(items, options.sort, options.reverse)

    def plan_listing(self, parsed: ParsedArgs) -> ListingRequest:
        """
        Decide what ls should list for its arguments.

        Several tokens without options or a "*" are first tried as one
        path joined by single spaces, since remote names may contain
        spaces (and brackets, as in "Scan [v2]"). A failed probe is discarded silently and each token is
        then treated as its own path.
        """
        raw = parsed.positional
        if not parsed.has_options and len(raw) > 1 and not any("*" in p for p in raw):
            joined = self.resolve(" ".join(raw))
            result = self.probe(joined)
            if result.ok:
                logger.debug("Joined-path probe matched %s", joined)
                return ListingRequest(mode="directory", paths=[joined])
            logger.debug("Joined-path probe of %s failed: %s", joined, result.error)

        paths = self.expand_all(raw)
        if not paths:
            return ListingRequest(mode="directory", paths=[self.session.cwd])
        if len(paths) == 1:
            return ListingRequest(mode="directory", paths=[self.resolve(paths[0])])
        return ListingRequest(mode="entries", paths=[self.resolve(p) for p in paths])

    # ------------------------------------------------------------------
    # Wildcards
    # ------------------------------------------------------------------

    def expand(self, pattern: str) -> list[str]:
        """
        Expand a glob pattern against the listing of its directory.

        Matches in the working directory are returned as bare names, others
        as absolute paths. No match gives an empty list.
        """
        if not has_wildcard(pattern):
            return [pattern]

        cwd = self.session.cwd
        search_dir = cwd
        match_pattern = pattern
        if "/" in pattern:
            dir_part, match_pattern = pattern.rsplit("/", 1)
            search_dir = self.resolve(dir_part or "/")
            match_pattern = match_pattern or "*"

        items = self.listing(search_dir)
        matches = []
        for item in items:
            if fnmatch.fnmatchcase(item.name, match_pattern):
                if search_dir == cwd:
                    matches.append(item.name)
                else:
                    matches.append(posixpath.join(search_dir, item.name))
        return matches

    def expand_all(self, args: list[str]) -> list[str]:
        """Expand every argument; a pattern with no match is kept as typed."""
        expanded = []
        for arg in args:
            matches = self.expand(arg)
            expanded.extend(matches or [arg])
        return expanded

    # ------------------------------------------------------------------
    # Titles
    # ------------------------------------------------------------------

    def _segment_title(self, segment: str) -> str | None:
        client = self.session.connection
        if client is None:
            return None
        feed_match = FEED_RE.match(segment)
        if feed_match:
            return client.feed_name(int(feed_match.group(1)))
        plugin_match = PLUGIN_INSTANCE_RE.match(segment)
        if plugin_match:
            instance = client.plugin_instance(int(plugin_match.group(2)))
            name = instance.get("plugin_name", "")
            version = instance.get("plugin_version", "")
            return f"{name} v{version}" if version else name or None
        return None

    def titled(self, path: str) -> str:
        """Replace feed_N and pl-name_N segments of path with their titles."""
        return "/".join(segment_titles(path.split("/"), self._segment_title))
