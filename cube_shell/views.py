"""Text rendering for listings, trees, plugin parameters and cache stats."""

from dataclasses import dataclass, field

from .cache import CacheStats
from .remote_client import ListingItem

TYPE_MARKS = {"dir": "d", "file": "-", "link": "l", "plugin": "x"}


def format_size(nbytes):
    """Format a byte count as a human-readable string.

    Values under 1024 are shown as plain integers, larger ones with a
    K, M, G or T suffix (e.g. 999.5K displays as 1.0M, not 1000K).
    """
    if nbytes < 1024:
        return str(nbytes)
    for unit in ("K", "M", "G", "T"):
        nbytes = nbytes / 1024.0
        if nbytes < 999.95 or unit == "T":
            if nbytes == int(nbytes):
                return "{:.0f}{}".format(int(nbytes), unit)
            return "{:.1f}{}".format(nbytes, unit)
    return str(nbytes)


def display_name(item: ListingItem) -> str:
    if item.is_dir:
        return item.name + "/"
    if item.type == "link":
        return f"{item.name} -> {item.target}"
    return item.name


def format_listing(items: list[ListingItem], long: bool = False, human: bool = False) -> list[str]:
    """Render listing items, one per line in long format or names only."""
    if not long:
        return [display_name(item) for item in items]

    sizes = [format_size(item.size) if human else str(item.size) for item in items]
    size_width = max((len(s) for s in sizes), default=1)
    owner_width = max((len(item.owner) for item in items), default=1)
    lines = []
    for item, size in zip(items, sizes):
        mark = TYPE_MARKS.get(item.type, "?")
        date = item.mtime[:16].replace("T", " ") if item.mtime else "-"
        lines.append(
            f"{mark} {item.owner:<{owner_width}} {size:>{size_width}} {date:<16} {display_name(item)}"
        )
    return lines


@dataclass
class TreeNode:
    item: ListingItem
    children: list["TreeNode"] = field(default_factory=list)


def format_tree(root: str, nodes: list[TreeNode]) -> list[str]:
    """Render a directory tree with box-drawing connectors."""
    lines = [root]

    def _walk(children: list[TreeNode], indent: str) -> None:
        for index, node in enumerate(children):
            last = index == len(children) - 1
            lines.append(f"{indent}{'└── ' if last else '├── '}{display_name(node.item)}")
            if node.children:
                _walk(node.children, indent + ("    " if last else "│   "))

    _walk(nodes, "")
    return lines


def tree_totals(nodes: list[TreeNode]) -> tuple[int, int]:
    """Total size and item count of a tree."""
    size, count = 0, 0
    for node in nodes:
        child_size, child_count = tree_totals(node.children)
        size += node.item.size + child_size
        count += 1 + child_count
    return size, count


def format_parameters(parameters: list[dict]) -> list[str]:
    """Render plugin parameter definitions as an aligned table."""
    if not parameters:
        return ["(no parameters)"]
    headers = ("FLAG", "TYPE", "OPTIONAL", "DEFAULT", "HELP")
    rows = [
        (
            str(p.get("flag") or f"--{p.get('name', '')}"),
            str(p.get("type", "")),
            "yes" if p.get("optional") else "no",
            "" if p.get("default") is None else str(p.get("default")),
            str(p.get("help", "")),
        )
        for p in parameters
    ]
    widths = [max(len(row[i]) for row in rows + [headers]) for i in range(len(headers) - 1)]
    lines = []
    for row in [headers] + rows:
        cells = [cell.ljust(width) for cell, width in zip(row, widths)]
        lines.append("  ".join(cells + [row[-1]]).rstrip())
    return lines


def format_context(rows: list[tuple[str, str | None]]) -> list[str]:
    """Render label/value rows with the values aligned; a missing value shows as 'Not set'."""
    width = max(len(label) for label, _ in rows) + 1
    return [f"{label + ':':<{width}}  {value or 'Not set'}" for label, value in rows]


def format_stats(stats: CacheStats) -> list[str]:
    total = stats.hits + stats.misses
    rate = (stats.hits / total * 100) if total else 0.0
    return [
        f"Entries:   {stats.entries}",
        f"Hits:      {stats.hits}",
        f"Misses:    {stats.misses}",
        f"Hit rate:  {rate:.1f}%",
        f"Directory: {stats.current_cwd or '-'}",
    ]
