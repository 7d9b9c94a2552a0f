"""
Unit tests for cube_shell.resolver module.

Tests cover:
- resolve_path normalisation and ~ expansion
- Read-through listings and the virtual /bin directory
- Probe results
- The joined-path probe for names with spaces
- Wildcard expansion
- Logical to physical link mapping
- Path titles
"""

import threading
from unittest.mock import MagicMock, call

import pytest

from cube_shell.parser import parse_args
from cube_shell.remote_client import ListingItem
from cube_shell.resolver import (
    ListOptions,
    PathResolver,
    has_wildcard,
    resolve_path,
    segment_titles,
    sort_items,
)
from cube_shell.session import NotConnectedError, Session


class TestResolvePath:
    """Tests for resolve_path."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("uploads", "/home/chris/uploads"),
            ("uploads/", "/home/chris/uploads"),
            ("./uploads/../data", "/home/chris/data"),
            ("/abs/path", "/abs/path"),
            ("..", "/home"),
            ("../../..", "/"),
            ("~", "/home/chris"),
            ("~/uploads", "/home/chris/uploads"),
            ("/", "/"),
            ("//double", "/double"),
        ],
    )
    def test_resolution(self, raw, expected):
        assert resolve_path(raw, "/home/chris", "chris") == expected

    def test_home_without_user_is_root(self):
        assert resolve_path("~", "/somewhere", None) == "/"


class TestHasWildcard:
    @pytest.mark.parametrize("arg,expected", [("*.txt", True), ("a?c", True), ("[ab]", True), ("plain", False)])
    def test_has_wildcard(self, arg, expected):
        assert has_wildcard(arg) is expected


class TestListing:
    """Tests for read-through listings."""

    def test_second_listing_is_served_from_cache(self, resolver: PathResolver, mock_client: MagicMock):
        first = resolver.listing("/home/chris/uploads")
        second = resolver.listing("/home/chris/uploads")

        assert first == second
        mock_client.list_dir.assert_called_once_with("/home/chris/uploads")

    def test_refresh_bypasses_cache(self, resolver: PathResolver, mock_client: MagicMock):
        resolver.listing("/home/chris/uploads")
        resolver.listing("/home/chris/uploads", refresh=True)

        assert mock_client.list_dir.call_count == 2

    def test_errors_propagate_and_are_not_cached(self, resolver: PathResolver, session: Session):
        with pytest.raises(FileNotFoundError):
            resolver.listing("/home/chris/missing")

        assert session.cache.stats().entries == 0

    def test_root_gets_virtual_bin(self, resolver: PathResolver):
        names = [item.name for item in resolver.listing("/")]
        assert "bin" in names

    def test_bin_lists_plugins(self, resolver: PathResolver, mock_client: MagicMock):
        items = resolver.listing("/bin")

        assert [item.name for item in items] == ["pl-dircopy-v2.1.1", "pl-simpledsapp-v2.1.3"]
        assert all(item.type == "plugin" for item in items)
        mock_client.list_dir.assert_not_called()

    def test_not_connected(self, listing_cache):
        resolver = PathResolver(Session(listing_cache))
        with pytest.raises(NotConnectedError):
            resolver.listing("/")


class TestProbe:
    """Tests for probe."""

    def test_probe_success(self, resolver: PathResolver):
        result = resolver.probe("/home/chris/uploads")

        assert result.ok is True
        assert len(result.items) == 3
        assert result.error is None

    def test_probe_failure_returns_error(self, resolver: PathResolver):
        result = resolver.probe("/home/chris/nope")

        assert result.ok is False
        assert result.items == []
        assert isinstance(result.error, FileNotFoundError)


class TestPlanListing:
    """Tests for plan_listing (what ls should show)."""

    def test_joined_path_probe_wins(self, resolver: PathResolver, mock_client: MagicMock):
        """Test that 'My Folder' is listed once and its halves never are."""
        request = resolver.plan_listing(parse_args(["My", "Folder"]))

        assert request.mode == "directory"
        assert request.paths == ["/home/chris/My Folder"]
        assert mock_client.list_dir.call_args_list == [call("/home/chris/My Folder")]

    def test_failed_probe_falls_back_to_entries(self, resolver: PathResolver):
        request = resolver.plan_listing(parse_args(["notes.txt", "data.csv"]))

        assert request.mode == "entries"
        assert request.paths == ["/home/chris/notes.txt", "/home/chris/data.csv"]

    def test_options_skip_probe(self, resolver: PathResolver, mock_client: MagicMock):
        request = resolver.plan_listing(parse_args(["-l", "My", "Folder"]))

        assert request.mode == "entries"
        assert request.paths == ["/home/chris/My", "/home/chris/Folder"]
        mock_client.list_dir.assert_not_called()

    def test_wildcards_skip_probe(self, resolver: PathResolver, mock_client: MagicMock):
        request = resolver.plan_listing(parse_args(["uploads/*.txt", "notes.txt"]))

        assert request.mode == "entries"
        assert request.paths == [
            "/home/chris/uploads/a.txt",
            "/home/chris/uploads/b.txt",
            "/home/chris/notes.txt",
        ]
        assert call("/home/chris/uploads/*.txt notes.txt") not in mock_client.list_dir.call_args_list

    def test_no_arguments_lists_cwd(self, resolver: PathResolver):
        request = resolver.plan_listing(parse_args([]))

        assert request.mode == "directory"
        assert request.paths == ["/home/chris"]

    def test_single_argument(self, resolver: PathResolver):
        request = resolver.plan_listing(parse_args(["uploads"]))

        assert request.mode == "directory"
        assert request.paths == ["/home/chris/uploads"]

    def test_brackets_do_not_skip_probe(self, resolver: PathResolver, remote_tree: dict):
        """Test that a name like "Scan [v2]" is still tried as one path."""
        remote_tree["/home/chris/Scan [v2]"] = [
            ListingItem(name="img.dcm", type="file", size=10, path="/home/chris/Scan [v2]/img.dcm")
        ]

        request = resolver.plan_listing(parse_args(["Scan", "[v2]"]))

        assert request.mode == "directory"
        assert request.paths == ["/home/chris/Scan [v2]"]


class TestListTarget:
    """Tests for list_target and entry."""

    def test_directory_contents_sorted(self, resolver: PathResolver):
        items = resolver.list_target("/home/chris/uploads", ListOptions(reverse=True))
        assert [item.name for item in items] == ["c.dcm", "b.txt", "a.txt"]

    def test_file_lists_itself(self, resolver: PathResolver):
        items = resolver.list_target("/home/chris/notes.txt")

        assert len(items) == 1
        assert items[0].name == "notes.txt"

    def test_directory_option_lists_entry(self, resolver: PathResolver):
        items = resolver.list_target("/home/chris/uploads", ListOptions(directory=True))

        assert len(items) == 1
        assert items[0].name == "uploads"
        assert items[0].is_dir

    def test_missing_target_raises(self, resolver: PathResolver):
        with pytest.raises(FileNotFoundError):
            resolver.list_target("/home/chris/ghost")

    def test_entry_of_root(self, resolver: PathResolver):
        assert resolver.entry("/").is_dir


class TestSortItems:
    def test_sort_by_size(self, remote_tree):
        items = sort_items(remote_tree["/home/chris"], "size", reverse=True)
        assert items[0].name == "data.csv"

    def test_unknown_key_sorts_by_name(self, remote_tree):
        items = sort_items(remote_tree["/home/chris/uploads"], "bogus")
        assert [item.name for item in items] == ["a.txt", "b.txt", "c.dcm"]


class TestWildcards:
    """Tests for expand and expand_all."""

    def test_expand_in_cwd_returns_names(self, resolver: PathResolver):
        assert resolver.expand("*.txt") == ["notes.txt"]

    def test_expand_in_other_directory_returns_paths(self, resolver: PathResolver):
        assert resolver.expand("uploads/?.txt") == [
            "/home/chris/uploads/a.txt",
            "/home/chris/uploads/b.txt",
        ]

    def test_expand_without_wildcard(self, resolver: PathResolver, mock_client: MagicMock):
        assert resolver.expand("plain") == ["plain"]
        mock_client.list_dir.assert_not_called()

    def test_no_match_keeps_pattern(self, resolver: PathResolver):
        assert resolver.expand("*.xyz") == []
        assert resolver.expand_all(["*.xyz", "notes.txt"]) == ["*.xyz", "notes.txt"]

    def test_expansion_uses_cache(self, resolver: PathResolver, mock_client: MagicMock):
        resolver.expand("uploads/*")
        resolver.expand("uploads/*.dcm")

        mock_client.list_dir.assert_called_once_with("/home/chris/uploads")

    def test_expansion_failure_propagates(self, resolver: PathResolver):
        with pytest.raises(FileNotFoundError):
            resolver.expand("missing/*.txt")


class TestLinkMapping:
    """Tests for logical to physical mapping."""

    def test_unknown_links_pass_through(self, resolver: PathResolver):
        assert resolver.to_physical("/home/chris/shared/pub.txt") == "/home/chris/shared/pub.txt"

    def test_links_learnt_from_listings(self, resolver: PathResolver):
        resolver.listing("/home/chris")

        assert resolver.to_physical("/home/chris/shared") == "/SHARED"
        assert resolver.to_physical("/home/chris/shared/pub.txt") == "/SHARED/pub.txt"

    def test_listing_through_link(self, resolver: PathResolver, mock_client: MagicMock):
        resolver.listing("/home/chris")
        items = resolver.listing("/home/chris/shared")

        assert [item.name for item in items] == ["pub.txt"]
        mock_client.list_dir.assert_called_with("/SHARED")

    def test_first_listing_through_unseen_link(self, resolver: PathResolver, mock_client: MagicMock):
        first = resolver.listing("/home/chris/shared")
        resolver.cache.invalidate()
        second = resolver.listing("/home/chris/shared")

        assert [item.name for item in first] == ["pub.txt"]
        assert first == second
        assert mock_client.list_dir.call_args_list[-1] == call("/SHARED")

    def test_missing_path_is_not_retried(self, resolver: PathResolver, mock_client: MagicMock):
        with pytest.raises(FileNotFoundError):
            resolver.listing("/home/chris/ghost")

        assert mock_client.list_dir.call_args_list.count(call("/home/chris/ghost")) == 1

    def test_physical_learns_links(self, resolver: PathResolver):
        assert resolver.physical("/home/chris/shared/pub.txt") == "/SHARED/pub.txt"

    def test_physical_mode_physical_is_verbatim(self, resolver: PathResolver, session: Session, mock_client: MagicMock):
        session.set_physical_mode(True)

        assert resolver.physical("/home/chris/shared") == "/home/chris/shared"
        mock_client.list_dir.assert_not_called()

    def test_resolve_links_scans_parents_once(self, resolver: PathResolver, mock_client: MagicMock):
        assert resolver.resolve_links("/home/chris/shared") == "/SHARED"
        assert resolver.resolve_links("/home/chris/shared") == "/SHARED"

        assert mock_client.list_dir.call_args_list == [call("/"), call("/home"), call("/home/chris")]

    def test_physical_mode_uses_paths_verbatim(self, resolver: PathResolver, session: Session):
        resolver.listing("/home/chris")
        session.set_physical_mode(True)

        assert resolver.to_physical("/home/chris/shared") == "/home/chris/shared"

    def test_reset_forgets_links(self, resolver: PathResolver):
        resolver.listing("/home/chris")
        resolver.reset()

        assert resolver.to_physical("/home/chris/shared") == "/home/chris/shared"


class TestTitles:
    """Tests for segment_titles and titled."""

    def test_failed_lookup_keeps_segment(self):
        def lookup(segment):
            if segment == "bad":
                raise OSError("boom")
            return segment.upper() if segment == "good" else None

        assert segment_titles(["good", "bad", "other"], lookup) == ["GOOD", "bad", "other"]

    def test_lookups_run_concurrently(self):
        """Test that every lookup is in flight before any returns."""
        barrier = threading.Barrier(3, timeout=5)

        def lookup(segment):
            barrier.wait()
            return segment * 2

        assert segment_titles(["a", "b", "c"], lookup) == ["aa", "bb", "cc"]

    def test_empty(self):
        assert segment_titles([], lambda s: s) == []

    def test_titled_path(self, resolver: PathResolver, mock_client: MagicMock):
        mock_client.feed_name.return_value = "Brain scans"
        mock_client.plugin_instance.return_value = {
            "plugin_name": "pl-dircopy",
            "plugin_version": "2.1.1",
        }

        titled = resolver.titled("/home/chris/feeds/feed_12/pl-dircopy_34/data")

        assert titled == "/home/chris/feeds/Brain scans/pl-dircopy v2.1.1/data"
        mock_client.feed_name.assert_called_once_with(12)
        mock_client.plugin_instance.assert_called_once_with(34)
