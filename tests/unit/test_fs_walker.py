"""
Unit tests for the filesystem walker module.

Tests breadth-first expansion, pruning, depth computation and the handling
of symlink loops, vanished entries and unreadable directories.
"""

import errno
import os
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from filefind.errors import FatalTraversalError
from filefind.models.rules import EntryType, RuleSet
from filefind.tools.fs_walker import FSWalker


class TestFSWalker:
    """Test cases for the FSWalker class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.test_root = Path(self.temp_dir)
        self._create_test_structure()

    def teardown_method(self):
        """Clean up test fixtures."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _create_test_structure(self):
        """Create a small tree three levels deep."""
        (self.test_root / "sub" / "deep").mkdir(parents=True)
        (self.test_root / "other").mkdir()

        for relative in ["top.txt", "sub/mid.txt", "sub/deep/low.txt", "other/side.txt"]:
            (self.test_root / relative).write_text(relative)

    def _walk(self, **rules):
        walker = FSWalker(RuleSet(path=[self.temp_dir], **rules))
        return walker, list(walker)

    def _relative(self, candidates):
        return {os.path.relpath(c.path, self.temp_dir) for c in candidates}

    def test_walks_every_entry(self):
        walker, candidates = self._walk()

        assert self._relative(candidates) == {
            "top.txt", "sub", "other",
            os.path.join("sub", "mid.txt"), os.path.join("sub", "deep"),
            os.path.join("other", "side.txt"),
            os.path.join("sub", "deep", "low.txt"),
        }

        stats = walker.get_stats()
        assert stats['entries_scanned'] == 7
        assert stats['directories_traversed'] == 4
        assert stats['errors'] == 0

    def test_breadth_first_order(self):
        _, candidates = self._walk()
        depths = [c.depth for c in candidates]

        assert depths == sorted(depths)
        assert depths[0] == 1
        assert depths[-1] == 3

    def test_candidate_carries_metadata(self):
        _, candidates = self._walk()
        by_name = {c.name: c for c in candidates}

        assert by_name["top.txt"].metadata.entry_type is EntryType.FILE
        assert by_name["top.txt"].metadata.size == len("top.txt")
        assert by_name["sub"].metadata.is_directory()
        assert by_name["low.txt"].depth == 3

    def test_prune_skips_entry_and_subtree(self):
        walker, candidates = self._walk(prune='^sub$')
        names = {c.name for c in candidates}

        assert "sub" not in names
        assert "mid.txt" not in names
        assert "low.txt" not in names
        assert {"top.txt", "other", "side.txt"} <= names
        assert walker.get_stats()['entries_pruned'] == 1

    def test_directories_beyond_maxdepth_still_expanded(self):
        """Reporting is depth-filtered by the predicates, expansion is not."""
        _, candidates = self._walk(maxdepth=1)
        assert "low.txt" in {c.name for c in candidates}

    def test_each_directory_expanded_once(self):
        walker = FSWalker(RuleSet(path=[self.temp_dir, self.temp_dir]))
        candidates = list(walker)

        paths = [c.path for c in candidates]
        assert len(paths) == len(set(paths))
        assert walker.get_stats()['directories_traversed'] == 4

    def test_nested_root_is_not_expanded_twice(self):
        nested = os.path.join(self.temp_dir, "sub")
        walker = FSWalker(RuleSet(path=[self.temp_dir, nested]))
        candidates = list(walker)

        paths = [c.path for c in candidates]
        assert paths.count(os.path.join(nested, "mid.txt")) == 1

    def test_symlink_cycle_terminates(self):
        os.symlink("b", str(self.test_root / "a"))
        os.symlink("a", str(self.test_root / "b"))

        _, candidates = self._walk()
        by_name = {c.name: c for c in candidates}

        assert by_name["a"].metadata.entry_type is EntryType.LINK
        assert by_name["b"].metadata.entry_type is EntryType.LINK

    def test_follow_resolves_directory_links(self):
        os.symlink(str(self.test_root / "other"), str(self.test_root / "alias"))

        walker, followed = self._walk()
        by_name = {c.name: c for c in followed}
        assert by_name["alias"].metadata.is_directory()

        # alias and other are the same directory, listed once under either name
        side_paths = {os.path.join("alias", "side.txt"), os.path.join("other", "side.txt")}
        assert len(side_paths & self._relative(followed)) == 1
        assert walker.get_stats()['directories_traversed'] == 4

        _, unfollowed = self._walk(follow=False)
        by_name = {c.name: c for c in unfollowed}
        assert by_name["alias"].metadata.entry_type is EntryType.LINK
        assert os.path.join("alias", "side.txt") not in self._relative(unfollowed)

    def test_links_to_ancestors_are_not_descended(self):
        os.symlink("..", str(self.test_root / "sub" / "up1"))
        os.symlink("..", str(self.test_root / "sub" / "up2"))
        os.symlink(self.temp_dir, str(self.test_root / "sub" / "deep" / "top"))

        walker, candidates = self._walk()
        relative = self._relative(candidates)

        assert [p for p in relative if p.endswith("low.txt")] == [os.path.join("sub", "deep", "low.txt")]
        assert {os.path.join("sub", "up1"), os.path.join("sub", "up2"),
                os.path.join("sub", "deep", "top")} <= relative
        assert walker.get_stats()['directories_traversed'] == 4
        assert len(relative) == len(candidates)

    def test_root_reached_twice_is_expanded_once(self):
        link = os.path.join(tempfile.gettempdir(), os.path.basename(self.temp_dir) + "-link")
        os.symlink(self.temp_dir, link)
        try:
            walker = FSWalker(RuleSet(path=[self.temp_dir, link]))
            candidates = list(walker)
        finally:
            os.unlink(link)

        assert walker.get_stats()['directories_traversed'] == 4
        assert len(candidates) == 7

    def test_dangling_link_is_skipped_when_following(self):
        os.symlink(str(self.test_root / "missing"), str(self.test_root / "dangling"))

        walker, candidates = self._walk()

        assert "dangling" not in {c.name for c in candidates}
        assert walker.get_stats()['entries_skipped'] == 1

    def test_vanished_entry_is_skipped(self):
        real_stat = os.stat
        vanished = os.path.join(self.temp_dir, "top.txt")

        def flaky_stat(path, *args, **kwargs):
            if path == vanished:
                raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)
            return real_stat(path, *args, **kwargs)

        with patch('filefind.tools.fs_walker.os.stat', side_effect=flaky_stat):
            walker, candidates = self._walk()

        names = {c.name for c in candidates}
        assert "top.txt" not in names
        assert "low.txt" in names
        assert walker.get_stats()['entries_skipped'] == 1

    def test_unreadable_directory_is_skipped(self):
        real_listdir = os.listdir
        locked = os.path.join(self.temp_dir, "sub")

        def guarded_listdir(path):
            if path == locked:
                raise PermissionError(errno.EACCES, "Permission denied", path)
            return real_listdir(path)

        with patch('filefind.tools.fs_walker.os.listdir', side_effect=guarded_listdir):
            walker, candidates = self._walk()

        names = {c.name for c in candidates}
        assert "sub" in names
        assert "mid.txt" not in names
        assert "side.txt" in names

        assert walker.get_stats()['errors'] == 1
        assert walker.errors == [f"{locked}: Permission denied"]

    def test_mount_boundary_stops_descent(self):
        device = os.stat(self.temp_dir).st_dev
        walker, candidates = self._walk(mount_device=device + 1)

        assert {c.depth for c in candidates} == {1}
        assert walker.get_stats()['directories_traversed'] == 1

    def test_mount_on_same_device(self):
        _, candidates = self._walk(mount=self.temp_dir)
        assert "low.txt" in {c.name for c in candidates}

    def test_depth_of_uses_first_matching_root(self):
        nested = os.path.join(self.temp_dir, "sub")
        walker = FSWalker(RuleSet(path=[self.temp_dir, nested]))

        assert walker.depth_of(os.path.join(nested, "mid.txt")) == 2

        walker = FSWalker(RuleSet(path=[nested, self.temp_dir]))
        assert walker.depth_of(os.path.join(nested, "mid.txt")) == 1
        assert walker.depth_of(os.path.join(self.temp_dir, "top.txt")) == 1

    def test_root_is_depth_zero(self):
        walker = FSWalker(RuleSet(path=[self.temp_dir + os.sep]))
        assert walker.depth_of(self.temp_dir) == 0
        assert walker.depth_of(os.path.join(self.temp_dir, "top.txt")) == 1

    def test_next_candidate_resumes(self):
        walker = FSWalker(RuleSet(path=[self.temp_dir]))

        first = walker.next_candidate()
        assert first is not None
        assert first.depth == 1

        rest = list(walker)
        assert len(rest) == 6
        assert walker.next_candidate() is None
        assert walker.pending == 0

    def test_check_roots(self):
        FSWalker(RuleSet(path=[self.temp_dir])).check_roots()

        missing = os.path.join(self.temp_dir, "missing")
        walker = FSWalker(RuleSet(path=[self.temp_dir, missing]))
        with pytest.raises(FatalTraversalError) as exc_info:
            walker.check_roots()
        assert exc_info.value.path == missing

    def test_check_roots_rejects_regular_file(self):
        root_file = os.path.join(self.temp_dir, "top.txt")
        walker = FSWalker(RuleSet(path=[root_file]))

        with pytest.raises(FatalTraversalError, match="not a directory") as exc_info:
            walker.check_roots()
        assert exc_info.value.path == root_file

    def test_reset_stats(self):
        walker, _ = self._walk()
        walker.reset_stats()

        assert walker.get_stats()['entries_scanned'] == 0
        assert walker.errors == []
