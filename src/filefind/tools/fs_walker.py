"""
Filesystem walker for filefind.

This module provides the breadth-first traversal engine. The walker owns the
worklist of pending directories and the set of directories already enqueued,
fetches one metadata snapshot per entry and hands candidates to whichever
strategy drives it. Faults below the roots are absorbed as skips.
"""

import errno
import logging
import os
from collections import deque
from typing import Deque, Dict, List, Optional, Set, Tuple

from ..errors import FatalTraversalError
from ..models.rules import RuleSet
from ..models.search_results import Candidate, FileMetadata
from .predicates import PredicateChain


logger = logging.getLogger(__name__)


def _component_count(path: str) -> int:
    return len([part for part in path.split(os.sep) if part])


class FSWalker:
    """
    Breadth-first walker over the roots of a RuleSet.

    The walker is an explicit iterator: every call to ``next_candidate``
    resumes from the saved worklist, dedup set and listing cursor, so it can
    be advanced one entry at a time.

    Every directory entry is enqueued for expansion whether or not it is
    reported; only pruned directories and, when a mount boundary is set,
    directories on another filesystem are never expanded. Each concrete
    directory, identified by device and inode, is expanded at most once, so
    a directory link back to an ancestor is reported but not descended.
    """

    def __init__(self, rules: RuleSet, chain: Optional[PredicateChain] = None):
        """
        Initialize the filesystem walker.

        Args:
            rules: Rules providing the roots, symlink policy and mount boundary
            chain: Compiled predicates used for the prune test
        """
        self.rules = rules
        self.chain = chain or PredicateChain(rules)
        self._roots: List[str] = list(rules.path)
        self._root_prefixes = [
            (root, root.rstrip(os.sep) + os.sep, _component_count(root))
            for root in self._roots
        ]

        self._worklist: Deque[str] = deque()
        self._seen: Set[Tuple[int, int]] = set()
        for root in dict.fromkeys(self._roots):
            identity = self._root_identity(root)
            if identity is not None:
                if identity in self._seen:
                    continue
                self._seen.add(identity)
            self._worklist.append(root)
        self._current_dir: Optional[str] = None
        self._listing: List[str] = []
        self._cursor = 0

        self._errors: List[str] = []
        self._stats = {
            'directories_traversed': 0,
            'entries_scanned': 0,
            'entries_pruned': 0,
            'entries_skipped': 0,
            'errors': 0
        }

    def check_roots(self) -> None:
        """
        Verify that every root exists and is a directory.

        Raises:
            FatalTraversalError: For the first root that is missing or not a directory
        """
        for root in self._roots:
            if not os.path.exists(root):
                logger.error(f"Root path does not exist: {root}")
                raise FatalTraversalError(root)
            if not os.path.isdir(root):
                logger.error(f"Root path is not a directory: {root}")
                raise FatalTraversalError(root, f"Root path is not a directory: {root}")

    def __iter__(self) -> 'FSWalker':
        return self

    def __next__(self) -> Candidate:
        candidate = self.next_candidate()
        if candidate is None:
            raise StopIteration
        return candidate

    def next_candidate(self) -> Optional[Candidate]:
        """
        Advance the traversal to the next candidate.

        Returns:
            The next Candidate, or None once the worklist is exhausted
        """
        while True:
            if self._cursor >= len(self._listing):
                if not self._worklist:
                    self._current_dir = None
                    self._listing = []
                    self._cursor = 0
                    return None
                self._open_directory(self._worklist.popleft())
                continue

            name = self._listing[self._cursor]
            self._cursor += 1

            candidate = self._visit(name)
            if candidate is not None:
                return candidate

    def _open_directory(self, directory: str) -> None:
        """Load the listing of the next directory from the worklist."""
        self._current_dir = directory
        self._cursor = 0
        try:
            self._listing = os.listdir(directory)
        except OSError as e:
            logger.warning(f"Cannot read directory {directory}: {e}")
            self._record_error(f"{directory}: {e.strerror or e}")
            self._listing = []
            return

        self._stats['directories_traversed'] += 1

    def _visit(self, name: str) -> Optional[Candidate]:
        """Turn one listing entry into a candidate, or skip it."""
        if self.chain.is_pruned(name):
            self._stats['entries_pruned'] += 1
            return None

        path = os.path.join(self._current_dir, name)
        stat_result = self._fetch_stat(path)
        if stat_result is None:
            return None

        self._stats['entries_scanned'] += 1
        metadata = FileMetadata.from_stat(stat_result)

        if metadata.is_directory() and self._may_descend(metadata):
            identity = (metadata.device, metadata.inode)
            if identity not in self._seen:
                self._seen.add(identity)
                self._worklist.append(path)

        return Candidate(path, name, self.depth_of(path), metadata)

    def _fetch_stat(self, path: str) -> Optional[os.stat_result]:
        """
        Fetch metadata with the configured symlink policy.

        A symlink loop downgrades to ``lstat`` for this entry only. Entries
        that vanished or became unreadable are skipped.
        """
        follow = self.rules.follow
        try:
            return os.stat(path, follow_symlinks=follow)
        except OSError as e:
            if not (follow and e.errno == errno.ELOOP):
                self._skip_entry(path, e)
                return None

        logger.debug(f"Symlink loop at {path}, falling back to lstat")
        try:
            return os.lstat(path)
        except OSError as e:
            self._skip_entry(path, e)
            return None

    @staticmethod
    def _root_identity(root: str) -> Optional[Tuple[int, int]]:
        try:
            st = os.stat(root)
        except OSError:
            return None
        return st.st_dev, st.st_ino

    def _may_descend(self, metadata: FileMetadata) -> bool:
        mount_device = self.rules.mount_device
        return mount_device is None or metadata.device == mount_device

    def depth_of(self, path: str) -> int:
        """
        Depth of a path relative to the first root that contains it.

        Direct children of a root are at depth 1.
        """
        for root, prefix, root_count in self._root_prefixes:
            if path == root or path.startswith(prefix):
                return _component_count(path) - root_count
        return _component_count(path) - self._root_prefixes[0][2]

    def _skip_entry(self, path: str, error: OSError) -> None:
        logger.debug(f"Skipping {path}: {error}")
        self._stats['entries_skipped'] += 1

    def _record_error(self, message: str) -> None:
        self._stats['errors'] += 1
        self._errors.append(message)

    @property
    def errors(self) -> List[str]:
        """Directory-level faults that were skipped."""
        return list(self._errors)

    @property
    def pending(self) -> int:
        """Number of directories waiting in the worklist."""
        return len(self._worklist)

    def get_stats(self) -> Dict[str, int]:
        """
        Get statistics about the filesystem walking operation.

        Returns:
            Dictionary containing operation statistics
        """
        return self._stats.copy()

    def reset_stats(self) -> None:
        """Reset the statistics counters."""
        self._errors = []
        self._stats = {
            'directories_traversed': 0,
            'entries_scanned': 0,
            'entries_pruned': 0,
            'entries_skipped': 0,
            'errors': 0
        }
