"""
Predicate evaluation for filefind.

A PredicateChain compiles a RuleSet once per run and then decides, for each
candidate produced by the walker, whether it is reported. Filters run in a
fixed order, cheapest first, and the first failing filter ends evaluation.
"""

import fnmatch
import logging
import os
import re
import stat
from datetime import date
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple
try:
    import pwd
    import grp
except ImportError:
    # Windows doesn't have pwd/grp modules
    pwd = None
    grp = None

from ..models.rules import Capability, RuleSet
from ..models.search_results import Candidate, FileMetadata
from .permissions import parse_size_spec, parse_symbolic_mode


logger = logging.getLogger(__name__)

CapabilityCheck = Callable[[str, FileMetadata], bool]


def _is_owned(path: str, metadata: FileMetadata) -> bool:
    if not hasattr(os, 'geteuid'):
        return False
    return metadata.uid == os.geteuid()


def _is_grpowned(path: str, metadata: FileMetadata) -> bool:
    if not hasattr(os, 'getegid'):
        return False
    return metadata.gid == os.getegid() or metadata.gid in os.getgroups()


CAPABILITY_CHECKS: Dict[Capability, CapabilityCheck] = {
    Capability.READABLE: lambda path, md: os.access(path, os.R_OK),
    Capability.WRITABLE: lambda path, md: os.access(path, os.W_OK),
    Capability.EXECUTABLE: lambda path, md: os.access(path, os.X_OK),
    Capability.EXIST: lambda path, md: os.path.lexists(path),
    Capability.SYMLINK: lambda path, md: os.path.islink(path),
    Capability.FILE: lambda path, md: stat.S_ISREG(md.mode),
    Capability.DIRECTORY: lambda path, md: stat.S_ISDIR(md.mode),
    Capability.SOCKET: lambda path, md: stat.S_ISSOCK(md.mode),
    Capability.PIPE: lambda path, md: stat.S_ISFIFO(md.mode),
    Capability.BLOCKDEV: lambda path, md: stat.S_ISBLK(md.mode),
    Capability.CHARDEV: lambda path, md: stat.S_ISCHR(md.mode),
    Capability.ZERO: lambda path, md: stat.S_ISREG(md.mode) and md.size == 0,
    Capability.SIZE: lambda path, md: md.size > 0,
    Capability.SETUID: lambda path, md: bool(md.mode & stat.S_ISUID),
    Capability.SETGID: lambda path, md: bool(md.mode & stat.S_ISGID),
    Capability.STICKY: lambda path, md: bool(md.mode & stat.S_ISVTX),
    Capability.OWNED: _is_owned,
    Capability.GRPOWNED: _is_grpowned,
    Capability.WORLD_READABLE: lambda path, md: bool(md.mode & stat.S_IROTH),
    Capability.WORLD_WRITABLE: lambda path, md: bool(md.mode & stat.S_IWOTH),
}


@lru_cache(maxsize=1024)
def _user_name(uid: int) -> Optional[str]:
    if pwd is None:
        return None
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return None


@lru_cache(maxsize=1024)
def _group_name(gid: int) -> Optional[str]:
    if grp is None:
        return None
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return None


class PredicateChain:
    """
    Compiled form of a RuleSet.

    Evaluation order:
        1. prune regex over the basename (applied by the walker, before stat)
        2. mount device
        3. link count
        4. depth bounds
        5. basename glob
        6. capability checks
        7. atime / ctime / mtime day offsets
        8. entry type
        9. group
        10. inode
        11. permissions
        12. size
        13. user

    The chain holds no per-candidate state, so one instance can be shared
    by several worker threads.
    """

    def __init__(self, rules: RuleSet, today: Optional[date] = None):
        """
        Compile the rules.

        Args:
            rules: Rules to evaluate
            today: Reference day for time filters (defaults to today)

        Raises:
            ConfigurationError: If the permission or size expression is malformed
        """
        self.rules = rules
        self.today = today or date.today()

        self._prune = re.compile(rules.prune) if rules.prune else None
        self._perm_mask = parse_symbolic_mode(rules.perm) if isinstance(rules.perm, str) else None
        self._size = parse_size_spec(rules.size) if rules.size is not None else None
        self._checks: List[Tuple[Capability, CapabilityCheck, bool]] = [
            (capability, CAPABILITY_CHECKS[capability], expected)
            for capability, expected in rules.checks
        ]
        self._times = [
            (attr, value)
            for attr, value in (('atime', rules.atime), ('ctime', rules.ctime), ('mtime', rules.mtime))
            if value is not None
        ]

    def is_pruned(self, name: str) -> bool:
        """Check whether a basename is culled by the prune pattern."""
        return self._prune is not None and self._prune.search(name) is not None

    def matches_name(self, name: str) -> bool:
        """Check a basename against the glob."""
        return fnmatch.fnmatchcase(name, self.rules.name)

    def matches(self, candidate: Candidate) -> bool:
        """
        Evaluate every rule after pruning against a candidate.

        Args:
            candidate: Entry produced by the walker

        Returns:
            True if the candidate passes every rule
        """
        rules = self.rules
        metadata = candidate.metadata

        if rules.mount_device is not None and metadata.device != rules.mount_device:
            return False

        if rules.links is not None and metadata.links != rules.links:
            return False

        if not self._within_depth(candidate.depth):
            return False

        if not self.matches_name(candidate.name):
            return False

        for capability, check, expected in self._checks:
            if check(candidate.path, metadata) != expected:
                return False

        for attr, days in self._times:
            if self._days_ago(getattr(metadata, attr)) != days:
                return False

        if rules.ftype is not None and metadata.entry_type is not rules.ftype:
            return False

        if rules.group is not None and not self._matches_owner(rules.group, metadata.gid, _group_name):
            return False

        if rules.inum is not None and metadata.inode != rules.inum:
            return False

        if rules.perm is not None and not self._matches_perm(metadata.mode):
            return False

        if self._size is not None:
            _, comparator, number = self._size
            if not comparator(metadata.size, number):
                return False

        if rules.user is not None and not self._matches_owner(rules.user, metadata.uid, _user_name):
            return False

        return True

    def _within_depth(self, depth: int) -> bool:
        if self.rules.maxdepth is not None and depth > self.rules.maxdepth:
            return False
        if self.rules.mindepth is not None and depth < self.rules.mindepth:
            return False
        return True

    def _days_ago(self, timestamp: float) -> int:
        """Whole calendar days between the reference day and a timestamp."""
        return (self.today - date.fromtimestamp(timestamp)).days

    def _matches_perm(self, mode: int) -> bool:
        if self._perm_mask is None:
            return stat.S_IMODE(mode) == self.rules.perm
        return mode & self._perm_mask == self._perm_mask

    @staticmethod
    def _matches_owner(wanted, owner_id: int, resolve: Callable[[int], Optional[str]]) -> bool:
        """Numeric ids compare directly; names go through the resolver."""
        if isinstance(wanted, int):
            return owner_id == wanted

        name = resolve(owner_id)
        if name is None:
            logger.debug(f"Cannot resolve name for id {owner_id}")
            return False
        return name == wanted
