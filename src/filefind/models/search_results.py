"""
Search results data models for filefind.

This module defines the metadata snapshot captured for every traversed entry,
the match produced for entries that pass every rule, and the result set
returned by a search run.
"""

import os
import stat
from typing import Any, Dict, List, NamedTuple, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from .rules import EntryType, RuleSet


class FileMetadata(BaseModel):
    """
    Metadata snapshot of a directory entry.

    Captured once per entry per run from a single ``stat``/``lstat`` call and
    never re-fetched while the entry moves through the predicate chain.

    Attributes:
        device: Device id of the filesystem holding the entry
        inode: Inode number
        links: Hard link count
        size: Size in bytes
        mode: Raw ``st_mode`` bits
        uid: Owner user id
        gid: Owner group id
        atime: Last access time (epoch seconds)
        ctime: Last status change time (epoch seconds)
        mtime: Last modification time (epoch seconds)
        entry_type: Type tag derived from ``mode``
    """

    device: int = Field(..., description="Device id")
    inode: int = Field(..., ge=0, description="Inode number")
    links: int = Field(..., ge=0, description="Hard link count")
    size: int = Field(..., ge=0, description="Size in bytes")
    mode: int = Field(..., ge=0, description="Raw st_mode bits")
    uid: int = Field(..., description="Owner user id")
    gid: int = Field(..., description="Owner group id")
    atime: float = Field(..., description="Last access time")
    ctime: float = Field(..., description="Last status change time")
    mtime: float = Field(..., description="Last modification time")
    entry_type: EntryType = Field(..., description="Entry type tag")

    @field_validator('entry_type', mode='before')
    @classmethod
    def validate_entry_type(cls, v) -> EntryType:
        """Ensure entry_type is an EntryType enum."""
        if isinstance(v, str):
            try:
                return EntryType(v)
            except ValueError:
                raise ValueError(f"Invalid entry type: {v}")
        return v

    @classmethod
    def from_stat(cls, stat_result: os.stat_result) -> 'FileMetadata':
        """Build a snapshot from an ``os.stat_result``."""
        return cls(
            device=stat_result.st_dev,
            inode=stat_result.st_ino,
            links=stat_result.st_nlink,
            size=stat_result.st_size,
            mode=stat_result.st_mode,
            uid=stat_result.st_uid,
            gid=stat_result.st_gid,
            atime=stat_result.st_atime,
            ctime=stat_result.st_ctime,
            mtime=stat_result.st_mtime,
            entry_type=EntryType.from_mode(stat_result.st_mode),
        )

    @property
    def permissions(self) -> str:
        """Permission bits as an octal string, e.g. ``'644'``."""
        return format(stat.S_IMODE(self.mode), 'o')

    def is_directory(self) -> bool:
        return self.entry_type is EntryType.DIRECTORY

    def get_size_human_readable(self) -> str:
        """Get file size in human-readable format."""
        size = float(self.size)
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if size < 1024.0:
                return f"{size:.1f} {unit}"
            size /= 1024.0
        return f"{size:.1f} PB"

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary representation."""
        data = self.model_dump()
        data['entry_type'] = self.entry_type.value
        data['permissions'] = self.permissions
        data['size_human'] = self.get_size_human_readable()
        for key in ('atime', 'ctime', 'mtime'):
            data[key] = datetime.fromtimestamp(getattr(self, key)).isoformat()
        return data


class Candidate(NamedTuple):
    """An entry produced by the walker, before predicate evaluation."""
    path: str
    name: str
    depth: int
    metadata: FileMetadata


class FileMatch(BaseModel):
    """
    An entry that passed every rule.

    Attributes:
        path: Path of the entry, joined from its root
        depth: Depth relative to the root it was found under
        metadata: The entry's metadata snapshot
    """

    path: str = Field(..., min_length=1, description="Path of the matched entry")
    depth: int = Field(..., ge=0, description="Depth relative to its root")
    metadata: FileMetadata = Field(..., description="Metadata snapshot")

    def get_filename(self) -> str:
        """Get just the basename without directory path."""
        return os.path.basename(self.path)

    def get_directory(self) -> str:
        """Get the directory containing this entry."""
        return os.path.dirname(self.path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert file match to dictionary representation."""
        return {
            'path': self.path,
            'filename': self.get_filename(),
            'directory': self.get_directory(),
            'depth': self.depth,
            'metadata': self.metadata.to_dict(),
        }

    def __str__(self) -> str:
        """String representation of the file match."""
        parts = [self.path]
        parts.append(f"Type: {self.metadata.entry_type.value}")
        parts.append(f"Size: {self.metadata.get_size_human_readable()}")
        return " | ".join(parts)


class SearchResults(BaseModel):
    """
    Complete results from a search run.

    In callback mode ``matches`` stays empty while ``match_count`` and
    ``last_match`` still describe what was reported.

    Attributes:
        rules: The rules that produced these results
        strategy: Name of the strategy that ran the search
        matches: Matches in report order (arbitrary order for parallel runs)
        match_count: Number of matches reported
        last_match: Path of the most recent match of this run
        total_scanned: Number of entries whose metadata was fetched
        directories_traversed: Number of directories expanded
        execution_time: Time taken in seconds
        timestamp: When the search was executed
        errors: Traversal faults that were skipped
    """

    rules: RuleSet = Field(..., description="Rules of the search")
    strategy: str = Field("sequential", description="Strategy that ran the search")
    matches: List[FileMatch] = Field(default_factory=list, description="List of matches")
    match_count: int = Field(0, ge=0, description="Number of matches reported")
    last_match: Optional[str] = Field(None, description="Most recent match of this run")
    total_scanned: int = Field(0, ge=0, description="Entries examined")
    directories_traversed: int = Field(0, ge=0, description="Directories expanded")
    execution_time: float = Field(0.0, ge=0.0, description="Time taken in seconds")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the search was executed")
    errors: List[str] = Field(default_factory=list, description="Skipped traversal faults")

    def paths(self) -> List[str]:
        """Get the matched paths in result order."""
        return [match.path for match in self.matches]

    def get_match_count(self) -> int:
        return self.match_count

    def has_errors(self) -> bool:
        """Check if any traversal faults were skipped."""
        return len(self.errors) > 0

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def add_match(self, match: FileMatch) -> None:
        """Append a match and record it as the last match."""
        self.matches.append(match)
        self.record(match)

    def record(self, match: FileMatch) -> None:
        """Count a match without storing it."""
        self.match_count += 1
        self.last_match = match.path

    def sort_by_path(self) -> None:
        """Sort matches alphabetically by path."""
        self.matches.sort(key=lambda m: m.path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert search results to dictionary representation."""
        return {
            'rules': self.rules.to_options(),
            'strategy': self.strategy,
            'matches': [match.to_dict() for match in self.matches],
            'match_count': self.match_count,
            'last_match': self.last_match,
            'total_scanned': self.total_scanned,
            'directories_traversed': self.directories_traversed,
            'execution_time': self.execution_time,
            'timestamp': self.timestamp.isoformat(),
            'errors': list(self.errors),
        }

    def __str__(self) -> str:
        """String representation of search results."""
        parts = [f"Found {self.match_count} matches"]
        parts.append(f"Scanned {self.total_scanned} entries")
        parts.append(f"Took {self.execution_time:.2f}s")

        if self.has_errors():
            parts.append(f"Errors: {len(self.errors)}")

        return " | ".join(parts)
