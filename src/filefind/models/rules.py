"""
Rule data models for filefind.

This module defines the RuleSet, the immutable description of a search:
root paths, the basename glob and every optional predicate parameter. It also
defines the entry type tags and the finite set of capability checks that
can be requested alongside the fixed predicates.
"""

import os
import re
import stat
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from ..errors import ConfigurationError
from ..tools.permissions import parse_size_spec, parse_symbolic_mode


class EntryType(Enum):
    """Type tags for directory entries."""
    FILE = "file"
    DIRECTORY = "directory"
    LINK = "link"
    CHARACTER_SPECIAL = "characterSpecial"
    BLOCK_SPECIAL = "blockSpecial"
    FIFO = "fifo"
    SOCKET = "socket"
    UNKNOWN = "unknown"

    @classmethod
    def from_mode(cls, mode: int) -> 'EntryType':
        """Derive the entry type from ``st_mode`` bits."""
        if stat.S_ISREG(mode):
            return cls.FILE
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISLNK(mode):
            return cls.LINK
        if stat.S_ISCHR(mode):
            return cls.CHARACTER_SPECIAL
        if stat.S_ISBLK(mode):
            return cls.BLOCK_SPECIAL
        if stat.S_ISFIFO(mode):
            return cls.FIFO
        if stat.S_ISSOCK(mode):
            return cls.SOCKET
        return cls.UNKNOWN


_ENTRY_TYPE_ALIASES = {
    'f': EntryType.FILE,
    'd': EntryType.DIRECTORY,
    'dir': EntryType.DIRECTORY,
    'l': EntryType.LINK,
    'symlink': EntryType.LINK,
}


class Capability(Enum):
    """Boolean file attribute checks that can be attached to a RuleSet."""
    READABLE = "readable"
    WRITABLE = "writable"
    EXECUTABLE = "executable"
    EXIST = "exist"
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    SOCKET = "socket"
    PIPE = "pipe"
    BLOCKDEV = "blockdev"
    CHARDEV = "chardev"
    ZERO = "zero"
    SIZE = "size"
    SETUID = "setuid"
    SETGID = "setgid"
    STICKY = "sticky"
    OWNED = "owned"
    GRPOWNED = "grpowned"
    WORLD_READABLE = "world_readable"
    WORLD_WRITABLE = "world_writable"

    @classmethod
    def from_name(cls, name: Any) -> 'Capability':
        """
        Look up a capability by name.

        Accepts the enum member itself, or names such as ``"readable?"``,
        ``"Readable"`` and ``"world-readable"``.

        Raises:
            ConfigurationError: If the name is not a supported capability
        """
        if isinstance(name, cls):
            return name

        key = str(name).strip().lower().rstrip('?').replace('-', '_')
        try:
            return cls(key)
        except ValueError:
            raise ConfigurationError(f"invalid option '{name}'") from None


class RuleSet(BaseModel):
    """
    Immutable rules for a single search.

    A RuleSet is validated once when it is built and is never mutated while
    a search runs. The device id of ``mount`` is captured at construction.

    Attributes:
        path: Root paths searched as one logical pool
        name: Glob matched against basenames (alias: ``pattern``)
        follow: Whether metadata is fetched through symlinks
        maxdepth: Deepest reported depth (roots' children are depth 1)
        mindepth: Shallowest reported depth
        mount: Path whose filesystem bounds the search
        mount_device: Device id captured from ``mount``
        atime: Exact age in days of the last access
        ctime: Exact age in days of the last status change
        mtime: Exact age in days of the last modification
        ftype: Required entry type
        group: Group id or group name
        user: User id or user name
        inum: Inode number
        links: Exact hard link count
        perm: Octal mode or symbolic expression like ``"g=rw"``
        size: Exact byte count or comparator like ``">= 200"``
        prune: Regex over basenames; matching entries and subtrees are skipped
        checks: Ordered capability checks with their expected values
    """

    model_config = ConfigDict(frozen=True)

    path: List[str] = Field(default_factory=lambda: [os.getcwd()], min_length=1, description="Root paths")
    name: str = Field("*", validation_alias=AliasChoices('name', 'pattern'), description="Basename glob")
    follow: bool = Field(True, description="Follow symlinks when fetching metadata")
    maxdepth: Optional[int] = Field(None, ge=0, description="Maximum reported depth")
    mindepth: Optional[int] = Field(None, ge=0, description="Minimum reported depth")
    mount: Optional[str] = Field(None, description="Restrict the search to this path's filesystem")
    mount_device: Optional[int] = Field(None, description="Device id of the mount path")
    atime: Optional[int] = Field(None, description="Access time, in days ago")
    ctime: Optional[int] = Field(None, description="Status change time, in days ago")
    mtime: Optional[int] = Field(None, description="Modification time, in days ago")
    ftype: Optional[EntryType] = Field(None, description="Entry type tag")
    group: Optional[Union[int, str]] = Field(None, description="Group id or name")
    user: Optional[Union[int, str]] = Field(None, description="User id or name")
    inum: Optional[int] = Field(None, ge=0, description="Inode number")
    links: Optional[int] = Field(None, ge=0, description="Hard link count")
    perm: Optional[Union[int, str]] = Field(None, description="Octal or symbolic permissions")
    size: Optional[Union[int, str]] = Field(None, description="Size in bytes or comparator expression")
    prune: Optional[str] = Field(None, description="Regex over basenames to prune")
    checks: List[Tuple[Capability, bool]] = Field(default_factory=list, description="Capability checks")

    VALID_OPTIONS: ClassVar[FrozenSet[str]] = frozenset([
        'atime', 'ctime', 'follow', 'ftype', 'inum', 'group', 'links',
        'maxdepth', 'mindepth', 'mount', 'mtime', 'name', 'pattern',
        'path', 'perm', 'prune', 'size', 'user',
    ])

    @model_validator(mode='before')
    @classmethod
    def resolve_mount_device(cls, data: Any) -> Any:
        """Capture the device id of the mount path."""
        if not isinstance(data, dict) or data.get('mount') is None:
            return data

        mount = data['mount']
        try:
            device = os.stat(mount).st_dev
        except (OSError, TypeError, ValueError) as e:
            raise ValueError(f"Cannot resolve mount path '{mount}': {e}")

        data = dict(data)
        data['mount_device'] = device
        return data

    @field_validator('path', mode='before')
    @classmethod
    def validate_path(cls, v: Any) -> List[str]:
        """Accept a single root or a list of roots and make them absolute."""
        if v is None:
            return [os.getcwd()]
        if isinstance(v, (str, os.PathLike)):
            v = [v]

        roots = []
        for root in v:
            root = os.fspath(root)
            if not root or not root.strip():
                raise ValueError("Root path cannot be empty")
            roots.append(os.path.abspath(os.path.expanduser(root)))
        return roots

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Name pattern cannot be empty")
        return v

    @field_validator('ftype', mode='before')
    @classmethod
    def validate_ftype(cls, v: Any) -> Optional[EntryType]:
        """Validate and convert the type tag to an EntryType."""
        if v is None or isinstance(v, EntryType):
            return v
        if isinstance(v, str):
            if v in _ENTRY_TYPE_ALIASES:
                return _ENTRY_TYPE_ALIASES[v]
            try:
                return EntryType(v)
            except ValueError:
                raise ValueError(f"Invalid file type: {v}")
        raise ValueError(f"Invalid file type: {v!r}")

    @field_validator('perm', mode='before')
    @classmethod
    def validate_perm(cls, v: Any) -> Optional[Union[int, str]]:
        """Octal modes must fit in 12 bits; symbolic modes must parse."""
        if v is None:
            return v
        if isinstance(v, bool):
            raise ValueError(f"Invalid permissions: {v!r}")
        if isinstance(v, int):
            if not 0 <= v <= 0o7777:
                raise ValueError(f"Invalid octal permissions: {oct(v)}")
            return v
        if isinstance(v, str):
            try:
                parse_symbolic_mode(v)
            except ConfigurationError as e:
                raise ValueError(str(e))
            return v
        raise ValueError(f"Invalid permissions: {v!r}")

    @field_validator('size', mode='before')
    @classmethod
    def validate_size(cls, v: Any) -> Optional[Union[int, str]]:
        if v is None:
            return v
        try:
            parse_size_spec(v)
        except ConfigurationError as e:
            raise ValueError(str(e))
        return v

    @field_validator('prune')
    @classmethod
    def validate_prune(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid prune pattern '{v}': {e}")
        return v

    @field_validator('checks', mode='before')
    @classmethod
    def validate_checks(cls, v: Any) -> List[Tuple[Capability, bool]]:
        """Resolve capability names through the Capability lookup table."""
        if v is None:
            return []
        if isinstance(v, dict):
            v = list(v.items())

        checks = []
        for item in v:
            try:
                capability, expected = item
            except (TypeError, ValueError):
                raise ValueError(f"Invalid capability check: {item!r}")
            try:
                checks.append((Capability.from_name(capability), bool(expected)))
            except ConfigurationError as e:
                raise ValueError(str(e))
        return checks

    @property
    def pattern(self) -> str:
        """Alias for ``name``."""
        return self.name

    def has_depth_bounds(self) -> bool:
        return self.maxdepth is not None or self.mindepth is not None

    def to_options(self) -> Dict[str, Any]:
        """
        Convert the rules back into an option map.

        The result only holds options that differ from their defaults and
        can be fed to ``RuleSet.from_options`` again.
        """
        options: Dict[str, Any] = {'path': list(self.path)}
        if self.name != '*':
            options['name'] = self.name
        if not self.follow:
            options['follow'] = False

        for key in ('maxdepth', 'mindepth', 'mount', 'atime', 'ctime', 'mtime',
                    'group', 'user', 'inum', 'links', 'perm', 'size', 'prune'):
            value = getattr(self, key)
            if value is not None:
                options[key] = value

        if self.ftype is not None:
            options['ftype'] = self.ftype.value

        for capability, expected in self.checks:
            options[f"{capability.value}?"] = expected

        return options

    @classmethod
    def from_options(cls, options: Optional[Dict[str, Any]] = None) -> 'RuleSet':
        """
        Build a RuleSet from an option map.

        Option keys are case-insensitive. A key ending in ``?`` names a
        capability check whose value is the expected boolean, e.g.
        ``{'name': '*.rb', 'readable?': True}``.

        Raises:
            ConfigurationError: On unknown options or invalid values
        """
        data: Dict[str, Any] = {}
        checks: List[Tuple[Capability, bool]] = []

        for key, value in (options or {}).items():
            key = str(key).lower()

            if key.endswith('?'):
                checks.append((Capability.from_name(key), bool(value)))
                continue

            if key not in cls.VALID_OPTIONS:
                raise ConfigurationError(f"invalid option '{key}'")

            data['name' if key == 'pattern' else key] = value

        if checks:
            data['checks'] = checks

        try:
            return cls.model_validate(data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid rules: {e}") from e

    def __str__(self) -> str:
        """String representation of the rules."""
        parts = [f"Roots: {len(self.path)}"]
        parts.append(f"Name: '{self.name}'")
        if self.has_depth_bounds():
            parts.append(f"Depth: {self.mindepth}..{self.maxdepth}")
        if self.prune:
            parts.append(f"Prune: '{self.prune}'")
        if self.checks:
            parts.append(f"Checks: {len(self.checks)}")
        return " | ".join(parts)
