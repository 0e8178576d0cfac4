"""
filefind - Core Package

A rule-based filesystem search engine. Rules describe what to look for
(name glob, times, ownership, permissions, size, type, depth, pruning,
mount boundary, capability checks) and a strategy walks the tree
breadth-first to report every matching entry.
"""

__version__ = "0.5.2"
__author__ = "filefind Team"

from .errors import ConfigurationError, FatalTraversalError, FindError
from .models.rules import Capability, EntryType, RuleSet
from .tools.strategies import find, iter_find

__all__ = [
    'Capability',
    'ConfigurationError',
    'EntryType',
    'FatalTraversalError',
    'FindError',
    'RuleSet',
    'find',
    'iter_find',
]
