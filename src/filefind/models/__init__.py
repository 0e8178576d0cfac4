"""
Data models for filefind.

This module contains the rules, configuration and result structures used
throughout the system.
"""

from .rules import Capability, EntryType, RuleSet
from .search_results import Candidate, FileMatch, FileMetadata, SearchResults
from .config import FinderConfig, LimitsConfig, StrategyKind

__all__ = [
    'Candidate',
    'Capability',
    'EntryType',
    'FileMatch',
    'FileMetadata',
    'FinderConfig',
    'LimitsConfig',
    'RuleSet',
    'SearchResults',
    'StrategyKind',
]
