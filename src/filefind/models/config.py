"""
Configuration data models for filefind.

This module defines the configuration that sits around a RuleSet: which
execution strategy runs the search and the limits of the parallel strategy.
"""

from typing import Any, Dict
from enum import Enum
from pydantic import BaseModel, Field, field_validator

from .rules import RuleSet


class StrategyKind(Enum):
    """Supported execution strategies."""
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    LAZY = "lazy"


class LimitsConfig(BaseModel):
    """
    Configuration for concurrency limits.

    Attributes:
        max_concurrent: Number of worker threads used by the parallel strategy
        queue_size: Capacity of the bounded candidate queue
    """

    max_concurrent: int = Field(4, gt=0, description="Worker threads for the parallel strategy")
    queue_size: int = Field(1024, gt=0, description="Capacity of the candidate queue")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class FinderConfig(BaseModel):
    """
    Main configuration class for filefind.

    Attributes:
        rules: The search rules
        strategy: Execution strategy used to run the rules
        limits: Concurrency limits
    """

    rules: RuleSet = Field(default_factory=RuleSet, description="Search rules")
    strategy: StrategyKind = Field(StrategyKind.SEQUENTIAL, description="Execution strategy")
    limits: LimitsConfig = Field(default_factory=LimitsConfig, description="Concurrency limits")

    @field_validator('rules', mode='before')
    @classmethod
    def validate_rules(cls, v) -> RuleSet:
        """Accept an option map for the rules section."""
        if v is None:
            return RuleSet()
        if isinstance(v, dict):
            return RuleSet.from_options(v)
        return v

    @field_validator('strategy', mode='before')
    @classmethod
    def validate_strategy(cls, v) -> StrategyKind:
        """Validate and convert strategy to enum."""
        if isinstance(v, str):
            try:
                return StrategyKind(v.lower())
            except ValueError:
                raise ValueError(f"Invalid strategy: {v}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary representation."""
        return {
            'rules': self.rules.to_options(),
            'strategy': self.strategy.value,
            'limits': self.limits.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FinderConfig':
        """Create configuration from dictionary representation."""
        return cls.model_validate(data)

    def __str__(self) -> str:
        """String representation of the configuration."""
        parts = [str(self.rules)]
        parts.append(f"Strategy: {self.strategy.value}")
        parts.append(f"Workers: {self.limits.max_concurrent}")
        return " | ".join(parts)
