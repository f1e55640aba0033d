from __future__ import annotations
"""Data models for bucket listings and traversal results."""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ListingPage:
    """One page of a delimiter listing under a single prefix."""

    prefixes: list[str] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)
    next_marker: Optional[str] = None
    truncated: bool = False


@dataclass(frozen=True)
class BucketInfo:
    """A bucket name plus the optional region hint reported by discovery."""

    name: str
    location: Optional[str] = None


@dataclass
class WalkStats:
    """Counters describing how a single bucket walk went."""

    prefixes_listed: int = 0
    pages_fetched: int = 0
    files_emitted: int = 0
    files_excluded: int = 0
    dirs_excluded: int = 0
    cache_hits: int = 0
    failed_prefixes: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed_prefixes)


@dataclass
class BucketOutcome:
    """Result of processing one bucket root."""

    bucket: str
    stats: WalkStats = field(default_factory=WalkStats)
    error: Optional[str] = None


@dataclass
class RunSummary:
    """Outcomes for every bucket processed during a run, keyed by name."""

    outcomes: dict[str, BucketOutcome] = field(default_factory=dict)

    @property
    def failed_buckets(self) -> list[str]:
        return [name for name, outcome in self.outcomes.items() if outcome.error]

    @property
    def files_emitted(self) -> int:
        return sum(outcome.stats.files_emitted for outcome in self.outcomes.values())


@dataclass
class TreeNode:
    """A node of the rendered directory tree."""

    name: str
    is_dir: bool
    full_path: str = ""
    children: list[TreeNode] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload: dict = {"name": self.name, "is_dir": self.is_dir}
        if self.full_path:
            payload["full_path"] = self.full_path
        if self.children:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload
