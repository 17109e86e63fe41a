"""propresolvers/dedup.py – case-insensitive, first-wins deduplication."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from propresolvers.model import DuplicateKeyGroup, ResolverSpecification

__all__ = ["DedupResult", "deduplicate", "group_by_key"]


def group_by_key(specs: Iterable[ResolverSpecification]) -> List[DuplicateKeyGroup]:
    """Group specifications by casefolded property name.

    Groups appear in order of each key's first occurrence, and the
    occurrences inside a group keep their input order.
    """
    buckets: Dict[str, List[ResolverSpecification]] = {}
    for spec in specs:
        buckets.setdefault(spec.key, []).append(spec)
    return [DuplicateKeyGroup(key=k, occurrences=tuple(v)) for k, v in buckets.items()]


@dataclass(frozen=True)
class DedupResult:
    retained: Tuple[ResolverSpecification, ...]
    groups: Tuple[DuplicateKeyGroup, ...]

    @property
    def surplus(self) -> Tuple[ResolverSpecification, ...]:
        """Every occurrence that lost to an earlier one with the same key."""
        return tuple(s for g in self.groups for s in g.duplicates)

    @property
    def duplicate_groups(self) -> Tuple[DuplicateKeyGroup, ...]:
        return tuple(g for g in self.groups if g.has_duplicates)


def deduplicate(specs: Iterable[ResolverSpecification]) -> DedupResult:
    groups = tuple(group_by_key(specs))
    return DedupResult(retained=tuple(g.first for g in groups), groups=groups)
