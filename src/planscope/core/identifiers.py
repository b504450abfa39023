"""
Identifier Normalization and Lookup.

The workflow feed, the infra progress feed and the plan catalog do not agree
on how a resource is named: some use the resource id, some the alias key,
some the display name, and the infra feed additionally lower-cases ids,
drops punctuation, or prefixes them with `tf-`. Every place that has to
match one of those identifiers to a graph node goes through this module.

Lookup precedence for progress is always id, then key, then name.

The variant list in `record_keys` is a compatibility shim for upstream
naming drift. New variants should be fixed at the source rather than added
here.
"""

import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from .types import InfraProgressRecord, Node, Progress

_PUNCTUATION = re.compile(r"[\s\-_.]+")

INFRA_PREFIX = "tf-"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

T = TypeVar("T")


def normalize(identifier: str) -> str:
    """
    Case-fold an identifier and strip punctuation.

    Args:
        identifier: Raw identifier from any source.

    Returns:
        str: e.g. "R-Network_Main" -> "rnetworkmain".
    """
    return _PUNCTUATION.sub("", identifier.strip().lower())


def record_keys(identifier: str) -> List[str]:
    """
    Candidate keys under which an infra state entry may be stored.

    Order: normalized, raw, prefixed normalized, prefixed lower-cased raw.
    Duplicates are dropped, keeping the first occurrence.
    """
    raw = identifier.strip()
    candidates = [
        normalize(raw),
        raw,
        INFRA_PREFIX + normalize(raw),
        INFRA_PREFIX + raw.lower(),
    ]
    seen = set()
    keys = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.add(candidate)
            keys.append(candidate)
    return keys


def lookup_variant(identifier: str, table: Dict[str, T]) -> Optional[T]:
    """Return the first value in `table` stored under any variant of `identifier`."""
    for key in record_keys(identifier):
        if key in table:
            return table[key]
    return None


def same_identifier(left: str, right: str) -> bool:
    """Case-insensitive identifier equality."""
    return bool(left) and left.strip().lower() == right.strip().lower()


def short_id(identifier: str, length: int = 8) -> str:
    """Truncate long identifiers for display."""
    if len(identifier) <= length:
        return identifier
    return identifier[:length] + "…"


def match_record(
    node_id: str,
    instance_id: str,
    records: Iterable[InfraProgressRecord],
) -> Optional[InfraProgressRecord]:
    """
    Pick the infra progress record for a node.

    A record matches when its resource id equals the node id and its
    instance id equals the current instance, both compared
    case-insensitively. Among matches the latest `started_at` wins.
    """
    best: Optional[InfraProgressRecord] = None
    for record in records:
        if not same_identifier(record.resource_id, node_id):
            continue
        if instance_id and not same_identifier(record.instance_id, instance_id):
            continue
        if best is None or (record.started_at or _EPOCH) > (best.started_at or _EPOCH):
            best = record
    return best


class ProgressIndex:
    """
    Progress overlay addressed by three parallel tables.

    The two progress feeds identify resources differently, so every entry is
    stored under whichever of id, key and name the feed supplied. `lookup`
    resolves a node with precedence id -> key -> name.
    """

    def __init__(self):
        self.by_id: Dict[str, Progress] = {}
        self.by_key: Dict[str, Progress] = {}
        self.by_name: Dict[str, Progress] = {}

    def __len__(self) -> int:
        return len(self.by_id) + len(self.by_key) + len(self.by_name)

    def put(self, progress: Progress, id: str = "", key: str = "", name: str = "") -> None:
        if id:
            self.by_id[id] = progress
        if key:
            self.by_key[key] = progress
        if name:
            self.by_name[name] = progress

    def put_node(self, node: Node, progress: Progress) -> None:
        self.put(progress, id=node.id, key=node.key, name=node.name)

    def lookup(self, node: Node) -> Optional[Progress]:
        if node.id in self.by_id:
            return self.by_id[node.id]
        if node.key and node.key in self.by_key:
            return self.by_key[node.key]
        if node.name and node.name in self.by_name:
            return self.by_name[node.name]
        return None

    def merge(self, other: "ProgressIndex") -> None:
        """Overwrite entries with those of `other`, table by table."""
        self.by_id.update(other.by_id)
        self.by_key.update(other.by_key)
        self.by_name.update(other.by_name)

    def any_in_flight(self, nodes: Sequence[Node]) -> bool:
        """True if any of `nodes` has non-terminal progress."""
        for node in nodes:
            progress = self.lookup(node)
            if progress is not None and not progress.is_terminal():
                return True
        return False
