"""Data models for discovered instances, networks and Prometheus target groups."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True)
class Instance:
    """A single ECS instance discovered from the cloud provider."""

    instance_id: str
    name: str
    tags: Mapping[str, str] = field(default_factory=dict, hash=False)
    network_id: str = ""  # VPC id; empty for classic-network instances

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))


@dataclass(frozen=True)
class Network:
    """A VPC as reported by the network listing."""

    network_id: str
    name: str


@dataclass(frozen=True)
class NameConflict:
    """Two admitted instances share a display name; the later one was dropped."""

    name: str
    kept_id: str
    dropped_id: str


def canonical_key(labels: Mapping[str, str]) -> str:
    """Order-independent string key: two label sets share a key iff they are equal."""
    return json.dumps(sorted(labels.items()), separators=(",", ":"))


class TargetGroup:
    """Scrape addresses sharing one label set. Labels are fixed at creation."""

    __slots__ = ("_labels", "targets")

    def __init__(self, labels: Mapping[str, str], targets: list[str] | None = None):
        self._labels = MappingProxyType(dict(labels))
        self.targets: list[str] = list(targets or [])

    @property
    def labels(self) -> Mapping[str, str]:
        return self._labels

    def add_target(self, address: str) -> bool:
        """Append address unless already present. Returns True if it was added."""
        if address in self.targets:
            return False
        self.targets.append(address)
        return True

    def to_dict(self) -> dict[str, object]:
        return {"targets": list(self.targets), "labels": dict(self._labels)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TargetGroup):
            return NotImplemented
        return self.targets == other.targets and dict(self._labels) == dict(other._labels)

    def __repr__(self) -> str:
        return f"TargetGroup(labels={dict(self._labels)!r}, targets={self.targets!r})"
