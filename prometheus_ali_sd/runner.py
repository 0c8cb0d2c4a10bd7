"""Single discovery pass: networks -> instances -> scope -> dedup -> group -> write."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from .config import AppConfig
from .discovery import InventorySource
from .discovery.deduplicator import Deduplicator
from .discovery.label_grouper import LabelGrouper
from .discovery.models import Instance, NameConflict, TargetGroup
from .discovery.network_directory import NetworkDirectory
from .discovery.pagination import collect_pages
from .discovery.scope_filter import ScopeFilter, ScopeRule
from .file_sd.encoder import DocumentEncoder

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one pass."""

    groups: list[TargetGroup] = field(default_factory=list)
    conflicts: list[NameConflict] = field(default_factory=list)
    total_instances: int = 0
    admitted: int = 0
    output_path: Path | None = None

    @property
    def rejected(self) -> int:
        return self.total_instances - self.admitted


class Runner:
    """Runs the discovery pipeline once with an immutable configuration."""

    def __init__(self, config: AppConfig, source: InventorySource | None = None):
        self._config = config
        self._source = source if source is not None else self._build_source(config)
        self._scope_filter = ScopeFilter(ScopeRule.from_config(config.scope))
        self._encoder = DocumentEncoder(config.output)

    @staticmethod
    def _build_source(config: AppConfig) -> InventorySource:
        from .discovery.alicloud_client import AlicloudClient  # lazy import keeps the SDK out of tests
        return AlicloudClient(config.alicloud)

    def discover(self) -> RunResult:
        """Fetch the inventory and build target groups without writing anything."""
        inventory = self._config.inventory
        networks = NetworkDirectory.build(self._source, inventory.page_size)

        def fetch_instances(page_number: int, page_size: int) -> tuple[list[Instance], int]:
            return self._source.list_instances(
                page_number, page_size, tag_filters=inventory.tags, name_filter=inventory.instance_name,
            )

        instances = collect_pages(fetch_instances, inventory.page_size)
        logger.info("Discovered %d instances", len(instances), extra={"total_instances": len(instances)})

        admitted = self._scope_filter.apply(instances)
        deduplicator = Deduplicator()
        unique = deduplicator.apply(admitted)

        grouper = LabelGrouper(self._config.targets, networks)
        groups = grouper.add_all(unique)

        return RunResult(
            groups=groups,
            conflicts=deduplicator.conflicts,
            total_instances=len(instances),
            admitted=len(admitted),
        )

    def run_once(self) -> RunResult:
        """Discover, then replace the output document. Any fatal error leaves the old file untouched."""
        start = time.monotonic()
        result = self.discover()
        result.output_path = self._encoder.write(result.groups)

        logger.info(
            "Run complete: %d instances, %d admitted, %d rejected, %d conflicts, %d groups",
            result.total_instances, result.admitted, result.rejected, len(result.conflicts), len(result.groups),
            extra={
                "total_instances": result.total_instances,
                "admitted": result.admitted,
                "rejected": result.rejected,
                "conflicts": len(result.conflicts),
                "groups": len(result.groups),
                "elapsed_seconds": round(time.monotonic() - start, 2),
            },
        )
        return result
