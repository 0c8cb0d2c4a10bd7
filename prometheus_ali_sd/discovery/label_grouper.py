"""Builds Prometheus labels per instance and merges identical label sets into target groups."""

from __future__ import annotations

import logging

from ..config import TargetsConfig
from .models import Instance, TargetGroup, canonical_key
from .network_directory import NetworkDirectory

logger = logging.getLogger(__name__)

EXPORTER_LABEL = "exporter"
VPC_LABEL = "vpc"


class LabelGrouper:
    """Accumulates target groups in order of first creation.

    Instances whose label sets are exactly equal share one group; a single differing
    key or value produces a separate group.
    """

    def __init__(self, targets_config: TargetsConfig, networks: NetworkDirectory):
        self._config = targets_config
        self._networks = networks
        self._groups: list[TargetGroup] = []
        self._index: dict[str, int] = {}

    @property
    def groups(self) -> list[TargetGroup]:
        return list(self._groups)

    def address_of(self, instance: Instance) -> str:
        """Scrape address, e.g. 'web01.ali-netbase.com:9100'."""
        return f"{instance.name}.{self._config.domain_suffix}:{self._config.exporter_port}"

    def label_key(self, key: str) -> str:
        if self._config.label_prefix:
            return f"{self._config.label_prefix}_{key}"
        return key

    def labels_for(self, instance: Instance) -> dict[str, str]:
        # Later assignments win: tags may overwrite the exporter label, vpc is applied last
        labels = {EXPORTER_LABEL: self._config.exporter_name}
        for key, value in instance.tags.items():
            labels[self.label_key(key)] = value
        labels[self.label_key(VPC_LABEL)] = self._networks.name_of(instance.network_id)
        return labels

    def add(self, instance: Instance) -> TargetGroup:
        """Place the instance's address into the group matching its labels, creating it if needed."""
        labels = self.labels_for(instance)
        address = self.address_of(instance)
        key = canonical_key(labels)

        index = self._index.get(key)
        if index is None:
            group = TargetGroup(labels, [address])
            self._index[key] = len(self._groups)
            self._groups.append(group)
            logger.debug("New target group for %s with %d labels", instance.name, len(labels))
            return group

        group = self._groups[index]
        group.add_target(address)
        return group

    def add_all(self, instances: list[Instance]) -> list[TargetGroup]:
        for inst in instances:
            self.add(inst)
        return self.groups
