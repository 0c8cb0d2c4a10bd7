"""VPC id to VPC name lookup, built once per run."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from . import InventorySource
from .models import Network
from .pagination import collect_pages

logger = logging.getLogger(__name__)


class NetworkDirectory:
    """Read-only mapping of network id to network name."""

    def __init__(self, networks: Iterable[Network] = ()):
        names: dict[str, str] = {}
        for network in networks:
            names[network.network_id] = network.name
        self._names: Mapping[str, str] = MappingProxyType(names)

    @classmethod
    def build(cls, source: InventorySource, page_size: int) -> NetworkDirectory:
        """Fetch every network page from the source."""
        networks = collect_pages(source.list_networks, page_size)
        directory = cls(networks)
        logger.info("Loaded %d networks", len(directory), extra={"total_networks": len(directory)})
        return directory

    def name_of(self, network_id: str) -> str:
        """Return the network's name, or an empty string if it is unknown."""
        return self._names.get(network_id, "")

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, network_id: object) -> bool:
        return network_id in self._names
