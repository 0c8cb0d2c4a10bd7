"""Cloud discovery package — inventory source Protocol and public exports."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import Instance, Network


@runtime_checkable
class InventorySource(Protocol):
    """Protocol that the cloud provider client must satisfy.

    Each call fetches one page and returns ``(items, total_count)``; failures
    raise :class:`~prometheus_ali_sd.exceptions.SourceError`.
    """

    def list_instances(
        self,
        page_number: int,
        page_size: int,
        tag_filters: Mapping[str, str] | None = None,
        name_filter: str = "",
    ) -> tuple[list[Instance], int]:
        ...

    def list_networks(self, page_number: int, page_size: int) -> tuple[list[Network], int]:
        ...
