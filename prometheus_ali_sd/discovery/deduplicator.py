"""First-seen-wins de-duplication of instances by display name."""

from __future__ import annotations

import logging

from .models import Instance, NameConflict

logger = logging.getLogger(__name__)


class Deduplicator:
    """Registry of admitted instance names.

    The first instance seen with a given name is kept; later instances with the same
    name are dropped and recorded as a NameConflict. Entries are never overwritten.
    """

    def __init__(self) -> None:
        self._registry: dict[str, str] = {}
        self._conflicts: list[NameConflict] = []

    @property
    def conflicts(self) -> list[NameConflict]:
        return list(self._conflicts)

    def __len__(self) -> int:
        return len(self._registry)

    def register(self, instance: Instance) -> bool:
        """Register the instance. Returns False if its name is already taken."""
        existing = self._registry.get(instance.name)
        if existing is None:
            self._registry[instance.name] = instance.instance_id
            return True

        conflict = NameConflict(name=instance.name, kept_id=existing, dropped_id=instance.instance_id)
        self._conflicts.append(conflict)
        logger.warning(
            "Instance id %s with name %s duplicates instance id %s, skipping",
            instance.instance_id, instance.name, existing,
            extra={"instance_id": instance.instance_id, "instance_name": instance.name},
        )
        return False

    def apply(self, instances: list[Instance]) -> list[Instance]:
        return [inst for inst in instances if self.register(inst)]
