"""Regex-based include/exclude rules deciding which instances are in scope."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from ..config import ScopeConfig
from ..exceptions import PatternError
from .models import Instance

logger = logging.getLogger(__name__)


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a scope pattern, raising PatternError if it is not a valid regex."""
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise PatternError(f"Invalid pattern {pattern!r}: {exc}", pattern) from exc


def _compile_all(patterns: Iterable[str], kind: str, errors: list[PatternError]) -> tuple[re.Pattern[str], ...]:
    """Compile patterns, dropping (and reporting) the ones that fail so they never match."""
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(compile_pattern(pattern))
        except PatternError as exc:
            logger.warning("Ignoring %s pattern: %s", kind, exc, extra={"pattern": pattern})
            errors.append(exc)
    return tuple(compiled)


@dataclass(frozen=True)
class ScopeRule:
    """Compiled scope patterns.

    ``has_include_patterns`` records whether any include pattern was *configured*, so
    that a rule whose include patterns all failed to compile still rejects everything.
    """

    include_name: tuple[re.Pattern[str], ...] = ()
    exclude_tag_key: tuple[re.Pattern[str], ...] = ()
    exclude_tag_value: tuple[re.Pattern[str], ...] = ()
    has_include_patterns: bool = False
    errors: tuple[PatternError, ...] = ()

    @classmethod
    def from_config(cls, config: ScopeConfig) -> ScopeRule:
        errors: list[PatternError] = []
        return cls(
            include_name=_compile_all(config.include_name_patterns, "include-name", errors),
            exclude_tag_key=_compile_all(config.exclude_tag_key_patterns, "exclude-tag-key", errors),
            exclude_tag_value=_compile_all(config.exclude_tag_value_patterns, "exclude-tag-value", errors),
            has_include_patterns=bool(config.include_name_patterns),
            errors=tuple(errors),
        )


def admit(instance: Instance, rule: ScopeRule) -> bool:
    """Return True if the instance is in scope.

    The name must match at least one include pattern (if any are configured), and no
    tag key or tag value may match an exclude pattern. Patterns use ``re.search``
    semantics, so an unanchored pattern matches anywhere in the string.
    """
    if rule.has_include_patterns:
        included = next((p for p in rule.include_name if p.search(instance.name)), None)
        if included is None:
            logger.debug("Instance %s matches no name pattern", instance.name)
            return False
        logger.debug("Instance %s is included by name rule: %s", instance.name, included.pattern)

    for pattern in rule.exclude_tag_key:
        for key in instance.tags:
            if pattern.search(key):
                logger.debug("Instance %s is excluded by tag key rule: %s", instance.name, pattern.pattern)
                return False

    for pattern in rule.exclude_tag_value:
        for value in instance.tags.values():
            if pattern.search(value):
                logger.debug("Instance %s is excluded by tag value rule: %s", instance.name, pattern.pattern)
                return False

    return True


class ScopeFilter:
    """Applies a ScopeRule to a list of instances."""

    def __init__(self, rule: ScopeRule):
        self._rule = rule

    def apply(self, instances: list[Instance]) -> list[Instance]:
        before = len(instances)
        result = [inst for inst in instances if admit(inst, self._rule)]
        filtered = before - len(result)
        if filtered:
            logger.info("Scope filter removed %d of %d instances", filtered, before)
        return result
