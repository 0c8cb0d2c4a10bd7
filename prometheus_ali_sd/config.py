"""Frozen dataclasses for configuration and YAML loader with env-var interpolation."""

from __future__ import annotations

import os
import re
import types
import typing
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")
_LABEL_PREFIX_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

# Standard Alibaba Cloud credential variables, used when the file leaves a field empty
_ENV_FALLBACKS = {
    "region_id": "ALIBABA_CLOUD_REGION_ID",
    "access_key_id": "ALIBABA_CLOUD_ACCESS_KEY_ID",
    "access_key_secret": "ALIBABA_CLOUD_ACCESS_KEY_SECRET",
}

MAX_PAGE_SIZE = 50


def _interpolate_env(value: str) -> str:
    """Replace ${ENV_VAR} placeholders with environment variable values."""

    def _replace(match: re.Match) -> str:
        env_key = match.group(1)
        env_val = os.environ.get(env_key)
        if env_val is None:
            raise ConfigError(f"Environment variable '{env_key}' is not set")
        return env_val

    return _ENV_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: Any) -> Any:
    """Recursively interpolate env vars in strings throughout a nested structure."""
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v) for v in obj]
    return obj


@dataclass(frozen=True)
class AlicloudConfig:
    region_id: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""


@dataclass(frozen=True)
class InventoryConfig:
    page_size: int = 10
    instance_name: str = ""  # exact-name filter applied by the provider
    tags: dict[str, str] = field(default_factory=dict)  # provider-side tag filters


@dataclass(frozen=True)
class ScopeConfig:
    include_name_patterns: tuple[str, ...] = ()
    exclude_tag_key_patterns: tuple[str, ...] = ()
    exclude_tag_value_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class TargetsConfig:
    label_prefix: str = ""
    domain_suffix: str = "ali-netbase.com"
    exporter_port: int = 9100
    exporter_name: str = "node_exporter"


@dataclass(frozen=True)
class OutputConfig:
    path: str = "/tmp/promsd.json"
    mode: int = 0o640


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"  # "json" or "text"
    file: str = ""  # empty = stderr


@dataclass(frozen=True)
class AppConfig:
    alicloud: AlicloudConfig = field(default_factory=AlicloudConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    scope: ScopeConfig = field(default_factory=ScopeConfig)
    targets: TargetsConfig = field(default_factory=TargetsConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _get_dataclass_type(ft: Any) -> type | None:
    """Return the underlying dataclass type from a type annotation (handles Optional/X|None)."""
    if isinstance(ft, type) and hasattr(ft, "__dataclass_fields__"):
        return ft
    if isinstance(ft, types.UnionType):
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    origin = getattr(ft, "__origin__", None)
    if origin is typing.Union:
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    return None


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    if not isinstance(data, dict):
        return data
    field_types = {f.name: f.type for f in cls.__dataclass_fields__.values()}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in field_types:
            continue
        ft = field_types[key]
        # Resolve string annotations to actual types in the module scope
        if isinstance(ft, str):
            ft = eval(ft, globals(), {cls.__name__: cls})  # noqa: S307
        dc_type = _get_dataclass_type(ft)
        if dc_type is not None and isinstance(value, dict):
            kwargs[key] = _build_nested(dc_type, value)
        elif isinstance(value, list):
            kwargs[key] = tuple(value)
        else:
            kwargs[key] = value
    return cls(**kwargs)


def _merge(base: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of base with overrides merged in, section by section."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_fallbacks(raw: dict[str, Any]) -> dict[str, Any]:
    section = dict(raw.get("alicloud") or {})
    for key, env_key in _ENV_FALLBACKS.items():
        if not section.get(key) and os.environ.get(env_key):
            section[key] = os.environ[env_key]
    return {**raw, "alicloud": section}


def _parse_mode(value: Any) -> Any:
    """Accept '0640' / '640' strings as octal; YAML already reads 0640 as an octal int."""
    if isinstance(value, str):
        try:
            return int(value, 8)
        except ValueError:
            raise ConfigError(f"output.mode must be an octal permission string, got '{value}'") from None
    return value


def load_config(path: str | Path | None = None, overrides: Mapping[str, Any] | None = None) -> AppConfig:
    """Load and validate configuration from a YAML file plus command-line overrides.

    The file is optional; without one, the overrides and ALIBABA_CLOUD_* environment
    variables must supply everything required.
    """
    raw: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path) as f:
            loaded = yaml.safe_load(f)

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration file must be a YAML mapping")
        raw = _walk_and_interpolate(loaded)

    if overrides:
        raw = _merge(raw, overrides)
    raw = _apply_env_fallbacks(raw)

    output = raw.get("output")
    if isinstance(output, dict) and "mode" in output:
        raw["output"] = {**output, "mode": _parse_mode(output["mode"])}

    config = _build_nested(AppConfig, raw)
    _validate(config)
    return config


def _validate(config: AppConfig) -> None:
    """Validate configuration values."""
    if not config.alicloud.region_id:
        raise ConfigError(
            "alicloud.region_id is required (set it in the config file, with --region, "
            "or via ALIBABA_CLOUD_REGION_ID)"
        )

    if not config.alicloud.access_key_id or not config.alicloud.access_key_secret:
        raise ConfigError(
            "alicloud.access_key_id and alicloud.access_key_secret are required (set them in the "
            "config file or via ALIBABA_CLOUD_ACCESS_KEY_ID / ALIBABA_CLOUD_ACCESS_KEY_SECRET)"
        )

    page_size = config.inventory.page_size
    if not isinstance(page_size, int) or isinstance(page_size, bool) or not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ConfigError(f"inventory.page_size must be an integer between 1 and {MAX_PAGE_SIZE}")

    if not isinstance(config.inventory.tags, dict):
        raise ConfigError("inventory.tags must be a mapping of tag key to value")

    for name in ("include_name_patterns", "exclude_tag_key_patterns", "exclude_tag_value_patterns"):
        patterns = getattr(config.scope, name)
        if not isinstance(patterns, tuple) or not all(isinstance(p, str) for p in patterns):
            raise ConfigError(f"scope.{name} must be a list of strings")

    if config.targets.label_prefix and not _LABEL_PREFIX_PATTERN.match(config.targets.label_prefix):
        raise ConfigError("targets.label_prefix must be a valid Prometheus label name prefix")

    if not config.targets.domain_suffix:
        raise ConfigError("targets.domain_suffix must not be empty")

    port = config.targets.exporter_port
    if not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535:
        raise ConfigError("targets.exporter_port must be between 1 and 65535")

    if not config.output.path:
        raise ConfigError("output.path must not be empty")

    if not isinstance(config.output.mode, int) or not 0 <= config.output.mode <= 0o777:
        raise ConfigError("output.mode must be a permission mode between 0000 and 0777")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")
