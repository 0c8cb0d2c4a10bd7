"""Argument parsing, configuration loading, and pipeline bootstrap."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from .config import load_config
from .discovery.scope_filter import ScopeRule
from .exceptions import ConfigError, DiscoveryError
from .logging_config import configure_logging
from .runner import Runner

logger = logging.getLogger(__name__)

EPILOG = """\
example:
  prometheus-ali-sd -l ecs -t cluster=prod --notagk "acs:autoscaling.*" --notagv autoScale \\
      --logfile /tmp/promsd.log --loglevel debug -o /tmp/promsd.json
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prometheus-ali-sd",
        description="Prometheus file-based service discovery for Alibaba Cloud ECS instances",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", help="Path to the YAML configuration file")
    parser.add_argument("-r", "--region", help="Alibaba Cloud region id, e.g. cn-hangzhou")
    parser.add_argument("-o", "--output", help="File output path")
    parser.add_argument("-l", "--labelprefix", help="Label prefix for instance tags")
    parser.add_argument("-n", "--instancename", help="Filter by exact instance name (applied by the API)")
    parser.add_argument("-s", "--pagesize", type=int, help="API page size")
    parser.add_argument(
        "-t", "--tag", action="append", default=[], metavar="KEY=VALUE",
        help="Filter by instance tag, e.g. cluster=prod (repeatable, comma-separated allowed)",
    )
    parser.add_argument(
        "--regname", action="append", default=[], metavar="REGEX",
        help="Include instances whose name matches the regex (repeatable, OR-combined)",
    )
    parser.add_argument(
        "--notagk", action="append", default=[], metavar="REGEX",
        help="Exclude instances with a tag key matching the regex (repeatable)",
    )
    parser.add_argument(
        "--notagv", action="append", default=[], metavar="REGEX",
        help="Exclude instances with a tag value matching the regex (repeatable)",
    )
    parser.add_argument(
        "--loglevel", choices=["debug", "info", "warning", "error", "critical"],
        help="Log level (default info)",
    )
    parser.add_argument("--logformat", choices=["json", "text"], help="Log format (default json)")
    parser.add_argument("--logfile", help="Append logs to this file instead of stderr")
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the configuration and exit",
    )
    return parser


def parse_tag_filters(values: list[str]) -> dict[str, str]:
    """Parse ['k1=v1', 'k2=v2,k3=v3'] into {'k1': 'v1', 'k2': 'v2', 'k3': 'v3'}."""
    tags: dict[str, str] = {}
    for value in values:
        for item in value.split(","):
            key, sep, tag_value = item.partition("=")
            if not sep or not key:
                raise ConfigError(f"Invalid tag filter '{item}', expected KEY=VALUE")
            tags[key] = tag_value
    return tags


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Translate command-line flags into a config overlay; unset flags are left out."""
    overrides: dict[str, dict[str, Any]] = {}

    def _set(section: str, key: str, value: Any) -> None:
        if value is not None and value != []:
            overrides.setdefault(section, {})[key] = value

    _set("alicloud", "region_id", args.region)
    _set("inventory", "page_size", args.pagesize)
    _set("inventory", "instance_name", args.instancename)
    _set("inventory", "tags", parse_tag_filters(args.tag) or None)
    _set("scope", "include_name_patterns", args.regname)
    _set("scope", "exclude_tag_key_patterns", args.notagk)
    _set("scope", "exclude_tag_value_patterns", args.notagv)
    _set("targets", "label_prefix", args.labelprefix)
    _set("output", "path", args.output)
    _set("logging", "level", args.loglevel)
    _set("logging", "format", args.logformat)
    _set("logging", "file", args.logfile)
    return overrides


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load config (minimal logging until config is loaded)
    try:
        config = load_config(args.config, overrides_from_args(args))
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    configure_logging(config.logging)

    if args.validate:
        rule = ScopeRule.from_config(config.scope)
        if rule.errors:
            logger.warning("Configuration is valid, %d pattern(s) will never match", len(rule.errors))
        else:
            logger.info("Configuration is valid")
        return 0

    try:
        Runner(config).run_once()
    except DiscoveryError as exc:
        logger.error("Fatal error: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130

    return 0
