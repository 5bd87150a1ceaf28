"""
Command-line interface for polledconfig.

Reads settings from ``POLLEDCONFIG_*`` environment variables (see
``PolledConfigSettings.from_env``) and talks to the configured entity store.

Usage:
    polledconfig show
    polledconfig show --property foo:string --property foo.bar:int:0
    polledconfig set foo=bar foo.bar=7 baz=true
    polledconfig set build.time=2024-01-01T00:00:00Z --type build.time=timestamp
    polledconfig --memory set foo.bar=7   # dry run: no Datastore settings needed
"""

import argparse
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

from polledconfig.bootstrap import DynamicConfiguration, build_entity_store
from polledconfig.core.entity_store import EntityStore, InMemoryEntityStore
from polledconfig.core.logger import configure_root_logger, get_logger
from polledconfig.core.values import ValueKind, format_timestamp, micros_to_datetime, timestamp_to_micros
from polledconfig.models.settings import PolledConfigSettings

logger = get_logger(__name__)

_TYPE_NAMES: Dict[str, ValueKind] = {
    "bool": ValueKind.BOOLEAN,
    "boolean": ValueKind.BOOLEAN,
    "int": ValueKind.INTEGER,
    "integer": ValueKind.INTEGER,
    "long": ValueKind.INTEGER,
    "float": ValueKind.DOUBLE,
    "double": ValueKind.DOUBLE,
    "str": ValueKind.STRING,
    "string": ValueKind.STRING,
    "timestamp": ValueKind.TIMESTAMP,
}


def _kind_from_name(type_name: str) -> ValueKind:
    try:
        return _TYPE_NAMES[type_name.lower()]
    except KeyError:
        raise ValueError(f"Unknown property type {type_name!r}; use one of {sorted(set(_TYPE_NAMES))}") from None


def parse_value(text: str, kind: Optional[ValueKind] = None) -> Any:
    """Parse command-line text into a typed value.

    Without an explicit kind: ``true``/``false`` are booleans, then integers,
    then floats, and anything else is a string.
    """
    if kind is ValueKind.BOOLEAN:
        lowered = text.lower()
        if lowered not in ("true", "false"):
            raise ValueError(f"Invalid boolean {text!r}")
        return lowered == "true"
    if kind is ValueKind.INTEGER:
        return int(text)
    if kind is ValueKind.DOUBLE:
        return float(text)
    if kind is ValueKind.STRING:
        return text
    if kind is ValueKind.TIMESTAMP:
        return micros_to_datetime(timestamp_to_micros(text))

    if text.lower() in ("true", "false"):
        return text.lower() == "true"
    for parser in (int, float):
        try:
            return parser(text)
        except ValueError:
            continue
    return text


def _split_assignment(item: str) -> Tuple[str, str]:
    name, sep, value = item.partition("=")
    if not sep or not name:
        raise ValueError(f"Expected NAME=VALUE, got {item!r}")
    return name, value


def _parse_property_spec(item: str) -> Tuple[str, ValueKind, Optional[str]]:
    # NAME:TYPE[:DEFAULT]; names may contain dots but not colons
    parts = item.split(":", 2)
    if len(parts) < 2 or not parts[0]:
        raise ValueError(f"Expected NAME:TYPE[:DEFAULT], got {item!r}")
    default = parts[2] if len(parts) == 3 else None
    return parts[0], _kind_from_name(parts[1]), default


def _render(kind: ValueKind, value: Any) -> str:
    if value is None:
        return "<unset>"
    if kind is ValueKind.TIMESTAMP:
        return format_timestamp(value)
    if kind is ValueKind.BOOLEAN:
        return "true" if value else "false"
    return str(value)


def _open(settings: PolledConfigSettings, store: Optional[EntityStore]) -> DynamicConfiguration:
    if store is None:
        return DynamicConfiguration(build_entity_store(settings), scheduler_config=settings.scheduler)
    return DynamicConfiguration(store, scheduler_config=settings.scheduler, owns_store=False)


def show(
    settings: PolledConfigSettings,
    property_specs: Sequence[str] = (),
    *,
    store: Optional[EntityStore] = None,
) -> List[str]:
    """Poll once and return printable ``name = value`` lines.

    Uses ``store`` when given, otherwise the Datastore named by ``settings``.
    """
    specs = [_parse_property_spec(p) for p in property_specs]
    config = _open(settings, store)
    try:
        result = config.scheduler.poll_once()
        if result is None or not result.ok:
            cause = result.cause if result is not None else "scheduler stopped"
            raise RuntimeError(f"Configuration poll failed: {cause}")

        lines: List[str] = []
        if specs:
            for name, kind, default_text in specs:
                default = None
                if default_text is not None:
                    default = timestamp_to_micros(default_text) if kind is ValueKind.TIMESTAMP else parse_value(default_text, kind)
                value = config.registry.read(name, kind, default)
                lines.append(f"{name} = {_render(kind, value)}")
        else:
            for name, typed in sorted(config.registry.snapshot().items()):
                lines.append(f"{name} = {_render(typed.kind, typed.value)} ({typed.kind.value})")
        return lines
    finally:
        config.close()


def set_values(
    settings: PolledConfigSettings,
    assignments: Sequence[str],
    type_overrides: Sequence[str] = (),
    *,
    store: Optional[EntityStore] = None,
) -> Dict[str, Any]:
    """Write ``NAME=VALUE`` overrides back to the configuration entity."""
    kinds = {}
    for item in type_overrides:
        name, type_name = _split_assignment(item)
        kinds[name] = _kind_from_name(type_name)

    values: Dict[str, Any] = {}
    for item in assignments:
        name, text = _split_assignment(item)
        values[name] = parse_value(text, kinds.get(name))

    config = _open(settings, store)
    try:
        identity = config.source.write_back(values)
        logger.info(f"Wrote {len(values)} propert(ies) to {identity}")
        return values
    finally:
        config.close()


def cli(argv: Optional[Sequence[str]] = None) -> None:
    """
    Command-line interface for polledconfig.

    Supports subcommands:
    - show: Poll the configuration entity once and print its values
    - set: Write overrides back to the configuration entity
    """
    parser = argparse.ArgumentParser(
        prog="polledconfig",
        description="Inspect and update configuration stored in a Datastore entity",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use a throwaway in-memory entity store instead of Datastore (dry run)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    show_parser = subparsers.add_parser("show", help="Poll once and print configuration values")
    show_parser.add_argument(
        "--property",
        "-p",
        action="append",
        default=[],
        metavar="NAME:TYPE[:DEFAULT]",
        help="Typed read to perform (repeatable); prints every value when omitted",
    )

    set_parser = subparsers.add_parser("set", help="Write configuration overrides")
    set_parser.add_argument("assignments", nargs="+", metavar="NAME=VALUE")
    set_parser.add_argument(
        "--type",
        "-t",
        action="append",
        default=[],
        metavar="NAME=TYPE",
        help="Force the type of one value (bool, int, float, string, timestamp)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        settings = PolledConfigSettings.from_env()
        configure_root_logger("DEBUG" if args.verbose else settings.log_level)

        store = InMemoryEntityStore() if args.memory else None

        if args.command == "show":
            for line in show(settings, args.property, store=store):
                print(line)
        elif args.command == "set":
            set_values(settings, args.assignments, args.type, store=store)
            if store is not None:
                # Nothing persists past this process; echo what a poll would read back.
                for line in show(settings, store=store):
                    print(line)
        sys.exit(0)
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
