from __future__ import annotations

"""Command line helper for the ClickHouse log table.

``ddl`` prints the CREATE TABLE statement for a configuration; ``init`` runs
it against the server. Options default to the ``LOGHOUSE_*`` environment.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import FieldSpec, SinkSettings
from .errors import LoghouseError
from .schema import SchemaInitializer


def _parse_field(value: str) -> FieldSpec:
    """Parse ``NAME[:TYPE[:LAYOUT]]``."""
    parts = value.split(":", 2)
    name = parts[0]
    column_type = parts[1] if len(parts) > 1 else None
    layout = parts[2] if len(parts) > 2 else ""
    try:
        return FieldSpec(name=name, column_type=column_type, layout=layout)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid field {value!r}: {exc}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loghouse", description="ClickHouse log table helper")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("ddl", "Print the CREATE TABLE statement"), ("init", "Create the table if absent")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--connection-string", help="key=value;... (must include Database)")
        cmd.add_argument("--table", help="Destination table name")
        cmd.add_argument("--cluster", help="Cluster for ON CLUSTER")
        cmd.add_argument(
            "--field",
            action="append",
            type=_parse_field,
            default=[],
            metavar="NAME[:TYPE[:LAYOUT]]",
            help="Extra column; repeatable",
        )
    return parser


def _settings_from_args(args: argparse.Namespace) -> SinkSettings:
    overrides = {}
    if args.connection_string is not None:
        overrides["connection_string"] = args.connection_string
    if args.table is not None:
        overrides["table_name"] = args.table
    if args.cluster is not None:
        overrides["cluster"] = args.cluster
    if args.field:
        overrides["fields"] = args.field
    return SinkSettings(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    try:
        initializer = SchemaInitializer.from_settings(_settings_from_args(args))
        if args.command == "ddl":
            print(initializer.create_table_query())
        else:
            print(initializer.initialize())
    except (LoghouseError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
