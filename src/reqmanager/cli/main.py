"""Request manager command-line entry point.

Usage::

    reqmanager -c /etc/reqmanager/config.yaml
    reqmanager -c config.yaml --validate-only
    reqmanager -c config.yaml run --dev
    reqmanager -c config.yaml db status
    reqmanager -c config.yaml db migrate
    reqmanager -c config.yaml reconcile default/my-cert
    reqmanager -c config.yaml inspect certificate default/my-cert
    python -m reqmanager -c config.yaml
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)

# subcommand -> (module, handler); modules are imported on dispatch
_HANDLERS = {
    "run": ("reqmanager.cli.commands.run", "run_controller"),
    "db": ("reqmanager.cli.commands.db", "run_db"),
    "reconcile": ("reqmanager.cli.commands.reconcile", "run_reconcile"),
    "inspect": ("reqmanager.cli.commands.inspect", "run_inspect"),
}


def _get_version() -> str:
    from reqmanager import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reqmanager",
        description="Keeps exactly one valid CertificateRequest per issuing Certificate",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="verbose logging and full tracebacks",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="check the configuration, print a summary and exit",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="serve with Flask's development server instead of gunicorn",
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {_get_version()}")

    commands = parser.add_subparsers(dest="command")

    run = commands.add_parser("run", help="run the controller (default)")
    run.add_argument("--dev", action="store_true", default=argparse.SUPPRESS)

    db = commands.add_parser("db", help="database management")
    db_commands = db.add_subparsers(dest="db_command")
    db_commands.add_parser("status", help="check connectivity and schema")
    db_commands.add_parser("migrate", help="apply the bundled schema")

    reconcile = commands.add_parser(
        "reconcile",
        help="run one reconcile pass for a Certificate and print the outcome",
    )
    reconcile.add_argument("key", help="Certificate key, namespace/name")

    inspect = commands.add_parser("inspect", help="inspect stored resources")
    inspect_commands = inspect.add_subparsers(dest="inspect_command")
    certificate = inspect_commands.add_parser(
        "certificate",
        help="show a Certificate and how each of its requests classifies",
    )
    certificate.add_argument("key", help="Certificate key, namespace/name")

    return parser


def _fail(message: str) -> None:
    sys.stderr.write(f"reqmanager: error: {message}\n")
    sys.exit(1)


def _load_config(path: Path, *, debug: bool):
    """Create the configuration singleton, exiting on any load error."""
    from reqmanager.config import ConfigValidationError, ReqManagerConfig

    try:
        return ReqManagerConfig(config_file=str(path), schema_file="bundled")
    except ConfigValidationError as exc:
        _fail(str(exc))
    except Exception as exc:
        if debug:
            raise
        _fail(f"failed to load configuration: {exc}")


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, load the configuration and dispatch."""
    args = _build_parser().parse_args(argv)

    path = Path(args.config)
    if not path.is_file():
        _fail(f"configuration file not found: {path}")

    # stderr only until configure_logging() takes over
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    config = _load_config(path, debug=args.debug)

    from reqmanager.logging import configure_logging

    configure_logging(config.settings.logging)

    command = args.command or "run"
    if args.validate_only or command == "run":
        _print_settings_summary(config)
    if args.validate_only:
        sys.exit(0)

    module_name, handler_name = _HANDLERS[command]
    handler = getattr(importlib.import_module(module_name), handler_name)
    handler(config, args)


def _print_settings_summary(config) -> None:
    s = config.settings
    db = s.database
    ctl = s.controller
    sys.stdout.write(
        f"Configuration OK: {config.data.get('_source', '?')}\n"
        f"  database:   {db.user}@{db.host}:{db.port}/{db.database}\n"
        f"  server:     {s.server.bind}:{s.server.port} ({s.server.workers} workers)\n"
        f"  controller: {ctl.workers} workers, resync {ctl.resync_seconds}s,"
        f" namespaces: {', '.join(ctl.namespaces) or 'all'}\n"
        f"  logging:    {s.logging.level} ({s.logging.format})\n",
    )
