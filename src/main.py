"""Entry point for the ledger reconciler: run the API server or a one-shot reconciliation."""

import argparse
import json
import sys
from typing import Any, List, Optional

from config import Settings
from dataset_loader import parse_upload
from errors import ConfigError, ReconError
from exporter import ALL, Exporter
from logging_setup import configure_logging, get_logger
from models import ReconMode
from recon_engine import reconcile

logger = get_logger("recon.main")


def _json_arg(raw: Optional[str], name: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"--{name} is not valid JSON: {e}") from e


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="recon", description="Reconcile two CSV ledgers")
    parser.add_argument("--log-level", default=None, help="Logging level (default: RECON_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (default: RECON_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 8080)")
    serve.add_argument("--debug", action="store_true", default=False)

    run = sub.add_parser("reconcile", help="Reconcile two CSV files and print the summary")
    run.add_argument("file_a", help="Path to dataset A")
    run.add_argument("file_b", help="Path to dataset B")
    run.add_argument("--mode", choices=[m.value for m in ReconMode], default=ReconMode.AUTO.value)
    run.add_argument("--mapping", default=None, help='Field mapping JSON, e.g. {"id": {"a": "ref"}}')
    run.add_argument("--rules", default=None, help="Rules JSON (custom mode)")
    run.add_argument("--filter", default=ALL, help="Status to export (default: ALL)")
    run.add_argument("--output", default=None, help="Write the exported CSV to this path")
    return parser.parse_args(argv)


def run_reconcile(args: argparse.Namespace) -> int:
    mapping = _json_arg(args.mapping, "mapping")
    rules = _json_arg(args.rules, "rules")

    dataset_a, dataset_b, meta = parse_upload(args.file_a, args.file_b)
    outcome = reconcile(dataset_a.rows, dataset_b.rows, mapping=mapping, mode=args.mode, rules=rules)

    report = {
        "summary": outcome.summary.to_dict(),
        "meta": {side: {"rowCount": p.row_count, "detected": p.detected} for side, p in meta.items()},
    }
    if args.output:
        report["output"] = Exporter(outcome).write_csv(args.output, args.filter)

    print(json.dumps(report, indent=2, sort_keys=True))
    return 0


def run_server(args: argparse.Namespace) -> int:
    from web_app import create_app

    settings = Settings.from_env()
    if args.host:
        settings.host = args.host
    if args.port is not None:
        settings.port = args.port
    if args.debug:
        settings.debug = True

    app = create_app(settings)
    logger.info("serving on http://%s:%d", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port, debug=settings.debug)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI; returns the process exit code."""
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        if args.command == "serve":
            return run_server(args)
        return run_reconcile(args)
    except (ReconError, ConfigError, argparse.ArgumentTypeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
