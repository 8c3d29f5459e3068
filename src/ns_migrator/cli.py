"""
Command-line entry points for the ns-migrator subcommands.

  serve     Run the HTTP API with uvicorn
  migrate   Migrate one instance into another namespace
  clone     Clone a namespace (optionally deep) or a single instance
  unfreeze  Make a frozen source instance writable again
  jobs      List recent jobs or show one job

Each subcommand parses its own arguments, loads config/config.yaml, and
runs exactly one operation against the configured metadata store.  Exit
status is 0 on success and 1 on any reported failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .config import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, load_config
from .exceptions import MoverError
from .logging_setup import setup_logging
from .models import Job
from .services import Services, build_services
from .validation import build_migration_request

__all__ = ["serve_main", "migrate_main", "clone_main", "unfreeze_main", "jobs_main"]

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Shared helpers
# ------------------------------------------------------------------

def _base_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help=f"Path to YAML config file (default: {DEFAULT_CONFIG_PATH}, optional)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    return parser


def _load(args: argparse.Namespace, log_prefix: str) -> tuple[AppConfig, str]:
    log_path = setup_logging(verbose=args.verbose, log_prefix=log_prefix)
    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)
    return cfg, log_path


def _run(cfg: AppConfig, operation) -> dict:
    """Build services, run *operation(services)*, and always close them."""
    services = build_services(cfg)
    try:
        return operation(services)
    except MoverError as exc:
        logger.error("%s", exc.message)
        print(f"ERROR: {exc.message}", file=sys.stderr)
        sys.exit(1)
    finally:
        services.close()


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, sort_keys=False, default=str))


def _print_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        print(f"  WARNING: {warning}")


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------

def serve_main(argv: list[str] | None = None) -> None:
    parser = _base_parser("ns-migrator serve", "Run the ns-migrator HTTP API.")
    parser.add_argument("--host", default=None, help="Bind address (default: server.host)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: server.port)")
    args = parser.parse_args(argv)

    cfg, log_path = _load(args, "serve")

    import uvicorn

    from .api import create_app

    host = args.host or cfg.server.host
    port = args.port or cfg.server.port
    print(f"Listening on:     http://{host}:{port}")
    print(f"Metadata store:   {cfg.database.url}")
    print(f"Log file:         {log_path}")
    uvicorn.run(create_app(config=cfg), host=host, port=port, log_config=None)


# ------------------------------------------------------------------
# migrate
# ------------------------------------------------------------------

def migrate_main(argv: list[str] | None = None) -> None:
    parser = _base_parser(
        "ns-migrator migrate",
        "Copy an instance's storage into another namespace and apply a cutover.",
    )
    parser.add_argument("instance_id", help="Id of the source instance")
    parser.add_argument("--to", dest="target_namespace_id", required=True,
                        help="Id of the target namespace")
    parser.add_argument("--name", dest="target_instance_name", default=None,
                        help="Name in the target namespace (default: source name)")
    parser.add_argument("--cutover", choices=["copy", "copy_freeze", "copy_delete"],
                        default="copy", help="What to do with the source afterwards")
    parser.add_argument("--migrate-alarms", action="store_true",
                        help="Copy the source's scheduled alarm to the target")
    parser.add_argument("--no-verify", action="store_true",
                        help="Skip the key-count verification of the target")
    parser.add_argument("--actor", default=None, help="User recorded on the job")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    args = parser.parse_args(argv)

    cfg, log_path = _load(args, "migrate")
    try:
        request = build_migration_request(
            args.target_namespace_id,
            cutover_mode=args.cutover,
            target_instance_name=args.target_instance_name,
            migrate_alarms=args.migrate_alarms,
            run_verification=not args.no_verify,
        )
    except MoverError as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        sys.exit(1)

    data = _run(cfg, lambda s: s.migrations.migrate(args.instance_id, request, actor=args.actor).to_dict())
    if args.json:
        _print_json(data)
        return

    new_instance = data["newInstance"]
    print(f"Migrated to:      {new_instance['name']} ({new_instance['id']})")
    print(f"Cutover mode:     {request.cutover_mode.value}")
    verification = data.get("verification")
    if verification is not None:
        status = "PASSED" if verification["passed"] else "FAILED"
        print(
            f"Verification:     {status} "
            f"(source={verification['sourceKeyCount']}, target={verification['targetKeyCount']})"
        )
    print(f"Source frozen:    {data['sourceFrozen']}")
    print(f"Source deleted:   {data['sourceDeleted']}")
    _print_warnings(data.get("warnings", []))
    print(f"Log file:         {log_path}")


# ------------------------------------------------------------------
# clone
# ------------------------------------------------------------------

def clone_main(argv: list[str] | None = None) -> None:
    parser = _base_parser("ns-migrator clone", "Clone a namespace or a single instance.")
    parser.add_argument("kind", choices=["namespace", "instance"], help="What to clone")
    parser.add_argument("source_id", help="Id of the source namespace or instance")
    parser.add_argument("--name", required=True, help="Name of the clone")
    parser.add_argument("--deep", action="store_true",
                        help="Namespace only: also copy every instance's storage")
    parser.add_argument("--actor", default=None, help="User recorded on the job")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    args = parser.parse_args(argv)

    if args.deep and args.kind != "namespace":
        parser.error("--deep only applies to namespace clones")

    cfg, log_path = _load(args, "clone")

    def operation(services: Services) -> dict:
        if args.kind == "namespace":
            return services.clones.clone_namespace(
                args.source_id, args.name, deep_clone=args.deep, actor=args.actor
            ).to_dict()
        return services.clones.clone_instance(args.source_id, args.name, actor=args.actor).to_dict()

    data = _run(cfg, operation)
    if args.json:
        _print_json(data)
        return

    if args.kind == "namespace":
        print(f"Cloned namespace: {data['clonedFrom']} -> {data['namespace']['name']}")
        if "instancesCloned" in data:
            print(f"Instances cloned: {data['instancesCloned']}")
    else:
        print(f"Cloned instance:  {data['clonedFrom']} -> {data['instance']['name']}")
    _print_warnings(data.get("warnings", []))
    print(f"Log file:         {log_path}")


# ------------------------------------------------------------------
# unfreeze
# ------------------------------------------------------------------

def unfreeze_main(argv: list[str] | None = None) -> None:
    parser = _base_parser("ns-migrator unfreeze", "Make a frozen instance writable again.")
    parser.add_argument("instance_id", help="Id of the frozen instance")
    parser.add_argument("--actor", default=None, help="User recorded on the job")
    args = parser.parse_args(argv)

    cfg, _ = _load(args, "unfreeze")
    _run(cfg, lambda s: s.migrations.unfreeze(args.instance_id, actor=args.actor))
    print(f"Instance {args.instance_id} unfrozen")


# ------------------------------------------------------------------
# jobs
# ------------------------------------------------------------------

def _job_line(job: Job) -> str:
    error = f"  {job.error}" if job.error else ""
    return f"  {job.id}  {job.type:<18s} {job.status.value:<10s} {job.progress:>3d}%  {job.created_at}{error}"


def jobs_main(argv: list[str] | None = None) -> None:
    parser = _base_parser("ns-migrator jobs", "List recent jobs or show one job.")
    parser.add_argument("job_id", nargs="?", default=None, help="Show a single job")
    parser.add_argument("--status", default=None, help="Only jobs with this status")
    parser.add_argument("--namespace", default=None, help="Only jobs for this namespace id")
    parser.add_argument("--limit", type=int, default=50, help="Maximum jobs to list (max 100)")
    parser.add_argument("--json", action="store_true", help="Print as JSON")
    args = parser.parse_args(argv)

    cfg, _ = _load(args, "jobs")

    if args.job_id:
        data = _run(cfg, lambda s: {"job": s.jobs.get(args.job_id).to_dict()})
        _print_json(data)
        return

    jobs = _run(cfg, lambda s: {
        "jobs": s.jobs.list(status=args.status, namespace_id=args.namespace, limit=args.limit)
    })["jobs"]
    if args.json:
        _print_json({"jobs": [job.to_dict() for job in jobs]})
        return
    if not jobs:
        print("No jobs found.")
        return
    for job in jobs:
        print(_job_line(job))
