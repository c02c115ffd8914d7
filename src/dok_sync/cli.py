"""Command-line interface for dok-sync.

Commands:
    dok run        Run one job (``--job``) or every job in the config file
    dok validate   Check a config file without running anything
    dok list-jobs  Print the jobs defined in a config file
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from . import __version__
from .config import resolve_run_settings
from .config_loader import load_config_file
from .config_schema import (
    ConfigError,
    DokConfig,
    build_config,
    get_job_config,
    list_job_names,
)
from .connectors.registry import (
    build_source,
    build_target,
    source_kinds,
    target_kinds,
)
from .logger import StdlibSyncLogger, setup_logging
from .sync.engine import SyncEngine
from .sync.errors import SyncError
from .sync.reporter import (
    format_plan_preview,
    format_sync_report,
    plan_to_json,
    report_to_json,
)

logger = logging.getLogger(__name__)


def _load(path: str | None, *, expand_env: bool = True) -> DokConfig:
    return build_config(load_config_file(path, expand_env=expand_env))


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


def _emit_results(
    job_name: str,
    engine: SyncEngine,
    results: list,
    as_json: bool,
) -> None:
    if as_json:
        payload = {
            "job": job_name,
            "dry_run": engine.dry_run,
            "plans": {name: plan_to_json(p) for name, p in engine.plans},
            "results": [report_to_json(r) for r in results],
        }
        print(json.dumps(payload, indent=2))
        return

    if engine.dry_run:
        for name, plan in engine.plans:
            print(format_plan_preview(plan, name))
            print()
    for result in results:
        print(format_sync_report(result))
        print()


def _run_job(config: DokConfig, job_name: str, args: argparse.Namespace) -> bool:
    """Run one job. Returns True on success."""
    job = get_job_config(config, job_name)
    settings = resolve_run_settings(
        job, dry_run=args.dry_run, log_level=args.log_level
    )
    sources = [build_source(spec) for spec in job.sources]
    targets = [build_target(spec) for spec in job.targets]

    engine = SyncEngine(
        sources,
        targets,
        dry_run=settings.dry_run,
        batch_size=settings.batch_size,
        batch_delay=settings.batch_delay,
        logger=StdlibSyncLogger("dok_sync.sync"),
        job_name=job_name,
    )
    logger.info("Running job '%s'", job_name)

    try:
        results = asyncio.run(engine.run())
    except SyncError as exc:
        logger.error("Job '%s' failed: %s", job_name, exc)
        if engine.results:
            _emit_results(job_name, engine, engine.results, args.json)
        return False

    _emit_results(job_name, engine, results, args.json)
    return True


def cmd_run(args: argparse.Namespace) -> int:
    try:
        config = _load(args.config)
        base = resolve_run_settings(log_level=args.log_level)
    except (ConfigError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        level=base.log_level or config.logging.level,
        log_file=args.log_file or config.logging.file,
        log_format=config.logging.format,
    )

    if args.job:
        job_names = [args.job]
    else:
        job_names = list_job_names(config)

    failed: list[str] = []
    for job_name in job_names:
        try:
            ok = _run_job(config, job_name, args)
        except (ConfigError, SyncError, ValueError) as exc:
            logger.error("Job '%s' failed: %s", job_name, exc)
            ok = False
        if not ok:
            failed.append(job_name)

    if failed:
        if len(job_names) > 1:
            logger.error(
                "%d of %d jobs failed: %s",
                len(failed),
                len(job_names),
                ", ".join(failed),
            )
        return 1
    return 0


# ---------------------------------------------------------------------------
# validate / list-jobs
# ---------------------------------------------------------------------------


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        # Keep ${VAR} references verbatim so secrets need not be set
        config = _load(args.config, expand_env=False)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    issues: list[str] = []
    known_sources = source_kinds()
    known_targets = target_kinds()
    for job_name, job in config.jobs.items():
        for i, spec in enumerate(job.sources):
            if spec.provider not in known_sources:
                issues.append(
                    f"jobs.{job_name}.sources.{i}.provider: "
                    f"unknown source provider '{spec.provider}'"
                )
        for i, spec in enumerate(job.targets):
            if spec.provider not in known_targets:
                issues.append(
                    f"jobs.{job_name}.targets.{i}.provider: "
                    f"unknown target provider '{spec.provider}'"
                )

    if issues:
        print("Configuration is invalid:", file=sys.stderr)
        for issue in issues:
            print(f"  - {issue}", file=sys.stderr)
        return 1

    print("Configuration is valid")
    return 0


def cmd_list_jobs(args: argparse.Namespace) -> int:
    try:
        config = _load(args.config, expand_env=False)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for job_name in list_job_names(config):
        job = config.jobs[job_name]
        sources = ", ".join(s.provider for s in job.sources)
        targets = ", ".join(t.provider for t in job.targets)
        print(f"{job_name}: {sources} -> {targets}")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dok",
        description="dok - synchronise documents from sources into knowledge stores",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run every job in dok.yml
  dok run -c dok.yml

  # Preview one job without touching any target
  dok run -c dok.yml --job notes --dry-run

  # Machine-readable report
  dok run -c dok.yml --json

Environment variables (DOK_DRY_RUN, DOK_BATCH_SIZE, DOK_BATCH_DELAY_MS,
DOK_LOG_LEVEL) are read from the environment and from a .env file.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"dok version {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_config_arg(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "-c",
            "--config",
            help="Config file path (default: DOK_CONFIG, ./dok.yml, "
            "./.dok/config.yml or ~/.config/dok/config.yml)",
        )

    run_parser = subparsers.add_parser("run", help="Run sync jobs")
    add_config_arg(run_parser)
    run_parser.add_argument(
        "-j", "--job", help="Run only this job (default: all jobs)"
    )
    run_parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Plan and log only; no changes are made",
    )
    run_parser.add_argument(
        "-l",
        "--log-level",
        help="Log level (DEBUG, INFO, WARN, ERROR)",
    )
    run_parser.add_argument("--log-file", help="Also write logs to this file")
    run_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run report as JSON",
    )
    run_parser.set_defaults(func=cmd_run)

    validate_parser = subparsers.add_parser(
        "validate", help="Validate a config file"
    )
    add_config_arg(validate_parser)
    validate_parser.set_defaults(func=cmd_validate)

    list_parser = subparsers.add_parser(
        "list-jobs", help="List the jobs of a config file"
    )
    add_config_arg(list_parser)
    list_parser.set_defaults(func=cmd_list_jobs)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv* and dispatch to a command. Returns the exit code."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    return args.func(args)


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
