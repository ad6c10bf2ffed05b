"""CLI entry point.

``depsync run`` performs a full sync, ``depsync check`` only reports the
mismatches and ``depsync init`` writes a starter config.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

logger = logging.getLogger("depsync")

TOKEN_ENV = "GITHUB_TOKEN"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_TOKEN = 2


def _load(args: argparse.Namespace) -> Any:
    from depsync.config import load_config

    config = load_config(Path(args.config) if args.config else None)
    if getattr(args, "dry_run", False):
        config.dry_run = True
    return config


def cmd_run(args: argparse.Namespace) -> int:
    """Run a full sync.

    Args:
        args: Parsed arguments with config, dry_run and json options.

    Returns:
        Exit code (0 for success, 1 on a fatal error, 2 without a token).
    """
    from depsync.adapters.github import GitHubClient
    from depsync.adapters.workspace import GitWorkspaceProvider
    from depsync.errors import DepSyncError
    from depsync.sync import DepSync, format_sync_results

    token = os.environ.get(TOKEN_ENV, "")
    if not token:
        logger.error("%s environment variable is not set", TOKEN_ENV)
        return EXIT_NO_TOKEN

    try:
        config = _load(args)
        with GitHubClient(token, base_branch=config.base_branch) as client:
            sync = DepSync(config, client, GitWorkspaceProvider(token))
            report = sync.run()
    except DepSyncError as e:
        logger.error("Error running depsync: %s", e)
        return EXIT_ERROR

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print(format_sync_results(report.results))
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    """Report version mismatches without changing anything.

    Args:
        args: Parsed arguments with config and json options.

    Returns:
        Exit code (0 for success, 1 on error).
    """
    from depsync.adapters.github import GitHubClient
    from depsync.adapters.workspace import GitWorkspaceProvider
    from depsync.errors import DepSyncError
    from depsync.sync import DepSync

    token = os.environ.get(TOKEN_ENV, "")
    if not token:
        logger.warning("%s is not set, GitHub API rate limits will apply", TOKEN_ENV)

    try:
        config = _load(args)
        with GitHubClient(token, base_branch=config.base_branch) as client:
            report = DepSync(config, client, GitWorkspaceProvider(token)).detect()
    except DepSyncError as e:
        logger.error("Error checking dependencies: %s", e)
        return EXIT_ERROR

    if args.json:
        data = report.to_dict()
        data.pop("results")
        print(json.dumps(data, indent=2, default=str))
    else:
        print_mismatches_table(report.mismatches)
    return EXIT_OK


def print_mismatches_table(mismatches: dict[str, Any]) -> None:
    """Print mismatches as a rich table."""
    from rich.console import Console
    from rich.table import Table

    console = Console()

    if not mismatches:
        console.print("[green]All dependencies are up to date.[/]")
        return

    table = Table(title="Outdated Dependencies")
    table.add_column("Service", style="cyan")
    table.add_column("Dependency")
    table.add_column("Current", style="yellow")
    table.add_column("Latest", style="green")

    for svc in sorted(mismatches):
        for dep in sorted(mismatches[svc]):
            m = mismatches[svc][dep]
            table.add_row(svc, dep, m.actual, m.latest)

    console.print(table)


def cmd_init(args: argparse.Namespace) -> int:
    """Write a starter TOML config.

    Args:
        args: Parsed arguments with output and force options.

    Returns:
        Exit code (0 for success, 1 if the file exists).
    """
    from depsync.config import Config, save_config

    path = Path(args.output)
    if path.exists() and not args.force:
        print(f"{path} already exists (use --force to overwrite)", file=sys.stderr)
        return EXIT_ERROR

    config = Config(repositories=["https://github.com/your-org/your-service"])
    save_config(config, path)
    print(f"Wrote config to: {path}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the depsync CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    from depsync import __version__
    from depsync.logging_setup import configure_logging

    parser = argparse.ArgumentParser(
        prog="depsync",
        description="Keep Go module dependencies in sync across repositories",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Detect outdated dependencies and update them")
    run_parser.add_argument("-c", "--config", help="Config file (default: configs/depsync.yaml)")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be updated without changing anything",
    )
    run_parser.add_argument("--json", action="store_true", help="JSON output")

    check_parser = subparsers.add_parser("check", help="Report outdated dependencies only")
    check_parser.add_argument("-c", "--config", help="Config file (default: configs/depsync.yaml)")
    check_parser.add_argument("--json", action="store_true", help="JSON output")

    init_parser = subparsers.add_parser("init", help="Write a starter config file")
    init_parser.add_argument(
        "-o", "--output", default="depsync.toml", help="Output path (default: depsync.toml)"
    )
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "run":
        return cmd_run(args)

    if args.command == "check":
        return cmd_check(args)

    if args.command == "init":
        return cmd_init(args)

    parser.print_help()
    return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
