from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.logging import RichHandler

from subcollection_migrator import __version__
from subcollection_migrator.batch import RetryPolicy
from subcollection_migrator.config import (
    DEFAULT_CONFIG_PATH,
    MAX_BATCH_SIZE,
    RuntimeConfig,
    load_runtime_config,
    write_default_config,
)
from subcollection_migrator.db import get_store
from subcollection_migrator.exceptions import ConfigurationError, ManifestError
from subcollection_migrator.manifest import RunManifest, load_manifest, write_manifest
from subcollection_migrator.report import EXIT_FATAL, RunMode, RunReport
from subcollection_migrator.reporting import (
    console,
    format_targets,
    print_json,
    print_run_summary,
    print_targets_table,
    print_verification_table,
)
from subcollection_migrator.source import run_cleanup, run_migration, run_verification
from subcollection_migrator.targets import DEFAULT_TARGETS, MigrationTarget, select_targets

TARGETS: List[MigrationTarget] = DEFAULT_TARGETS

MAPPINGS_HELP = "Configured mappings:\n\n" + "\n\n".join(format_targets(TARGETS).splitlines())

APP_HELP = (
    "Move embedded arrays into subcollections, then remove the arrays once verified.\n\n"
    "Every command is a dry run unless --execute is given. Run `migrate`, inspect the data, "
    "then run `cleanup`.\n\n" + MAPPINGS_HELP
)

OUTPUT_FORMATS = ("table", "json")

app = typer.Typer(
    no_args_is_help=True,
    help=APP_HELP,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def _fatal(message: str) -> typer.Exit:
    console.print(f"[red]❌ {message}[/red]")
    return typer.Exit(code=EXIT_FATAL)


def _prepare(
    config_path: Optional[Path],
    target_keys: Optional[List[str]],
    verbose: bool,
    output: str = "table",
) -> Tuple[RuntimeConfig, List[MigrationTarget]]:
    _configure_logging(verbose)
    if output not in OUTPUT_FORMATS:
        raise _fatal(f"Unknown output format {output!r}, expected one of: {', '.join(OUTPUT_FORMATS)}")
    try:
        config = load_runtime_config(config_path or DEFAULT_CONFIG_PATH)
        selected = select_targets(TARGETS, target_keys)
    except ConfigurationError as e:
        raise _fatal(str(e))
    return config, selected


def _retry_policy(config: RuntimeConfig) -> RetryPolicy:
    return RetryPolicy(attempts=config.retry_attempts, wait_seconds=config.retry_wait_seconds)


def _mode(execute: bool) -> RunMode:
    return RunMode.EXECUTE if execute else RunMode.DRY_RUN


def _banner(title: str, report: RunReport) -> None:
    suffix = " (DRY RUN)" if report.dry_run else ""
    console.rule(f"{title}{suffix}")


def _finish(report: RunReport, output: str) -> None:
    if output == "json":
        print_json(report.summary())
    else:
        print_run_summary(report)


@app.command()
def version() -> None:
    console.print(f"submigrate v{__version__}")


@app.command()
def init(path: Optional[Path] = typer.Option(None, "--path", help="Path for config file")) -> None:
    """Write a starter .submigrate.yml."""
    config_path = path or DEFAULT_CONFIG_PATH
    if config_path.exists():
        console.print(f"Config already exists at {config_path}")
        raise typer.Exit(code=0)

    write_default_config(config_path)
    console.print(f"Created config at {config_path}")


@app.command("targets")
def list_targets() -> None:
    """Show the configured migration mappings."""
    print_targets_table(TARGETS)


@app.command(epilog=MAPPINGS_HELP)
def migrate(
    execute: bool = typer.Option(False, "--execute", help="Write to the database (default is a dry run)"),
    target: Optional[List[str]] = typer.Option(None, "--target", "-t", help="Only these targets (collection or collection.field)"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", min=1, max=MAX_BATCH_SIZE, help="Operations per commit"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file"),
    output: str = typer.Option("table", "--output", help="Summary format: table or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Copy embedded-array elements into subcollections and write parent counts."""
    config, selected = _prepare(config_path, target, verbose, output)
    report = RunReport(mode=_mode(execute), phase="migrate")
    _banner("Subcollection Migration", report)

    async def _run() -> None:
        store = get_store(config)
        try:
            await run_migration(
                store,
                selected,
                report,
                max_batch_size=batch_size or config.max_batch_size,
                retry=_retry_policy(config),
            )
        finally:
            await store.close()

    try:
        asyncio.run(_run())
    except ConfigurationError as e:
        raise _fatal(str(e))

    if not report.dry_run:
        try:
            manifest = load_manifest(config.manifest_path)
            manifest.record_migration(selected, report)
            write_manifest(config.manifest_path, manifest)
        except ManifestError as e:
            report.add_error(str(e))

    _finish(report, output)
    if output == "table" and not report.dry_run and not report.issues:
        console.print("Next: verify the data, then run `submigrate cleanup`.")
    raise typer.Exit(code=report.exit_code)


@app.command(epilog=MAPPINGS_HELP)
def cleanup(
    execute: bool = typer.Option(False, "--execute", help="Remove fields (default is a dry run)"),
    target: Optional[List[str]] = typer.Option(None, "--target", "-t", help="Only these targets (collection or collection.field)"),
    ignore_manifest: bool = typer.Option(False, "--ignore-manifest", help="Skip the run manifest checks and rely on verification alone"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", min=1, max=MAX_BATCH_SIZE, help="Operations per commit"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file"),
    output: str = typer.Option("table", "--output", help="Summary format: table or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Remove embedded arrays whose subcollection has been verified."""
    config, selected = _prepare(config_path, target, verbose, output)
    report = RunReport(mode=_mode(execute), phase="cleanup")
    _banner("Nested Array Cleanup", report)

    manifest: Optional[RunManifest] = None
    if not ignore_manifest:
        try:
            manifest = load_manifest(config.manifest_path)
        except ManifestError as e:
            raise _fatal(str(e))

    async def _run() -> None:
        store = get_store(config)
        try:
            await run_cleanup(
                store,
                selected,
                report,
                manifest=manifest,
                max_batch_size=batch_size or config.max_batch_size,
                retry=_retry_policy(config),
            )
        finally:
            await store.close()

    try:
        asyncio.run(_run())
    except ConfigurationError as e:
        raise _fatal(str(e))

    if manifest is not None and not report.dry_run:
        manifest.record_cleanup(selected, report)
        try:
            write_manifest(config.manifest_path, manifest)
        except ManifestError as e:
            report.add_error(str(e))

    _finish(report, output)
    raise typer.Exit(code=report.exit_code)


@app.command(epilog=MAPPINGS_HELP)
def verify(
    target: Optional[List[str]] = typer.Option(None, "--target", "-t", help="Only these targets (collection or collection.field)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file"),
    output: str = typer.Option("table", "--output", help="Result format: table or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Report which embedded fields could be cleaned safely. Never writes."""
    config, selected = _prepare(config_path, target, verbose, output)
    report = RunReport(mode=RunMode.DRY_RUN, phase="verify")

    async def _run():
        store = get_store(config)
        try:
            return await run_verification(store, selected, report)
        finally:
            await store.close()

    try:
        results = asyncio.run(_run())
    except ConfigurationError as e:
        raise _fatal(str(e))

    if output == "json":
        print_json({"targets": results, "issues": [issue.message for issue in report.issues]})
        return

    print_verification_table(results)
    if report.issues:
        print_run_summary(report)
