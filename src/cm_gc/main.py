"""cm-gc command line entry point.

Removes stale versioned ConfigMaps that accumulate when Helm generates
immutable ConfigMaps named ``{app}-config-{hash8}`` for Argo Rollouts.
"""
import asyncio
from typing import Annotated, Optional

import typer
from kubernetes.config.config_exception import ConfigException
from loguru import logger

from cm_gc import __version__
from cm_gc.core.gc_engine import GarbageCollector
from cm_gc.utils.config import ConfigError, load_config
from cm_gc.utils.helpers import initialize_kubernetes
from cm_gc.utils.logging_config import configure_logger

EXIT_INIT_ERROR = 1
EXIT_GC_FAILED = 2

app = typer.Typer(
    name="cm-gc",
    help="ConfigMap garbage collector for Argo Rollouts Helm checksum versioning.",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"cm-gc version {__version__}")
        raise typer.Exit()


@app.command()
def run(
    namespace: Annotated[
        Optional[str],
        typer.Option(help="Comma-separated target namespaces (env: NAMESPACE, default: default)."),
    ] = None,
    keep_last: Annotated[
        Optional[int],
        typer.Option(help="Keep N newest ConfigMaps regardless of age (env: KEEP_LAST, default: 5)."),
    ] = None,
    keep_days: Annotated[
        Optional[int],
        typer.Option(help="Keep ConfigMaps newer than N days (env: KEEP_DAYS, default: 7)."),
    ] = None,
    keep_last_from_rollout: Annotated[
        Optional[bool],
        typer.Option(
            "--keep-last-from-rollout/--no-keep-last-from-rollout",
            help="Use revisionHistoryLimit + 2 of each Rollout as keep-last (env: KEEP_LAST_FROM_ROLLOUT).",
        ),
    ] = None,
    dry_run: Annotated[
        Optional[bool],
        typer.Option(
            "--dry-run/--no-dry-run",
            help="Log actions without deleting (env: DRY_RUN, default: true).",
        ),
    ] = None,
    match_mode: Annotated[
        Optional[str],
        typer.Option(help="Checksum matching: substring|suffix (env: MATCH_MODE, default: substring)."),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option(help="Log level: trace|debug|info|warn|error (env: LOG_LEVEL, default: info)."),
    ] = None,
    log_format: Annotated[
        Optional[str],
        typer.Option(help="Log format: text|json (env: LOG_FORMAT, default: text)."),
    ] = None,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-V", callback=version_callback, is_eager=True, help="Show version and exit."),
    ] = None,
) -> None:
    """Delete versioned ConfigMaps no longer referenced by any Rollout ReplicaSet.

    Dry-run is enabled by default: pass --no-dry-run (or DRY_RUN=false) to
    actually delete. Exit code 2 means at least one namespace failed.
    """
    try:
        cfg = load_config().with_overrides(
            namespaces=namespace,
            keep_last=keep_last,
            keep_days=keep_days,
            keep_last_from_rollout=keep_last_from_rollout,
            dry_run=dry_run,
            match_mode=match_mode,
            log_level=log_level,
            log_format=log_format,
        )
    except ConfigError as e:
        typer.echo(f"failed to load config: {e}", err=True)
        raise typer.Exit(code=EXIT_INIT_ERROR)

    configure_logger(cfg.log_level, cfg.log_format)
    logger.info(
        f"🚀 Starting cm-gc {__version__}: namespaces={','.join(cfg.namespaces)} "
        f"keep_last={cfg.keep_last} keep_days={cfg.keep_days} "
        f"keep_last_from_rollout={cfg.keep_last_from_rollout} dry_run={cfg.dry_run} "
        f"match_mode={cfg.match_mode}"
    )
    if cfg.dry_run:
        logger.info("[DRY-RUN] mode enabled, no ConfigMaps will be deleted")

    try:
        clients = initialize_kubernetes()
    except (ConfigException, OSError) as e:
        logger.error(f"Failed to initialise kubernetes clients: {e}")
        raise typer.Exit(code=EXIT_INIT_ERROR)

    collector = GarbageCollector.from_config(clients, cfg)
    reports = asyncio.run(collector.run(cfg.namespaces))

    if any(r.failed for r in reports):
        raise typer.Exit(code=EXIT_GC_FAILED)


if __name__ == "__main__":
    app()
