"""Provider engine CLI (pe).

Usage:
    pe validate specs/            # Check desired configs offline
    pe plan specs/gateway.yaml    # Show the operations a pass would run
    pe apply specs/               # Reconcile against the controller
    pe destroy gateway spoke-1    # Delete a resource and its HA peer
    pe show gateway spoke-1       # Print the decoded observed state

Controller settings come from the environment (see Config.from_env).
Exit codes: 0 success, 1 error, 2 configuration rejected.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import click
import yaml

from .config import Config, ConfigurationError, LogFormat
from .controller_client import ControllerClient
from .main import EXIT_ERROR, EXIT_OK, EXIT_VALIDATION, reconcile_specs, setup_logging
from .models import BaseSpec
from .planner import Operation
from .reconciler import PartialReconciliationError, Reconciler
from .remote import RemoteOperationError, RemoteOperations
from .resources import FAMILIES
from .spec_loader import SpecLoadError, load_specs
from .tokens import MalformedTokenError
from .validator import validate

RemoteFactory = Callable[[], RemoteOperations]


def _load_config() -> Config:
    try:
        return Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@asynccontextmanager
async def open_remote(ctx: click.Context) -> AsyncIterator[RemoteOperations]:
    """Yield the remote collaborator: an injected factory or a controller client."""
    factory: RemoteFactory | None = (ctx.obj or {}).get("remote_factory")
    if factory is not None:
        yield factory()
        return
    async with ControllerClient.from_config(_load_config()) as client:
        yield client


def _load(path: Path) -> list[tuple[Path, BaseSpec]]:
    try:
        return load_specs(path)
    except SpecLoadError as e:
        click.secho(str(e), fg="red", err=True)
        raise click.exceptions.Exit(EXIT_VALIDATION) from e


def _echo_operations(operations: list[Operation]) -> None:
    for index, op in enumerate(operations, start=1):
        marker = click.style("-", fg="red") if op.destructive else click.style("+", fg="green")
        click.echo(f"  {index:>2}. {marker} {op.describe()}")


def _default_path() -> Path:
    return Path(os.environ.get("SPECS_DIR", "specs"))


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="pe")
@click.option(
    "--log-format",
    type=click.Choice([f.value for f in LogFormat]),
    default=LogFormat.TEXT.value,
    help="Log output format",
)
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity")
@click.pass_context
def cli(ctx: click.Context, log_format: str, verbose: bool) -> None:
    """Provider engine CLI (pe).

    Validates desired resource configurations and reconciles them against
    the controller, one resource at a time.
    """
    ctx.ensure_object(dict)
    setup_logging(LogFormat(log_format), logging.INFO if verbose else logging.WARNING)


@cli.command("validate")
@click.argument("path", type=click.Path(path_type=Path), required=False)
@click.pass_context
def validate_cmd(ctx: click.Context, path: Path | None) -> None:
    """Validate desired configs without contacting the controller."""
    specs = _load(path or _default_path())
    rejected = 0

    for spec_path, spec in specs:
        violations = validate(spec)
        if violations:
            rejected += 1
            click.secho(f"✗ {spec_path}: {violations[0].message}", fg="red")
        else:
            click.secho(f"✓ {spec_path}: {spec.kind} '{spec.resource_key}'", fg="green")

    if rejected:
        ctx.exit(EXIT_VALIDATION)
    click.echo(f"{len(specs)} configuration(s) valid")


@cli.command()
@click.argument("path", type=click.Path(path_type=Path), required=False)
@click.pass_context
def plan(ctx: click.Context, path: Path | None) -> None:
    """Show the operations the next pass would run."""
    specs = _load(path or _default_path())

    async def _run() -> int:
        async with open_remote(ctx) as remote:
            results, exit_code = await reconcile_specs(remote, specs, dry_run=True)
        for result in results:
            title = f"{result.kind} '{result.key or '<new>'}'"
            if not result.operations:
                click.echo(f"{title}: no changes")
                continue
            click.echo(f"{title}: {len(result.operations)} operation(s)")
            _echo_operations(result.operations)
        return exit_code

    ctx.exit(asyncio.run(_run()))


@cli.command()
@click.argument("path", type=click.Path(path_type=Path), required=False)
@click.option("--dry-run", is_flag=True, help="Plan only, do not apply")
@click.pass_context
def apply(ctx: click.Context, path: Path | None, dry_run: bool) -> None:
    """Reconcile desired configs against the controller."""
    specs = _load(path or _default_path())

    async def _run() -> int:
        async with open_remote(ctx) as remote:
            results, exit_code = await reconcile_specs(remote, specs, dry_run=dry_run)
        for result in results:
            title = f"{result.kind} '{result.remote_id or result.key}'"
            if not result.operations:
                click.echo(f"{title}: up to date")
            elif result.dry_run:
                click.echo(f"{title}: {len(result.operations)} operation(s) planned")
                _echo_operations(result.operations)
            else:
                click.secho(f"✓ {title}: {len(result.committed)} operation(s) applied", fg="green")
        if exit_code != EXIT_OK:
            click.secho("Some resources failed to reconcile, see log output", fg="red", err=True)
        return exit_code

    ctx.exit(asyncio.run(_run()))


@cli.command()
@click.argument("kind", type=click.Choice(sorted(FAMILIES)))
@click.argument("key")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def destroy(ctx: click.Context, kind: str, key: str, yes: bool) -> None:
    """Delete a resource (and its HA secondary)."""
    if not yes:
        click.confirm(f"Delete {kind} '{key}'?", abort=True)

    async def _run() -> int:
        async with open_remote(ctx) as remote:
            try:
                result = await Reconciler(remote).destroy(kind, key)
            except PartialReconciliationError as e:
                click.secho(f"✗ Partially deleted: {e}", fg="red", err=True)
                return EXIT_ERROR
            except RemoteOperationError as e:
                click.secho(f"✗ {e}", fg="red", err=True)
                return EXIT_ERROR
        if not result.operations:
            click.echo(f"{kind} '{key}' does not exist")
        else:
            click.secho(f"✓ Deleted {kind} '{key}'", fg="green")
            _echo_operations(result.committed)
        return EXIT_OK

    ctx.exit(asyncio.run(_run()))


@cli.command()
@click.argument("kind", type=click.Choice(sorted(FAMILIES)))
@click.argument("key")
@click.pass_context
def show(ctx: click.Context, kind: str, key: str) -> None:
    """Print the decoded observed state of a resource."""

    async def _run() -> int:
        async with open_remote(ctx) as remote:
            try:
                observed = await Reconciler(remote).read(kind, key)
            except (RemoteOperationError, MalformedTokenError) as e:
                click.secho(f"✗ {e}", fg="red", err=True)
                return EXIT_ERROR
        if observed is None:
            click.echo(f"{kind} '{key}' does not exist")
            return EXIT_ERROR

        document: dict[str, Any] = {
            "kind": observed.kind,
            "key": observed.key,
            "secondary_present": observed.secondary_present,
            "values": _plain(observed.values),
        }
        click.echo(yaml.safe_dump(document, sort_keys=True).rstrip())
        return EXIT_OK

    ctx.exit(asyncio.run(_run()))


def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [_plain(v) for v in value]
    return value


def main() -> None:
    """Entry point for the pe CLI."""
    cli()


if __name__ == "__main__":
    main()
