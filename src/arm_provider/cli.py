"""ARM provider CLI (arm-provider).

Drives a single handler operation from the command line, the way the
orchestration framework would call it.

Usage:
    arm-provider types                         # List resource types
    arm-provider read TYPE ID                  # Print current state
    arm-provider import TYPE ID                # Print state of an existing object
    arm-provider apply TYPE FILE [--id ID]     # Create, or update when --id is given
    arm-provider delete TYPE ID                # Delete (absent objects succeed)
    arm-provider diff TYPE ID FILE             # Show drift against a desired state

Exit codes: 0 success, 1 operation failure, 2 configuration error.
"""

from __future__ import annotations

import asyncio
import copy
import json
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click

from .config import ConfigurationError, ProviderConfig
from .errors import ProviderError
from .handler import ResourceHandler
from .main import create_registry, setup_logging
from .models import ProviderModel
from .operations import Deadline
from .registry import HandlerRegistry
from .state_loader import StateLoadError, load_state

T = TypeVar("T")

REDACTED = "(sensitive)"


class ConfigurationFailed(click.ClickException):
    """Configuration could not be loaded; exits with code 2."""

    exit_code = 2


def get_registry(ctx: click.Context) -> HandlerRegistry:
    """Registry from the context object, building it from the environment once."""
    registry = ctx.obj.get("registry")
    if registry is not None:
        return registry

    try:
        config = ProviderConfig.from_env()
    except ConfigurationError as e:
        raise ConfigurationFailed(str(e)) from e

    setup_logging(config.log_format, config.log_level)
    registry = create_registry(config)
    ctx.obj["registry"] = registry
    return registry


def get_handler(ctx: click.Context, type_name: str) -> ResourceHandler:
    registry = get_registry(ctx)
    try:
        return registry.get(type_name)
    except ProviderError as e:
        raise click.ClickException(str(e)) from e


def run_operation(operation: Coroutine[Any, Any, T]) -> T:
    """Run a handler coroutine, mapping provider errors to exit code 1."""
    try:
        return asyncio.run(operation)
    except (ProviderError, StateLoadError) as e:
        raise click.ClickException(str(e)) from e


def new_deadline(ctx: click.Context) -> Deadline | None:
    timeout = ctx.obj.get("timeout")
    return Deadline.after(timeout) if timeout else None


def redact(data: dict[str, Any], sensitive_fields: frozenset[str]) -> dict[str, Any]:
    """Replace declared sensitive values (dotted paths) with a marker."""
    for path in sensitive_fields:
        container: Any = data
        *parents, leaf = path.split(".")
        for part in parents:
            container = container.get(part) if isinstance(container, dict) else None
        if isinstance(container, dict) and container.get(leaf) is not None:
            container[leaf] = REDACTED
    return data


def redact_value(path: str, value: Any, sensitive_fields: frozenset[str]) -> Any:
    """Redact a value found at a dotted path, including sensitive fields nested in it."""
    if path in sensitive_fields and value is not None:
        return REDACTED
    if isinstance(value, dict):
        prefix = f"{path}."
        nested = frozenset(p[len(prefix) :] for p in sensitive_fields if p.startswith(prefix))
        return redact(copy.deepcopy(value), nested)
    return value


def emit_state(state: ProviderModel | None) -> None:
    if state is None:
        click.echo(json.dumps(None))
        return
    payload = redact(state.model_dump(mode="json"), type(state).sensitive_fields)
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


def load_prior(handler: ResourceHandler, prior_file: Path | None) -> ProviderModel | None:
    if prior_file is None:
        return None
    try:
        return load_state(prior_file, handler.model)
    except StateLoadError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Operation deadline in seconds (default: the resource type's timeout)",
)
@click.pass_context
def cli(ctx: click.Context, timeout: float | None) -> None:
    """ARM provider - reconcile Azure resources against declared state."""
    ctx.ensure_object(dict)
    ctx.obj["timeout"] = timeout


@cli.command()
@click.pass_context
def types(ctx: click.Context) -> None:
    """List the supported resource types."""
    for type_name in get_registry(ctx).type_names():
        click.echo(type_name)


@cli.command()
@click.argument("type_name", metavar="TYPE")
@click.argument("identifier", metavar="ID")
@click.option(
    "--prior",
    "prior_file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Last known state, for values the service never returns",
)
@click.pass_context
def read(ctx: click.Context, type_name: str, identifier: str, prior_file: Path | None) -> None:
    """Print the current state of an object (null when it is gone)."""
    handler = get_handler(ctx, type_name)
    prior = load_prior(handler, prior_file)

    async def _read() -> ProviderModel | None:
        return await handler.read(identifier, new_deadline(ctx), prior)

    emit_state(run_operation(_read()))


@cli.command("import")
@click.argument("type_name", metavar="TYPE")
@click.argument("identifier", metavar="ID")
@click.pass_context
def import_(ctx: click.Context, type_name: str, identifier: str) -> None:
    """Print the state of an existing object so it can be adopted."""
    handler = get_handler(ctx, type_name)

    async def _import() -> ProviderModel:
        return await handler.import_state(identifier, new_deadline(ctx))

    emit_state(run_operation(_import()))


@cli.command()
@click.argument("type_name", metavar="TYPE")
@click.argument("state_file", metavar="FILE", type=click.Path(path_type=Path, dir_okay=False))
@click.option("--id", "identifier", default=None, help="Identifier of the object to update")
@click.option(
    "--prior",
    "prior_file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Last known state, used to detect value changes",
)
@click.pass_context
def apply(
    ctx: click.Context,
    type_name: str,
    state_file: Path,
    identifier: str | None,
    prior_file: Path | None,
) -> None:
    """Create the object in FILE, or converge it when --id is given."""
    handler = get_handler(ctx, type_name)
    try:
        desired = load_state(state_file, handler.model)
    except StateLoadError as e:
        raise click.ClickException(str(e)) from e
    prior = load_prior(handler, prior_file)

    async def _apply() -> str | None:
        if identifier is None:
            return await handler.create(desired, new_deadline(ctx))
        return await handler.update(identifier, desired, new_deadline(ctx), prior)

    new_identifier = run_operation(_apply())
    click.echo(json.dumps({"id": new_identifier}))


@cli.command()
@click.argument("type_name", metavar="TYPE")
@click.argument("identifier", metavar="ID")
@click.pass_context
def delete(ctx: click.Context, type_name: str, identifier: str) -> None:
    """Delete an object. Deleting an absent object succeeds."""
    handler = get_handler(ctx, type_name)

    async def _delete() -> None:
        await handler.delete(identifier, new_deadline(ctx))

    run_operation(_delete())
    click.echo(json.dumps({"deleted": identifier}))


@cli.command()
@click.argument("type_name", metavar="TYPE")
@click.argument("identifier", metavar="ID")
@click.argument("state_file", metavar="FILE", type=click.Path(path_type=Path, dir_okay=False))
@click.pass_context
def diff(ctx: click.Context, type_name: str, identifier: str, state_file: Path) -> None:
    """Show the fields where the object differs from FILE."""
    handler = get_handler(ctx, type_name)
    try:
        desired = load_state(state_file, handler.model)
    except StateLoadError as e:
        raise click.ClickException(str(e)) from e

    async def _read() -> ProviderModel | None:
        return await handler.read(identifier, new_deadline(ctx), desired)

    observed = run_operation(_read())
    sensitive = type(desired).sensitive_fields
    changes = [
        {
            "path": change.path,
            "declared": redact_value(change.path, change.declared, sensitive),
            "observed": redact_value(change.path, change.observed, sensitive),
        }
        for change in handler.diff(desired, observed)
    ]
    click.echo(
        json.dumps({"exists": observed is not None, "changes": changes}, indent=2, default=str)
    )


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
