"""``fragments environment create``: register a deployment target."""

from __future__ import annotations

import re
from collections.abc import Iterable

import typer
from rich.console import Console

from fragments.cli.runtime import CLIOptions, close_quietly, open_kv, open_secrets, signal_context
from fragments.errors import FragmentsError, ValidationError
from fragments.models.records import InfraType
from fragments.models.requests import EnvironmentInput
from fragments.server.server import ApplyServer
from fragments.state.service import StateService

console = Console()

_LABEL = re.compile(r"^(\w+)\s*=\s*(\w+)$")


def parse_labels(raw: Iterable[str]) -> dict[str, str]:
    """Parse ``key=value`` pairs."""
    labels: dict[str, str] = {}
    for item in raw:
        match = _LABEL.match(item)
        if match is None:
            raise ValidationError(f"{item!r} not a valid label: format must be key=value")
        labels[match.group(1)] = match.group(2)
    return labels


def parse_infrastructure(name: str) -> InfraType:
    try:
        return InfraType(name.lower())
    except ValueError:
        raise ValidationError(f"unsupported infrastructure {name!r}") from None


def environment_create_cmd(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="Environment name."),
    infrastructure: str = typer.Option(
        ..., "--infrastructure", "-i", help="Infrastructure provider."
    ),
    username: str = typer.Option(
        ..., "--username", "-u", help="Username for the infrastructure provider."
    ),
    password: str = typer.Option(
        ..., "--password", "-p", help="Password for the infrastructure provider."
    ),
    label: list[str] = typer.Option(
        [], "--label", "-l", help="Label to put on the environment (key=value)."
    ),
    aws_region: str = typer.Option("", "--aws.region", "--aws-region", help="AWS region."),
) -> None:
    """Create a new environment."""
    options: CLIOptions = ctx.obj or CLIOptions()
    resources: list[object] = []
    try:
        spec = EnvironmentInput(
            name=name,
            labels=parse_labels(label),
            infrastructure=parse_infrastructure(infrastructure),
            username=username,
            password=password,
            aws_region=aws_region,
        )
        with signal_context() as root:
            kv = open_kv(options)
            resources.append(kv)
            secrets = open_secrets(options)
            resources.append(secrets)
            server = ApplyServer(StateService(kv, secrets))
            server.create_environment(root, spec)
    except FragmentsError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    finally:
        for resource in reversed(resources):
            close_quietly(resource)
    console.print(f"[green]Created[/green] environment [cyan]{name}[/cyan]")
