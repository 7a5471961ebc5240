"""Main Typer application: registers the CLI commands.

Entry point: ``fragments`` (configured via pyproject.toml console scripts).
"""

from __future__ import annotations

import typer

from fragments.cli.commands.apply import apply_cmd
from fragments.cli.commands.environment import environment_create_cmd
from fragments.cli.runtime import CLIOptions
from fragments.config import settings
from fragments.logs import configure_logging

app = typer.Typer(
    name="fragments",
    help="Fragments: declarative deployments for serverless functions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

environment_app = typer.Typer(
    help="Create or modify target deployment environments.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    etcd: list[str] = typer.Option(
        None,
        "--etcd",
        "-e",
        help="etcd endpoints to connect to for storing state.",
    ),
    vault: str = typer.Option(
        None, "--vault", help="Vault address for storing secrets."
    ),
    log_level: str = typer.Option(None, "--log-level", help="Log level."),
) -> None:
    """Fragments: declarative deployments for serverless functions."""
    configure_logging(log_level or settings.log_level)
    ctx.obj = CLIOptions(
        etcd=list(etcd) if etcd else list(settings.etcd_endpoints),
        vault=vault or settings.vault_address,
        settings=settings,
    )


# Register subcommands
app.command(name="apply", help="Apply resource changes.")(apply_cmd)
environment_app.command(name="create", help="Create a new environment.")(environment_create_cmd)
app.add_typer(environment_app, name="environment")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
