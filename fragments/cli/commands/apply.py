"""``fragments apply``: push manifests and sources, then reconcile.

Every manifest below the target directories is loaded and checked for
duplicates.  Functions and deployments are applied in parallel; changed
sources are archived, uploaded and confirmed.  The reconciler then runs
once against the new desired state.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

import typer
from rich.console import Console

from fragments.cli.runtime import (
    CLIOptions,
    close_quietly,
    open_filestore,
    open_kv,
    open_secrets,
    signal_context,
)
from fragments.client.manifest import check_duplicates, load
from fragments.client.source import checksum, collect_source, compress
from fragments.client.upload import upload
from fragments.client.walk import walk
from fragments.core.clock import RealClock
from fragments.core.context import Context
from fragments.core.errgroup import ErrGroup
from fragments.errors import FragmentsError, ValidationError
from fragments.models.manifests import DeploymentManifest, FunctionManifest, Manifest
from fragments.models.records import InfraType
from fragments.reconciler.aws.adapter import AWSReconciler
from fragments.reconciler.reconciler import Reconciler
from fragments.server.server import ApplyServer
from fragments.state.service import StateService

console = Console()

DEFAULT_IGNORE = ["node_modules", "vendor"]


def load_manifests(targets: Sequence[Path | str], ignore: Sequence[str]) -> list[Manifest]:
    """Find, load and de-duplicate every manifest below *targets*."""
    manifests: list[Manifest] = []
    for target in targets:
        for path in walk(target, ignore):
            try:
                manifests.extend(load(path))
            except FragmentsError as exc:
                raise ValidationError(f"could not load resource: {exc}: {path}") from exc
    check_duplicates(manifests)
    return manifests


def apply_function(
    ctx: Context,
    server: ApplyServer,
    manifest: FunctionManifest,
    ignore: Sequence[str],
    function_dirs: Sequence[str],
) -> bool:
    """Apply one function; return ``True`` if its source was uploaded."""
    source_dir = os.path.dirname(os.path.abspath(manifest.file))
    nested = [d for d in function_dirs if d != source_dir]
    files = collect_source(source_dir, ignore, exclude_dirs=nested)
    if not files:
        raise ValidationError(f"function {manifest.meta.name} contains no source")

    # The manifest is left out so configuration changes keep the checksum.
    # Patterns matching the function's own directory would exclude everything.
    excluded = [os.path.abspath(manifest.file)]
    excluded.extend(p for p in ignore if p not in source_dir)
    digest = checksum(files, excluded)

    request = server.put_function(ctx, manifest.to_function(digest))
    if request is None:
        return False
    # The archive carries every collected file, manifest included.
    upload(compress(files, base_dir=source_dir), request.url)
    server.confirm_upload(ctx, request.token)
    return True


def apply_manifests(
    ctx: Context,
    server: ApplyServer,
    manifests: Sequence[Manifest],
    ignore: Sequence[str],
    *,
    max_workers: int | None = None,
) -> list[str]:
    """Apply every manifest in parallel; return the functions uploaded."""
    function_dirs = [
        os.path.dirname(os.path.abspath(m.file))
        for m in manifests
        if isinstance(m, FunctionManifest)
    ]
    uploaded: list[str] = []

    def apply_one(gctx: Context, manifest: Manifest) -> None:
        if isinstance(manifest, FunctionManifest):
            try:
                if apply_function(gctx, server, manifest, ignore, function_dirs):
                    uploaded.append(manifest.meta.name)
            except FragmentsError as exc:
                raise ValidationError(f"could not apply function {manifest.meta.name}: {exc}") from exc
        elif isinstance(manifest, DeploymentManifest):
            try:
                server.put_deployment(gctx, manifest.to_deployment())
            except FragmentsError as exc:
                raise ValidationError(
                    f"could not apply deployment {manifest.meta.name}: {exc}"
                ) from exc
        else:
            raise ValidationError(f"unsupported resource {manifest.kind!r}: {manifest.file}")

    group = ErrGroup(ctx, limit=max_workers)
    for manifest in manifests:
        group.go(apply_one, manifest)
    group.wait()
    return sorted(uploaded)


def apply_cmd(
    ctx: typer.Context,
    targets: list[Path] = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Directories containing manifests.",
    ),
    ignore: list[str] = typer.Option(
        DEFAULT_IGNORE,
        "--ignore",
        "-i",
        help="File/directory patterns to ignore.",
    ),
) -> None:
    """Apply resource changes and reconcile them."""
    options: CLIOptions = ctx.obj or CLIOptions()
    try:
        manifests = load_manifests(targets, ignore)
    except FragmentsError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    if not manifests:
        console.print("[dim]No manifests found.[/dim]")
        return

    resources: list[object] = []
    try:
        with signal_context() as root:
            kv = open_kv(options)
            resources.append(kv)
            secrets = open_secrets(options)
            resources.append(secrets)
            filestore = open_filestore(options)
            resources.append(filestore)

            state = StateService(kv, secrets)
            server = ApplyServer(state, filestore)
            workers = options.settings.max_workers
            uploaded = apply_manifests(root, server, manifests, ignore, max_workers=workers)
            for name in uploaded:
                console.print(f"[green]Uploaded[/green] source for [cyan]{name}[/cyan]")
            console.print(f"Applied {len(manifests)} resource(s)")

            adapters = {InfraType.AWS: AWSReconciler(state, filestore, clock=RealClock())}
            Reconciler(state, adapters, max_workers=workers).run(root)
            console.print("[bold green]Reconciled[/bold green]")
    except FragmentsError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    finally:
        for resource in reversed(resources):
            close_quietly(resource)
