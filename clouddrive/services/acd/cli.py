"""Typer CLI entry points for Amazon Cloud Drive."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from clouddrive.core.errors import ConfigError
from clouddrive.core.logger import get_logger

from .client import CloudDriveClient
from .models import USAGE_CATEGORIES, File, Folder, ListCursor, ListOptions, Node, NodeKind, WrongKindError, classify

LOGGER = get_logger()

app = typer.Typer(name="acd", help="Operate Amazon Cloud Drive nodes.")
account_app = typer.Typer(name="account", help="Inspect account info, quota and usage.")
app.add_typer(account_app, name="account")


def _resolve_client(profile: Optional[str]) -> CloudDriveClient:
    try:
        return CloudDriveClient.from_profile(profile)
    except ConfigError as exc:
        LOGGER.error("acd.cli config_error: %s", exc)
        typer.secho(f"Unable to load Cloud Drive configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc


def _handle_error(exc: Exception) -> None:
    LOGGER.error("acd operation failed: %s", exc, exc_info=True)
    typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def _format_node(node: Node) -> str:
    kind = node.kind_raw or "?"
    size = "" if node.size is None else str(node.size)
    return f"{kind:6} {size:>12} {node.name or '--':40} {node.id}"


def _resolve_folder(client: CloudDriveClient, path: str) -> Folder:
    typed = classify(client.nodes.resolve_path(path))
    if not isinstance(typed, Folder):
        raise WrongKindError(path, NodeKind.FOLDER)
    return typed


def _resolve_file(client: CloudDriveClient, path: str) -> File:
    typed = classify(client.nodes.resolve_path(path))
    if not isinstance(typed, File):
        raise WrongKindError(path, NodeKind.FILE)
    return typed


ProfileOption = typer.Option(None, "--profile", help="Profile name from profiles.yaml (env vars when omitted)")


@app.command("root")
def cmd_root(profile: Optional[str] = ProfileOption) -> None:
    """Print the root folder."""

    client = _resolve_client(profile)
    try:
        root = client.nodes.get_root()
        typer.echo(_format_node(root.node))
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@app.command("ls")
def cmd_list(
    path: str = typer.Argument("/", help="Folder path, e.g. 'Documents/2015'"),
    all_pages: bool = typer.Option(False, "--all", help="Follow pagination until the end"),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Page size"),
    filters: Optional[str] = typer.Option(None, "--filters", help="Server side filter expression"),
    sort: Optional[str] = typer.Option(None, "--sort", help="Sort expression, e.g. '[\"name ASC\"]'"),
    start_token: Optional[str] = typer.Option(None, "--start-token", help="Continue from a previous page"),
    profile: Optional[str] = ProfileOption,
) -> None:
    """List the children of a folder."""

    client = _resolve_client(profile)
    options = ListOptions(limit=limit, filters=filters, sort=sort)
    try:
        folder = _resolve_folder(client, path)
        if all_pages:
            nodes = client.nodes.get_all_children(folder, options)
            next_token = None
        else:
            page = client.nodes.get_children(folder, options, ListCursor(token=start_token))
            nodes = page.nodes
            next_token = None if page.cursor.complete else page.cursor.token
        if not nodes:
            typer.echo("<empty>")
        for node in nodes:
            typer.echo(_format_node(node))
        if next_token:
            typer.secho(f"next-token: {next_token}", err=True)
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@app.command("get")
def cmd_get(
    path: str = typer.Argument(..., help="Node path below the root folder"),
    profile: Optional[str] = ProfileOption,
) -> None:
    """Resolve a path and print the node it names."""

    client = _resolve_client(profile)
    try:
        typer.echo(_format_node(client.nodes.resolve_path(path)))
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@app.command("metadata")
def cmd_metadata(
    path: str = typer.Argument(..., help="Node path below the root folder"),
    profile: Optional[str] = ProfileOption,
) -> None:
    """Print the full JSON metadata of a node."""

    client = _resolve_client(profile)
    try:
        typer.echo(client.nodes.get_metadata(client.nodes.resolve_path(path)))
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@app.command("download")
def cmd_download(
    path: str = typer.Argument(..., help="File path below the root folder"),
    out: Path = typer.Option(..., "--out", help="Destination file; must not exist"),
    profile: Optional[str] = ProfileOption,
) -> None:
    """Download a file."""

    client = _resolve_client(profile)
    try:
        written = client.nodes.download(_resolve_file(client, path), out)
        typer.echo(str(written))
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@app.command("upload")
def cmd_upload(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True, help="Local file path"),
    parent: str = typer.Option("/", "--parent", help="Destination folder path"),
    name: Optional[str] = typer.Option(None, "--name", help="Override uploaded file name"),
    profile: Optional[str] = ProfileOption,
) -> None:
    """Upload a file into a folder."""

    client = _resolve_client(profile)
    try:
        uploaded = client.nodes.upload(_resolve_folder(client, parent), file, name=name)
        typer.echo(uploaded.id)
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@app.command("mkdir")
def cmd_mkdir(
    name: str = typer.Argument(..., help="New folder name"),
    parent: str = typer.Option("/", "--parent", help="Parent folder path"),
    profile: Optional[str] = ProfileOption,
) -> None:
    """Create a folder."""

    client = _resolve_client(profile)
    try:
        created = client.nodes.create_folder(_resolve_folder(client, parent), name)
        typer.echo(created.id)
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@account_app.command("info")
def cmd_info(profile: Optional[str] = ProfileOption) -> None:
    """Show account status and terms of use."""

    client = _resolve_client(profile)
    try:
        info = client.account.get_info()
        typer.echo(f"status:       {info.status}")
        typer.echo(f"terms of use: {info.terms_of_use}")
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@account_app.command("quota")
def cmd_quota(profile: Optional[str] = ProfileOption) -> None:
    """Show storage quota."""

    client = _resolve_client(profile)
    try:
        quota = client.account.get_quota()
        calculated = quota.last_calculated.isoformat() if quota.last_calculated else "-"
        typer.echo(f"quota:           {quota.quota}")
        typer.echo(f"available:       {quota.available}")
        typer.echo(f"last calculated: {calculated}")
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@account_app.command("usage")
def cmd_usage(profile: Optional[str] = ProfileOption) -> None:
    """Show usage per content category."""

    client = _resolve_client(profile)
    try:
        usage = client.account.get_usage()
        typer.echo(f"{'category':8} {'bytes':>14} {'count':>8} {'billable':>14} {'count':>8}")
        for category in USAGE_CATEGORIES:
            entry = getattr(usage, category)
            typer.echo(
                f"{category:8} {entry.total.bytes or 0:>14} {entry.total.count or 0:>8}"
                f" {entry.billable.bytes or 0:>14} {entry.billable.count or 0:>8}"
            )
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


@account_app.command("endpoint")
def cmd_endpoint(profile: Optional[str] = ProfileOption) -> None:
    """Show the customer specific API endpoints."""

    client = _resolve_client(profile)
    try:
        endpoint = client.account.get_endpoint()
        typer.echo(f"metadata: {endpoint.metadata_url}")
        typer.echo(f"content:  {endpoint.content_url}")
    except Exception as exc:
        _handle_error(exc)
    finally:
        client.close()


__all__ = ["app"]
