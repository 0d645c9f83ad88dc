"""CLI interface for the editorial CMS."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import mimetypes
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from editorial.client.context import ClientContext, Mode
from editorial.config import EditorialConfig, load_config, merge_cli_overrides
from editorial.content.models import Item, ItemType
from editorial.content.validation import chart_entries_from_lines
from editorial.shared.errors import EditorialError

app = typer.Typer(
    name="editorial",
    help="Publish and inspect editorial content (reviews, news, interviews, charts).",
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to an .editorial.toml config file."),
]
ApiBaseOption = Annotated[
    Optional[str],
    typer.Option("--api-base", help="Backend origin, e.g. http://127.0.0.1:3000."),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Print raw JSON.")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from editorial import __version__

        console.print(f"editorial {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output."),
    ] = False,
) -> None:
    """Editorial CMS - manage a music magazine's content."""
    level = logging.DEBUG if verbose else logging.WARNING
    handler = logging.StreamHandler()
    # the client logger runs at INFO for the admin log; keep the console quiet
    handler.setLevel(level)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", handlers=[handler])


def _config(config_path: Path | None, **overrides: object) -> EditorialConfig:
    return merge_cli_overrides(load_config(config_path), **overrides)


def _run(coro):
    try:
        return asyncio.run(coro)
    except EditorialError as exc:
        console.print(f"[red]Error:[/red] {exc.message}")
        raise typer.Exit(1) from exc


async def _ensure_github_token(ctx: ClientContext) -> None:
    """Ask for a GitHub token the first time a repo is set up without one."""
    settings = ctx.github.settings
    if settings.token or not (settings.owner and settings.repo):
        return
    if await ctx.detector.has_backend():
        return
    token = typer.prompt(
        f"GitHub token with contents write access to {settings.owner}/{settings.repo}",
        hide_input=True,
        default="",
        show_default=False,
    )
    if token.strip():
        ctx.configure_github(token=token)


def _item_title(item: Item) -> str:
    for field in ("album", "headline", "title", "chart_title"):
        value = getattr(item, field, "")
        if value:
            return str(value)
    return item.id


def _print_items(items: list[Item], as_json: bool) -> None:
    if as_json:
        console.print_json(json.dumps([item.to_json_dict() for item in items]))
        return
    if not items:
        console.print("[yellow]No items found.[/yellow]")
        return
    table = Table("Published", "Type", "Title", "ID")
    for item in items:
        published = item.sort_key.strftime("%Y-%m-%d %H:%M")
        demo = " [dim](demo)[/dim]" if item.is_demo else ""
        table.add_row(published, item.type, _item_title(item) + demo, item.id)
    console.print(table)


@app.command()
def serve(
    config_path: ConfigOption = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to listen on.")] = None,
    data_dir: Annotated[
        Optional[Path], typer.Option("--data-dir", help="Directory holding db.json.")
    ] = None,
    uploads_dir: Annotated[
        Optional[Path], typer.Option("--uploads-dir", help="Directory for uploaded images.")
    ] = None,
) -> None:
    """Run the HTTP backend."""
    from editorial.server import create_app

    config = _config(
        config_path,
        host=host,
        port=port,
        data_dir=str(data_dir) if data_dir else None,
        uploads_dir=str(uploads_dir) if uploads_dir else None,
    )
    settings = config.server
    if not settings.auth_enabled:
        console.print("[yellow]ADMIN_TOKEN not set: admin routes are open.[/yellow]")
    console.print(f"Serving on http://{settings.host}:{settings.port}")
    create_app(settings).run(host=settings.host, port=settings.port)


@app.command()
def health(config_path: ConfigOption = None, api_base: ApiBaseOption = None) -> None:
    """Report which mode writes would use."""

    async def check() -> Mode:
        ctx = ClientContext(_config(config_path, api_base=api_base))
        try:
            return await ctx.mode()
        finally:
            ctx.close()

    mode = _run(check())
    if mode is Mode.SERVER:
        console.print("[green]Backend reachable.[/green]")
    else:
        console.print(f"[yellow]No backend; writes go to {mode} mode.[/yellow]")


@app.command(name="list")
def list_cmd(
    item_type: Annotated[ItemType, typer.Argument(help="Section to list.")],
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
    as_json: JsonOption = False,
) -> None:
    """List items of one section, newest first."""

    async def fetch() -> list[Item]:
        ctx = ClientContext(_config(config_path, api_base=api_base))
        try:
            return await ctx.list_items(item_type.value)
        finally:
            ctx.close()

    _print_items(_run(fetch()), as_json)


@app.command()
def latest(
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, max=12, help="How many items.")] = 6,
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
    as_json: JsonOption = False,
) -> None:
    """Show the newest published items across all sections."""

    async def fetch() -> list[Item]:
        ctx = ClientContext(_config(config_path, api_base=api_base))
        try:
            return await ctx.latest(limit)
        finally:
            ctx.close()

    _print_items(_run(fetch()), as_json)


@app.command()
def stats(
    demo: Annotated[bool, typer.Option("--demo", help="Count demo items only.")] = False,
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
) -> None:
    """Count items per section."""

    async def fetch() -> dict[str, int]:
        ctx = ClientContext(_config(config_path, api_base=api_base))
        try:
            return await ctx.stats(demo)
        finally:
            ctx.close()

    counts = _run(fetch())
    table = Table("Section", "Items")
    for section, count in counts.items():
        table.add_row(section, str(count))
    console.print(table)


@app.command(name="seed-demo")
def seed_demo_cmd(
    per_section: Annotated[
        int, typer.Option("--per-section", "-n", min=1, max=3, help="Items per section.")
    ] = 1,
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
) -> None:
    """Publish demo content marked for later bulk removal."""
    from editorial.demo import seed_demo

    async def publish() -> list[Item]:
        ctx = ClientContext(_config(config_path, api_base=api_base))
        try:
            await _ensure_github_token(ctx)
            return await seed_demo(ctx, per_section)
        finally:
            ctx.close()

    items = _run(publish())
    console.print(f"[green]Published {len(items)} demo item(s).[/green]")


@app.command(name="delete-demo")
def delete_demo_cmd(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
) -> None:
    """Delete every demo item."""
    if not yes and not typer.confirm("Delete all demo content?"):
        raise typer.Exit(0)

    async def delete() -> int:
        ctx = ClientContext(_config(config_path, api_base=api_base))
        try:
            await _ensure_github_token(ctx)
            return await ctx.delete_demo()
        finally:
            ctx.close()

    console.print(f"[green]Deleted {_run(delete())} demo item(s).[/green]")


@app.command(name="set-token")
def set_token_cmd(
    token: Annotated[str, typer.Argument(help="Admin token sent as X-ADMIN-TOKEN.")],
    config_path: ConfigOption = None,
) -> None:
    """Store the admin token used for write requests."""
    ctx = ClientContext(_config(config_path))
    try:
        ctx.set_admin_token(token)
    finally:
        ctx.close()
    console.print("[green]Admin token saved.[/green]")


@app.command()
def cover(
    issue_number: Annotated[
        Optional[str], typer.Option("--issue-number", help="Set the issue number.")
    ] = None,
    issue_date: Annotated[Optional[str], typer.Option("--issue-date", help="Set the issue date.")] = None,
    description: Annotated[
        Optional[str], typer.Option("--description", help="Set the cover description.")
    ] = None,
    image_url: Annotated[Optional[str], typer.Option("--image-url", help="Cover image URL.")] = None,
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
) -> None:
    """Show the current cover, or replace it when any field is given."""
    updating = any(v is not None for v in (issue_number, issue_date, description, image_url))

    async def run():
        ctx = ClientContext(_config(config_path, api_base=api_base))
        try:
            if not updating:
                return await ctx.cover()
            await _ensure_github_token(ctx)
            return await ctx.update_cover(
                {
                    "issueNumber": issue_number or "",
                    "issueDate": issue_date or "",
                    "description": description or "",
                    "coverImageUrl": image_url or "",
                }
            )
        finally:
            ctx.close()

    current = _run(run())
    if current is None:
        console.print("[yellow]No cover set.[/yellow]")
        return
    console.print(f"[bold]Issue {current.issue_number}[/bold] ({current.issue_date})")
    console.print(current.description)
    if current.cover_image_url:
        console.print(f"Image: {current.cover_image_url}")


def _client_call(config: EditorialConfig, action, *, writes: bool = False):
    async def call():
        ctx = ClientContext(config)
        try:
            if writes:
                await _ensure_github_token(ctx)
            return await action(ctx)
        finally:
            ctx.close()

    return _run(call())


def _load_payload(raw: str) -> dict[str, Any]:
    """Parse a JSON object given inline or as ``@path``."""
    try:
        text = Path(raw[1:]).read_text(encoding="utf-8") if raw.startswith("@") else raw
        payload = json.loads(text)
    except OSError as exc:
        raise typer.BadParameter(f"Cannot read {raw[1:]}: {exc.strerror}") from exc
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise typer.BadParameter("Payload must be a JSON object")
    return payload


def _add_chart_entries(payload: dict[str, Any], entries_file: Path | None) -> dict[str, Any]:
    if entries_file is not None:
        lines = [line for line in entries_file.read_text(encoding="utf-8").splitlines() if line.strip()]
        payload["entries"] = [entry.to_json_dict() for entry in chart_entries_from_lines(lines)]
    return payload


PayloadArgument = Annotated[
    str, typer.Argument(help="Item as a JSON object, or @path to a JSON file.")
]
EntriesOption = Annotated[
    Optional[Path],
    typer.Option(
        "--entries-file",
        exists=True,
        dir_okay=False,
        help='Chart entries, one "Title - Artist" line per position.',
    ),
]


@app.command()
def publish(
    payload: PayloadArgument,
    entries_file: EntriesOption = None,
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
) -> None:
    """Publish a new item."""
    data = _load_payload(payload)

    async def action(ctx: ClientContext) -> Item:
        return await ctx.publish_item(_add_chart_entries(data, entries_file))

    item = _client_call(_config(config_path, api_base=api_base), action, writes=True)
    console.print(f"[green]Published {item.type} {item.id}.[/green]")


@app.command()
def update(
    payload: PayloadArgument,
    entries_file: EntriesOption = None,
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
) -> None:
    """Overwrite an existing item; the payload must carry its id."""
    data = _load_payload(payload)

    async def action(ctx: ClientContext) -> Item:
        return await ctx.update_item(_add_chart_entries(data, entries_file))

    item = _client_call(_config(config_path, api_base=api_base), action, writes=True)
    console.print(f"[green]Updated {item.type} {item.id}.[/green]")


@app.command()
def delete(
    item_type: Annotated[ItemType, typer.Argument(help="Section of the item.")],
    item_id: Annotated[str, typer.Argument(help="Item id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
) -> None:
    """Delete one item."""
    if not yes and not typer.confirm(f"Delete {item_type.value} {item_id}?"):
        raise typer.Exit(0)

    async def action(ctx: ClientContext) -> int:
        return await ctx.delete_item(item_type.value, item_id)

    _client_call(_config(config_path, api_base=api_base), action, writes=True)
    console.print(f"[green]Deleted {item_type.value} {item_id}.[/green]")


@app.command()
def upload(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="Image file.")],
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
) -> None:
    """Upload an image and print the URL to reference it by."""
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    data_url = f"data:{mime_type};base64,{base64.b64encode(path.read_bytes()).decode('ascii')}"

    async def action(ctx: ClientContext) -> str:
        return await ctx.upload_image(path.name, data_url, mime_type)

    url = _client_call(_config(config_path, api_base=api_base), action, writes=True)
    if url.startswith("data:"):
        console.print("[yellow]No backend or repository: image kept inline as a data URL.[/yellow]")
    else:
        console.print(url)


@app.command(name="all")
def all_cmd(
    config_path: ConfigOption = None,
    api_base: ApiBaseOption = None,
    as_json: JsonOption = False,
) -> None:
    """List every item across all sections, newest first."""

    async def action(ctx: ClientContext) -> list[Item]:
        return await ctx.all_items()

    _print_items(_client_call(_config(config_path, api_base=api_base), action), as_json)


@app.command(name="export-local")
def export_local(
    output: Annotated[
        Optional[Path], typer.Option("--output", "-o", help="Write the backup to this file.")
    ] = None,
    config_path: ConfigOption = None,
) -> None:
    """Export local drafts, cover and deletions as a JSON backup."""
    ctx = ClientContext(_config(config_path))
    try:
        text = json.dumps(ctx.export_backup(), indent=2, ensure_ascii=False)
    finally:
        ctx.close()
    if output is None:
        typer.echo(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    console.print(f"[green]Backup written to {output}.[/green]")


@app.command(name="import-local")
def import_local(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="Backup JSON file.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
    config_path: ConfigOption = None,
) -> None:
    """Replace local drafts with the contents of a backup."""
    try:
        backup = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON: {exc.msg}") from exc
    if not yes and not typer.confirm("Import replaces your local drafts. Continue?"):
        raise typer.Exit(0)
    ctx = ClientContext(_config(config_path))
    try:
        count = ctx.import_backup(backup)
    except EditorialError as exc:
        console.print(f"[red]Error:[/red] {exc.message}")
        raise typer.Exit(1) from exc
    finally:
        ctx.close()
    console.print(f"[green]Imported {count} local item(s).[/green]")


@app.command(name="clear-local")
def clear_local(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
    config_path: ConfigOption = None,
) -> None:
    """Delete local drafts, the local cover and local deletions."""
    if not yes and not typer.confirm("Delete local drafts and cover?"):
        raise typer.Exit(0)
    ctx = ClientContext(_config(config_path))
    try:
        ctx.clear_local()
    finally:
        ctx.close()
    console.print("[green]Local drafts cleared.[/green]")


if __name__ == "__main__":
    app()
