"""todust CLI: multi-line todos grouped into projects."""

import logging
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Annotated

import typer

from todust import config
from todust.cli import output
from todust.cli.errors import error_feedback
from todust.format import (
    entry_to_dict,
    format_entry_detail,
    format_entry_list,
    format_project_counts,
)
from todust.lib import paths
from todust.lib.store import EntrySource, EntryStore
from todust.repository import EntryRepository

main_app = typer.Typer(
    invoke_without_command=True,
    add_completion=False,
    help="""Todo entries with multi-line text, grouped into projects.""",
)


@main_app.callback(context_settings={"help_option_names": ["-h", "--help"]})
@error_feedback
def main_callback(
    ctx: typer.Context,
    datadir: Annotated[
        Path | None,
        typer.Option("--datadir", "-D", envvar="TODUST_DATADIR", help="Path to the data directory."),
    ] = None,
    project: Annotated[
        str | None,
        typer.Option("--project", "-P", envvar="TODUST_PROJECT", help="Project to work in."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-L", envvar="TODUST_LOG_LEVEL", help="debug, info, warning or error."),
    ] = None,
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format."),
    quiet_output: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
):
    output.init_context(ctx, json_output, quiet_output)

    if ctx.resilient_parsing:
        return

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        return

    root = datadir.expanduser() if datadir else paths.data_dir()
    config.init_config(root)
    cfg = config.settings(root)

    level = (log_level or cfg["log_level"]).lower()
    if level not in config.LOG_LEVELS:
        raise typer.BadParameter(f"log level must be one of {', '.join(config.LOG_LEVELS)}")
    logging.basicConfig(level=level.upper(), format="%(levelname)s %(name)s: %(message)s")

    store = EntryStore(root / cfg["db_file"])
    ctx.call_on_close(store.close)

    ctx.obj["repository"] = EntryRepository(store)
    ctx.obj["project"] = project or cfg["default_project"]


def _repository(ctx: typer.Context) -> EntryRepository:
    return ctx.obj["repository"]


def _text_or_editor(text: str | None, current: str | None = None) -> str:
    if text is None:
        text = typer.edit(current or "")
        if text is None:
            raise typer.BadParameter("editor closed without saving")
        text = text.rstrip("\n")
    if not text.strip():
        raise typer.BadParameter("entry text cannot be empty")
    return text


@main_app.command("add")
@error_feedback
def add(
    ctx: typer.Context,
    text: str | None = typer.Argument(None, help="Entry text. Opens $EDITOR when omitted."),
):
    """Add entry to the current project."""
    entry = _repository(ctx).add_entry(ctx.obj["project"], _text_or_editor(text))
    output.render(ctx, entry_to_dict(entry), f"Added: {entry.short_id}")


@main_app.command("list")
@error_feedback
def list_cmd(
    ctx: typer.Context,
    show_done: bool = typer.Option(False, "--done", "-d", help="Also show done entries."),
):
    """List entries of the current project."""
    listing = _repository(ctx).list_entries(ctx.obj["project"], show_done=show_done)
    if not listing.active and not listing.done:
        text = "No active entries"
    else:
        text = format_entry_list(listing.active)
        if listing.done:
            text += f"\n\nDone:\n{format_entry_list(listing.done)}"

    data = {
        "active": [entry_to_dict(e) for e in listing.active],
        "done": [entry_to_dict(e) for e in listing.done],
    }
    output.render(ctx, data, text, essential=True)


@main_app.command("show")
@error_feedback
def show(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Entry ID (short or full)"),
):
    """Show full entry."""
    repo = _repository(ctx)
    entry = repo.get_entry(repo.resolve(entry_id))
    output.render(ctx, entry_to_dict(entry), format_entry_detail(entry), essential=True)


@main_app.command("edit")
@error_feedback
def edit(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Entry ID (short or full)"),
    text: str | None = typer.Argument(None, help="New text. Opens $EDITOR when omitted."),
    update_time: bool = typer.Option(
        False, "--update-time", "-u", help="Refresh the entry's last change time."
    ),
):
    """Replace entry text."""
    repo = _repository(ctx)
    entry_uuid = repo.resolve(entry_id)
    if text is None:
        text = _text_or_editor(None, repo.get_entry(entry_uuid).text)
    else:
        text = _text_or_editor(text)

    entry = repo.edit_text(entry_uuid, text, touch_time=update_time)
    output.render(ctx, entry_to_dict(entry), f"Edited: {entry.short_id}")


@main_app.command("move")
@error_feedback
def move(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Entry ID (short or full)"),
    target_project: str = typer.Argument(..., help="Target project name"),
):
    """Move entry to another project."""
    repo = _repository(ctx)
    entry = repo.move_project(repo.resolve(entry_id), target_project)
    output.render(ctx, entry_to_dict(entry), f"Moved: {entry.short_id} -> {entry.project}")


@main_app.command("done")
@error_feedback
def done(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Entry ID (short or full)"),
):
    """Mark entry as done."""
    repo = _repository(ctx)
    entry = repo.mark_done(repo.resolve(entry_id))
    output.render(ctx, entry_to_dict(entry), f"Done: {entry.short_id}")


@main_app.command("reopen")
@error_feedback
def reopen(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Entry ID (short or full)"),
):
    """Mark done entry as active again."""
    repo = _repository(ctx)
    entry = repo.reopen(repo.resolve(entry_id))
    output.render(ctx, entry_to_dict(entry), f"Reopened: {entry.short_id}")


@main_app.command("due")
@error_feedback
def due(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Entry ID (short or full)"),
    due_date: str = typer.Argument(..., help="Due date as YYYY-MM-DD, or - to clear"),
):
    """Set or clear the due date of an entry."""
    try:
        parsed = None if due_date == "-" else date.fromisoformat(due_date)
    except ValueError as e:
        raise typer.BadParameter(f"'{due_date}' is not a YYYY-MM-DD date") from e

    repo = _repository(ctx)
    entry = repo.set_due(repo.resolve(entry_id), parsed)
    output.render(ctx, entry_to_dict(entry), f"Due: {entry.short_id} {due_date}")


@main_app.command("projects")
@error_feedback
def projects(
    ctx: typer.Context,
    include_inactive: bool = typer.Option(
        False, "--include-inactive", "-i", help="Also list projects without active entries."
    ),
):
    """List projects with active, done and total counts."""
    repo = _repository(ctx)
    counts = repo.project_counts(include_inactive=include_inactive)
    totals = repo.totals()
    data = {"projects": [asdict(c) for c in counts], "totals": asdict(totals)}
    output.render(ctx, data, format_project_counts(counts, totals), essential=True)


@main_app.command("rename")
@error_feedback
def rename(
    ctx: typer.Context,
    old: str = typer.Argument(..., help="Current project name"),
    new: str = typer.Argument(..., help="New project name"),
):
    """Rename a project by moving all of its entries."""
    moved = _repository(ctx).rename_project(old, new)
    data = {"old": old, "new": new, "moved": moved}
    output.render(ctx, data, f"Renamed: {old} -> {new} ({moved} entries)")


@main_app.command("import")
@error_feedback
def import_cmd(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="Data directory or database file to import from"),
    import_all: bool = typer.Option(
        False, "--all", "-a", "--import_all", help="Import all projects instead of just the current project."
    ),
):
    """Import entries from another todust data file."""
    source = source.expanduser()
    if source.is_dir():
        source = source / config.settings(source)["db_file"]

    project = None if import_all else ctx.obj["project"]
    entry_source = EntrySource(source)
    try:
        imported = _repository(ctx).import_entries(entry_source, project)
    finally:
        entry_source.close()

    data = {"source": str(source), "project": project, "imported": imported}
    output.render(ctx, data, f"Imported: {imported} entries from {source}")


def main() -> None:
    """Entry point for the todust command."""
    try:
        main_app()
    except SystemExit:
        raise
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e


app = main_app
