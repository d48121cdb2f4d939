import json as json_lib

import typer


def init_context(
    ctx: typer.Context,
    json_output: bool = False,
    quiet_output: bool = False,
) -> None:
    """Initialize CLI context with standard output flags."""
    if ctx.obj is None or not isinstance(ctx.obj, dict):
        ctx.obj = {}
    ctx.obj["json_output"] = json_output
    ctx.obj["quiet_output"] = quiet_output


def is_json_mode(ctx: typer.Context) -> bool:
    return ctx.obj.get("json_output", False) if ctx.obj else False


def is_quiet_mode(ctx: typer.Context) -> bool:
    return ctx.obj.get("quiet_output", False) if ctx.obj else False


def render(ctx: typer.Context, data, text: str, essential: bool = False) -> None:
    """Print data as JSON in --json mode, text otherwise.

    Non-essential text (confirmations) is dropped under --quiet.
    """
    if is_json_mode(ctx):
        typer.echo(json_lib.dumps(data, indent=2))
    elif essential or not is_quiet_mode(ctx):
        typer.echo(text)
