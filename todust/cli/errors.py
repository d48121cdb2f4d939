"""CLI error handling: wrap commands to report errors instead of silent failures."""

from functools import wraps

import typer
from click.exceptions import Exit

from todust.errors import (
    AmbiguousIdError,
    ConstraintViolationError,
    InvalidProjectError,
    MigrationError,
    NotFoundError,
    StoreUnavailableError,
)


def error_feedback(f):
    """Wrap command to catch exceptions and report them before exiting.

    Domain errors keep their kind in the message; every failure exits with 1.
    """

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (SystemExit, Exit, typer.BadParameter):
            raise
        except NotFoundError as e:
            typer.echo(f"Not found: {e}", err=True)
            raise typer.Exit(1) from e
        except (InvalidProjectError, AmbiguousIdError, ValueError) as e:
            typer.echo(f"Invalid input: {e}", err=True)
            raise typer.Exit(1) from e
        except (StoreUnavailableError, ConstraintViolationError, MigrationError) as e:
            typer.echo(f"Store error: {e}", err=True)
            raise typer.Exit(1) from e
        except OSError as e:
            typer.echo(f"File error: {e}", err=True)
            raise typer.Exit(1) from e
        except Exception as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e

    return wrapper
