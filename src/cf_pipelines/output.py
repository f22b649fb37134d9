"""Console rendering for the pipelines CLI.

Markup and emoji codes are disabled on every console: server messages such as
``Pipeline does not exist [code: 1000]`` must be printed verbatim.
"""

import json
from collections.abc import Iterable
from typing import IO, Any

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .errors import PipelinesError
from .models import PipelineEntry

ERROR_PREFIX = "✘ [ERROR] "
WARNING_PREFIX = "▲ [WARNING] "


def create_console(*, stderr: bool = False, file: IO[str] | None = None) -> Console:
    """Return a console that prints text exactly as given."""
    return Console(
        stderr=stderr,
        file=file,
        markup=False,
        emoji=False,
        highlight=False,
        soft_wrap=True,
    )


def print_warning(console: Console, message: str) -> None:
    """Print a highlighted warning line."""
    console.print(Text(WARNING_PREFIX + message, style="yellow"))


def print_error(console: Console, exc: BaseException) -> None:
    """Print an error; API errors get one indented line per server message."""
    headline = exc.headline if isinstance(exc, PipelinesError) else str(exc)
    details = exc.details if isinstance(exc, PipelinesError) else []
    console.print(Text(ERROR_PREFIX + headline, style="bold red"))
    if details:
        console.print()
        for line in details:
            console.print(f"  {line}")
    console.print()


def print_json(console: Console, data: Any) -> None:
    """Print ``data`` as indented JSON."""
    console.print(json.dumps(data, indent=2, ensure_ascii=False))


def build_pipeline_table(entries: Iterable[PipelineEntry]) -> Table:
    """Build the ``name | id | endpoint`` listing table."""
    table = Table(box=box.SQUARE, show_lines=False)
    table.add_column("name")
    table.add_column("id")
    table.add_column("endpoint")
    for entry in entries:
        table.add_row(entry.name, entry.id, entry.endpoint or "")
    return table


__all__ = [
    "ERROR_PREFIX",
    "WARNING_PREFIX",
    "build_pipeline_table",
    "create_console",
    "print_error",
    "print_json",
    "print_warning",
]
