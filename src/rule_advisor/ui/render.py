"""Plain-text output for the human (non ``--json``) CLI mode.

Everything goes to stdout through :func:`print` so ``capsys`` can assert it.
Rule tables are indented two spaces under their heading; columns are padded to
the widest cell and trailing padding is stripped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

_INDENT = "  "
_GAP = "  "


class CLIRenderer:
    """Prints headings, key/value lines and rule tables; ``verbose`` shows fix snippets."""

    def __init__(self, *, verbose: bool = False) -> None:
        self.verbose = verbose

    def heading(self, text: str) -> None:
        print(text)

    def text(self, line: str) -> None:
        print(line)

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}")

    def section(self, title: str) -> None:
        print()
        print(title)

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"{_INDENT}{prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[object]],
        *,
        title: str | None = None,
    ) -> None:
        """Print ``rows`` under ``headers``; an empty table prints nothing, title included."""

        if not rows:
            return
        grid = [[str(cell) for cell in headers]]
        grid += [[str(cell) for cell in row[: len(headers)]] for row in rows]
        widths = [
            max(len(line[col]) if col < len(line) else 0 for line in grid)
            for col in range(len(headers))
        ]

        if title:
            self.section(title)
        self._row(grid[0], widths)
        print(_INDENT + _GAP.join("-" * width for width in widths))
        for line in grid[1:]:
            self._row(line, widths)

    @staticmethod
    def _row(cells: Sequence[str], widths: Sequence[int]) -> None:
        padded = [
            (cells[col] if col < len(cells) else "").ljust(width) for col, width in enumerate(widths)
        ]
        print((_INDENT + _GAP.join(padded)).rstrip())


def create_renderer(*, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
