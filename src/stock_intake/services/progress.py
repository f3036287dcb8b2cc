from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

Row validation is quick for typical uploads; the bar only appears for large
sheets and only when stdout is a terminal, so CI logs and captured output stay
free of control sequences.
"""

__all__ = [
    "RowProgress",
    "is_tty_enabled",
    "MIN_ROWS_FOR_BAR",
]

MIN_ROWS_FOR_BAR = 500


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class RowProgress:
    """Progress bar over the rows of one upload.

    Disabled (every call a no-op) when stdout is not a TTY or the sheet is
    smaller than MIN_ROWS_FOR_BAR rows.
    """

    def __init__(self, total_rows: int, *, description: str = "Processing rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.done = 0

        self.enabled = is_tty_enabled() and total_rows >= MIN_ROWS_FOR_BAR
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=False,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, n: int = 1) -> None:
        self.done += n
        if self.pbar is not None:
            self.pbar.update(n)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RowProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
