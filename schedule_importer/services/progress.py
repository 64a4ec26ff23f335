from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display service with tqdm (TTY only).

- PhaseProgress: one bar over the six import phases, description = current phase,
  postfix = per-phase counts
- SheetProgressIndicator: one status line per parsed sheet
- Non-TTY (CI, redirected output): everything is disabled to avoid ANSI spam
"""

__all__ = [
    "PhaseProgress",
    "is_tty_enabled",
    "SheetProgressIndicator",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class PhaseProgress:
    """Progress tracker over the import phases."""

    def __init__(self, total_phases: int, *, description: str = "Importing") -> None:
        self.total_phases = total_phases
        self.description = description
        self.current_phase = 0
        self.current_label: str | None = None

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_phases,
                desc=description,
                unit="phase",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_phase(self, label: str) -> None:
        self.current_phase += 1
        self.current_label = label
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({label})")

    def finish_phase(self, **counts: Any) -> None:
        if self.enabled and self.pbar is not None:
            if counts:
                self.pbar.set_postfix(**counts)
            self.pbar.update(1)
            self.pbar.set_description(self.description)
        self.current_label = None

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> PhaseProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class SheetProgressIndicator:
    """Simple per-sheet status line while parsing a workbook."""

    def __init__(self, workbook_name: str, total_sheets: int) -> None:
        self.workbook_name = workbook_name
        self.total_sheets = total_sheets
        self.current_sheet = 0
        self.enabled = is_tty_enabled()

    def start_sheet(self, sheet_name: str) -> None:
        self.current_sheet += 1
        if self.enabled:
            print(f"  Sheet {self.current_sheet}/{self.total_sheets}: {sheet_name}", end="", flush=True)

    def finish_sheet(self, success: bool = True, sessions_parsed: int = 0) -> None:
        if self.enabled:
            status = "✓" if success else "✗"
            if sessions_parsed > 0:
                print(f" - {sessions_parsed} sessions {status}")
            else:
                print(f" {status}")
