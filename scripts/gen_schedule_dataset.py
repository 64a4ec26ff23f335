#!/usr/bin/env python3
"""Synthetic schedule workbook generator.

Produces a workbook in the layout the importer reads:
- one sheet per event day, named YYYY-MM-DD
- row 1: title row (ignored)
- row 2: header row ``Time | Booth: A1 | Booth: A2 | ...``
- then one block per session: the first cell holds the label (``Session 09:30``),
  each booth column lists ``› Vendor`` + vendor staff, then ``› Visitor Co`` + visitors

Useful for manual checks and for timing the parse on large schedules.
"""
from __future__ import annotations

import argparse
import sys
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pandas as pd

FIRST_NAMES = ["Alex", "Sam", "Maria", "Kenji", "Priya", "Jon", "Lea", "Omar", "Yuki", "Ana", "Tom", "Ivy"]
LAST_NAMES = ["Smith", "Tanaka", "Garcia", "Khan", "Muller", "Rossi", "Chen", "Okafor", "Silva", "Novak"]
COMPANIES = ["Acme Corp", "Globex", "Initech", "Umbrella", "Stark Industries", "Wayne Enterprises", "Hooli"]
MARKER = "›"


def _person(rng: np.random.Generator) -> str:
    return f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"


def generate_day_grid(
    booths: int,
    sessions: int,
    visitors: int,
    rng: np.random.Generator,
    *,
    first_start_minutes: int = 9 * 60,
    slot_minutes: int = 30,
) -> list[list[str]]:
    """Build the cell grid for one day sheet."""
    width = booths + 1
    grid: list[list[str]] = [["Event Schedule"] + [""] * booths]
    grid.append(["Time"] + [f"Booth: A{b + 1}" for b in range(booths)])

    vendors = [COMPANIES[b % len(COMPANIES)] for b in range(booths)]
    for s in range(sessions):
        minutes = first_start_minutes + s * slot_minutes
        block_height = 3 + visitors
        block = [[""] * width for _ in range(block_height)]
        block[0][0] = f"Session {minutes // 60:02d}:{minutes % 60:02d}"
        for b in range(booths):
            col = b + 1
            block[0][col] = f"{MARKER} {vendors[b]}"
            block[1][col] = _person(rng)
            visitor_company = str(rng.choice([c for c in COMPANIES if c != vendors[b]]))
            block[2][col] = f"{MARKER} {visitor_company}"
            for v in range(int(rng.integers(0, visitors + 1))):
                block[3 + v][col] = _person(rng)
        grid.extend(block)
    return grid


def create_schedule_workbook(
    output_path: Path,
    *,
    days: int,
    booths: int,
    sessions: int,
    visitors: int,
    start: date,
    seed: int = 42,
) -> None:
    rng = np.random.default_rng(seed)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        for d in range(days):
            sheet_name = (start + timedelta(days=d)).isoformat()
            grid = generate_day_grid(booths, sessions, visitors, rng)
            pd.DataFrame(grid).to_excel(writer, sheet_name=sheet_name, header=False, index=False)

    print(f"Created schedule workbook: {output_path}")
    print(f"  Days: {days} starting {start.isoformat()}")
    print(f"  Booths per day: {booths}")
    print(f"  Sessions per day: {sessions}")
    print(f"  Max visitors per booth and session: {visitors}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic event schedule workbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s schedule.xlsx
  %(prog)s big.xlsx --days 3 --booths 60 --sessions 16 --visitors 4
        """,
    )
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--days", type=int, default=2, help="Number of day sheets (default: 2)")
    parser.add_argument("--booths", type=int, default=10, help="Booth columns per sheet (default: 10)")
    parser.add_argument("--sessions", type=int, default=8, help="Sessions per day (default: 8)")
    parser.add_argument("--visitors", type=int, default=3, help="Max visitors per booth/session (default: 3)")
    parser.add_argument("--start", type=date.fromisoformat, default=date(2024, 5, 1), help="First day (YYYY-MM-DD)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    for name in ("days", "booths", "sessions"):
        if getattr(args, name) <= 0:
            print(f"Error: --{name} must be positive", file=sys.stderr)
            return 1
    if args.visitors < 0:
        print("Error: --visitors must not be negative", file=sys.stderr)
        return 1

    create_schedule_workbook(
        args.output,
        days=args.days,
        booths=args.booths,
        sessions=args.sessions,
        visitors=args.visitors,
        start=args.start,
        seed=args.seed,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
