from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

"""DB batch insert helper.

One INSERT ... VALUES %s statement per page via psycopg2.extras.execute_values.
RETURNING is only requested when the caller needs generated ids (booths, sessions,
attendees); link tables are inserted without it.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing data for a single batch insert call."""
    table: str
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float  # Time spent on execute_values call
    start_time: float  # time.time() at start
    end_time: float  # time.time() at end


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def _quote_ident(name: str) -> str:
    return ".".join(f'"{part}"' for part in name.split("."))


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: Sequence[str] | None = None,
    on_conflict: str | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (trusted identifier, quoted here)
    columns: insert columns
    rows: row sequences in column order
    returning: columns to fetch back (e.g. ["id", "physical_id"]); None = no RETURNING
    on_conflict: raw conflict clause appended as-is, e.g. "ON CONFLICT DO NOTHING"
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the call. Not invoked when ``rows``
        is empty (the function returns early).
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(_quote_ident(c) for c in columns)
    sql = f"INSERT INTO {_quote_ident(table)} ({cols_sql}) VALUES %s"
    if on_conflict:
        sql += f" {on_conflict}"
    if returning:
        sql += " RETURNING " + ",".join(_quote_ident(c) for c in returning)

    start_time = time.time()
    returned: list[tuple[Any, ...]] | None = None
    try:
        # fetch=True collects RETURNING rows across all pages
        returned = execute_values(cursor, sql, rows_list, page_size=page_size, fetch=bool(returning))
    except (psycopg2.OperationalError, psycopg2.InterfaceError):
        # 接続断は呼び出し側で run ごと打ち切る
        raise
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    table=table,
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    if returning:
        values = [tuple(r) for r in (returned or [])]
        return InsertResult(inserted_rows=len(values), returned_values=values)
    return InsertResult(inserted_rows=len(rows_list), returned_values=None)
