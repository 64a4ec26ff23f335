from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

"""Tagged results for heuristically resolved values.

Dates inferred from sheet names, times guessed from session labels and renamed
session names all follow the same pattern: a parse either succeeds outright or
falls back to a value a human should confirm. Each fallback carries its own reason.
"""

__all__ = [
    "Resolved",
    "ResolvedWithReview",
    "Resolution",
    "needs_review",
]

T = TypeVar("T")


@dataclass(frozen=True)
class Resolved(Generic[T]):
    value: T


@dataclass(frozen=True)
class ResolvedWithReview(Generic[T]):
    value: T
    reason: str


Resolution = Union[Resolved[T], ResolvedWithReview[T]]


def needs_review(resolution: Resolution) -> bool:
    return isinstance(resolution, ResolvedWithReview)
