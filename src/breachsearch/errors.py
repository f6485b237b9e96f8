"""Exceptions raised by the search engine."""

from __future__ import annotations

from typing import Any, Sequence


class BreachSearchError(Exception):
    """Base class for breachsearch errors."""


class InvalidQueryError(BreachSearchError, ValueError):
    """The search request was rejected before touching any store."""

    def __init__(self, message: str, errors: Sequence[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class SearchUnavailableError(BreachSearchError):
    """Neither store could answer the query.

    Distinct from an empty result: callers must not render this as "no matches".
    """
