"""Navigation state for the attempt runner.

The take-page location carries the attempt id in its query string so that a
reload lands on the resume path; the results location is keyed by attempt id.
"""

from __future__ import annotations

from typing import List, Optional, Protocol
from urllib.parse import parse_qs, quote, urlsplit

from packages.schemas.assessment import Identifier


def take_url(assessment_id: Identifier, attempt_id: Optional[str] = None) -> str:
    """Location of the take page, optionally carrying the attempt id."""
    base = f"/assessments/{quote(str(assessment_id), safe='')}/take"
    if attempt_id:
        return f"{base}?attemptId={quote(attempt_id, safe='')}"
    return base


def results_url(attempt_id: str) -> str:
    """Location of the results page for an attempt."""
    return f"/assessments/results/{quote(attempt_id, safe='')}"


def attempt_id_from(location: str) -> str:
    """Attempt id carried by a location's query string, or ""."""
    values = parse_qs(urlsplit(location).query).get("attemptId") or [""]
    return values[0]


class Navigator(Protocol):
    """Where the runner is, and how it moves."""

    @property
    def location(self) -> str: ...

    def replace(self, location: str) -> None: ...

    def push(self, location: str) -> None: ...


class MemoryNavigator:
    """Navigator keeping its history in a list."""

    def __init__(self, location: str = "/") -> None:
        self.history: List[str] = [location]

    @property
    def location(self) -> str:
        return self.history[-1]

    def replace(self, location: str) -> None:
        self.history[-1] = location

    def push(self, location: str) -> None:
        self.history.append(location)
