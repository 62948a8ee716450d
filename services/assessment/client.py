"""Async HTTP client for the assessment backend.

Wraps the four calls the attempt engine needs (start, save answer, submit,
review) on top of `httpx.AsyncClient`, attaches a bearer token, retries once
after a token refresh on 401, and turns every failure into an `ApiError`
carrying a user-facing message.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from packages.common.config import Settings, get_settings
from packages.schemas.assessment import AttemptReview, Identifier, StartAttemptPayload

log = logging.getLogger("beelearn.assessment.client")

TokenProvider = Callable[[], Optional[str]]
TokenRefresher = Callable[[], Awaitable[Optional[str]]]
M = TypeVar("M", bound=BaseModel)


class ApiError(Exception):
    """A failed backend call, with a message fit for display."""

    def __init__(self, message: str, status: Optional[int] = None, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.path = path


def extract_message(payload: Any) -> Optional[str]:
    """Return `payload["message"]` when it is a string."""
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return None


def build_error_message(status: int, payload: Any, path: str) -> str:
    """User-facing message for a non-2xx response."""
    msg = extract_message(payload)
    if msg:
        return msg
    if status == 401:
        return f"Unauthorized ({path})"
    return f"Request failed ({status}) for {path}"


def _segment(value: Identifier) -> str:
    return quote(str(value), safe="")


class AssessmentClient:
    """Backend collaborator for attempt start / answer / submit / review."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        refresh_token: Optional[TokenRefresher] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """Create a client.

        Args:
            base_url: Backend root; defaults to `BACKEND_URL`.
            token_provider: Returns the current bearer token (or None).
            refresh_token: Async callable returning a fresh token after a 401, or None.
            timeout: Request timeout in seconds; defaults to `REQUEST_TIMEOUT`.
            transport: Optional httpx transport (e.g. `httpx.ASGITransport` in tests).
            settings: Settings override.
        """
        s = settings or get_settings()
        if token_provider is None and s.AUTH_TOKEN:
            token_provider = lambda: s.AUTH_TOKEN  # noqa: E731
        self.token_provider = token_provider
        self.refresh_token = refresh_token
        self._http = httpx.AsyncClient(
            base_url=base_url or s.BACKEND_URL,
            timeout=timeout or s.REQUEST_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "AssessmentClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # ---------- operations ----------
    async def start_attempt(self, assessment_id: Identifier) -> StartAttemptPayload:
        """Start a new attempt for an assessment."""
        data = await self.request("POST", f"/api/assessments/{_segment(assessment_id)}/start")
        return self._parse(StartAttemptPayload, data, "start attempt")

    async def save_answer(self, attempt_id: str, question_id: Identifier, value: Any) -> None:
        """Persist one encoded answer."""
        await self.request(
            "PUT",
            f"/api/attempts/{_segment(attempt_id)}/answer",
            json={"assessmentQuestionId": question_id, "answer": value},
        )

    async def submit_attempt(self, attempt_id: str) -> None:
        """Submit an attempt for grading."""
        await self.request("POST", f"/api/attempts/{_segment(attempt_id)}/submit")

    async def fetch_review(self, attempt_id: str) -> AttemptReview:
        """Fetch the graded review of a submitted attempt."""
        data = await self.request("GET", f"/api/attempts/{_segment(attempt_id)}/review")
        return self._parse(AttemptReview, data, "review")

    # ---------- plumbing ----------
    async def request(self, method: str, path: str, json: Any = None) -> Any:
        """Send a request and return its decoded JSON body (`{}` when empty)."""
        return await self._send(method, path, json, allow_refresh=True)

    async def _send(self, method: str, path: str, body: Any, allow_refresh: bool, token: Optional[str] = None) -> Any:
        headers = {}
        token = token or (self.token_provider() if self.token_provider else None)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = await self._http.request(method, path, json=body, headers=headers)
        except httpx.HTTPError as e:
            log.warning("%s %s failed: %s", method, path, e)
            raise ApiError(str(e) or f"Network error for {path}", path=path) from e

        if resp.is_success:
            return _json_or_empty(resp)

        if resp.status_code == 401 and allow_refresh and self.refresh_token is not None:
            fresh = await self.refresh_token()
            if fresh:
                log.info("Retrying %s %s with refreshed token", method, path)
                return await self._send(method, path, body, allow_refresh=False, token=fresh)

        message = build_error_message(resp.status_code, _json_or_empty(resp), path)
        log.warning("%s %s -> %s: %s", method, path, resp.status_code, message)
        raise ApiError(message, status=resp.status_code, path=path)

    @staticmethod
    def _parse(model: Type[M], data: Any, what: str) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            log.warning("Malformed %s payload: %s", what, e)
            raise ApiError(f"Malformed {what} response from server.") from e


def _json_or_empty(resp: httpx.Response) -> Any:
    """Decode a JSON body, tolerating empty or non-JSON bodies."""
    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError:
        return {}
