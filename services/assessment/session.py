"""Attempt session controller.

Coordinates one assessment attempt:

    hydrating -> ready -> submitting -> submitted
        |                      |
        v                      +--(failure)--> ready
      error

- hydrate: resume from the attempt cache when the location carries an attempt
  id, otherwise start a new attempt, cache it and rewrite the location.
- answer: local state first, then a detached autosave; failures show a banner
  but never roll back the local value.
- submit: manual submit and timer expiry share one guarded path, so only one
  network submit is ever issued per attempt.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from packages.common.config import Settings, get_settings
from packages.common.logging import set_attempt_id
from packages.common.metrics import mark_autosave, mark_hydration, mark_submit
from packages.schemas.assessment import AttemptReview, AttemptStatus, Identifier, Question, StartAttemptPayload
from .cache import AttemptCache, CacheEntryError, cache_from_settings
from .client import ApiError, AssessmentClient
from .codec import encode_answer
from .navigation import MemoryNavigator, Navigator, attempt_id_from, results_url, take_url
from .renderer import Interaction, QuestionRenderer, QuestionView
from .timer import AttemptTimer

log = logging.getLogger("beelearn.assessment.session")

TimerFactory = Callable[..., AttemptTimer]

LOAD_ERROR = "Unable to load assessment attempt."
SAVE_ERROR = "Unable to save answer."
SUBMIT_ERROR = "Unable to submit attempt."


class SessionState(str, Enum):
    HYDRATING = "hydrating"
    READY = "ready"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    ERROR = "error"


class AttemptStateError(Exception):
    """The session was used in a state that does not allow the operation."""


class AttemptSession:
    """State machine for one learner's run through an assessment."""

    def __init__(
        self,
        client: AssessmentClient,
        assessment_id: Identifier,
        navigator: Optional[Navigator] = None,
        cache: Optional[AttemptCache] = None,
        settings: Optional[Settings] = None,
        timer_factory: TimerFactory = AttemptTimer.for_limit,
    ) -> None:
        """Create a session in the `hydrating` state.

        Args:
            client: Backend client.
            assessment_id: Assessment being taken.
            navigator: Location holder; its query string may carry `attemptId` to resume.
            cache: Attempt cache; defaults to the one selected by settings.
            settings: Settings override.
            timer_factory: Builds the attempt timer from `(limit_seconds, on_expire=..., warning_threshold=...)`.
        """
        self.settings = settings or get_settings()
        self.client = client
        self.assessment_id = assessment_id
        self.navigator = navigator or MemoryNavigator(take_url(assessment_id))
        self.cache = cache if cache is not None else cache_from_settings(self.settings)
        self._timer_factory = timer_factory

        self.state = SessionState.HYDRATING
        self.payload: Optional[StartAttemptPayload] = None
        self.questions: List[Question] = []
        self.answers: Dict[Identifier, Any] = {}
        self.current_index = 0
        self.error_message: Optional[str] = None
        self.saving_question_id: Optional[Identifier] = None
        self.started_at: Optional[datetime] = None
        self.resumed = False
        self.timer: Optional[AttemptTimer] = None
        self._by_id: Dict[Identifier, Question] = {}
        self._pending: Set[asyncio.Task] = set()

    async def __aenter__(self) -> "AttemptSession":
        await self.hydrate()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ---------- identity ----------
    @property
    def attempt_id(self) -> str:
        """Server-issued attempt id; before hydration, the one carried by the location."""
        if self.payload is not None:
            return self.payload.attempt_id
        return attempt_id_from(self.navigator.location)

    @property
    def status(self) -> AttemptStatus:
        return "submitted" if self.state is SessionState.SUBMITTED else "in_progress"

    @property
    def time_limit_seconds(self) -> int:
        return self.payload.assessment.time_limit_seconds if self.payload else 0

    # ---------- hydrate ----------
    async def hydrate(self) -> None:
        """Resume the cached attempt named by the location, or start a new one.

        Any failure (invalid id, backend error, unreadable cache entry) moves
        the session to `error` with `error_message` set.
        """
        if self.state is not SessionState.HYDRATING:
            return
        self.error_message = None
        source = "cache"
        try:
            if self.assessment_id is None or not str(self.assessment_id).strip():
                raise AttemptStateError("Invalid assessment id.")
            requested = attempt_id_from(self.navigator.location)
            payload = self.cache.load(requested) if requested else None
            if payload is None:
                source = "network"
                payload = await self.client.start_attempt(self.assessment_id)
                self.cache.store(payload)
                self.navigator.replace(take_url(self.assessment_id, payload.attempt_id))
        except (ApiError, CacheEntryError, AttemptStateError) as e:
            self.state = SessionState.ERROR
            self.error_message = str(e) or LOAD_ERROR
            mark_hydration("error")
            log.warning("Attempt hydration failed for assessment %s: %s", self.assessment_id, self.error_message)
            return

        mark_hydration(source)
        self._load(payload, resumed=source == "cache")

    def _load(self, payload: StartAttemptPayload, resumed: bool) -> None:
        self.payload = payload
        self.resumed = resumed
        self.questions = payload.flat_questions()
        self._by_id = {q.id: q for q in self.questions}
        self.started_at = datetime.now(timezone.utc)
        set_attempt_id(payload.attempt_id)
        self.state = SessionState.READY
        self.timer = self._timer_factory(
            self.time_limit_seconds,
            on_expire=self._auto_submit,
            warning_threshold=self.settings.TIMER_WARNING_SECONDS,
        )
        self.timer.start()
        log.info(
            "Attempt %s %s: %d questions, limit %ss",
            payload.attempt_id, "resumed" if resumed else "started", len(self.questions), self.time_limit_seconds,
        )

    # ---------- answers ----------
    def question(self, question_id: Identifier) -> Question:
        """Look up a question of this attempt by id."""
        try:
            return self._by_id[question_id]
        except KeyError:
            raise AttemptStateError(f"Unknown question {question_id!r}.") from None

    def answer(self, question_id: Identifier, value: Any) -> Optional[asyncio.Task]:
        """Record an answer locally, then autosave it in the background.

        Returns the detached autosave task, or None when the attempt is no
        longer editable.
        """
        if self.state in (SessionState.SUBMITTING, SessionState.SUBMITTED):
            log.info("Ignoring answer for %s: attempt is %s", question_id, self.state.value)
            return None
        if self.state is not SessionState.READY:
            raise AttemptStateError("Attempt is not ready.")
        q = self.question(question_id)
        self.answers[question_id] = value
        encoded = encode_answer(q, value)
        task = asyncio.get_running_loop().create_task(self._save(question_id, encoded))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _save(self, question_id: Identifier, encoded: Any) -> None:
        self.error_message = None
        self.saving_question_id = question_id
        try:
            await self.client.save_answer(self.attempt_id, question_id, encoded)
            mark_autosave("ok")
        except ApiError as e:
            self.error_message = e.message or SAVE_ERROR
            mark_autosave("fail")
            log.warning("Autosave failed for question %s: %s", question_id, self.error_message)
        finally:
            if self.saving_question_id == question_id:
                self.saving_question_id = None

    def interact(self, action: Interaction) -> Any:
        """Apply a learner interaction to the current question; returns its new answer."""
        q = self.current_question
        if q is None:
            raise AttemptStateError("Attempt has no current question.")
        return self.renderer().interact(q, self.answers.get(q.id), action)

    def renderer(self) -> QuestionRenderer:
        """Renderer wired to `answer`; read-only once the attempt leaves `ready`."""
        return QuestionRenderer(on_change=self.answer, disabled=self.state is not SessionState.READY)

    def view(self) -> Optional[QuestionView]:
        """View of the current question with its latest local answer."""
        q = self.current_question
        if q is None:
            return None
        return self.renderer().render(q, self.answers.get(q.id))

    # ---------- navigation ----------
    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def go_to(self, index: int) -> int:
        """Jump to a question index (clamped); returns the new index."""
        if self.questions:
            self.current_index = min(max(index, 0), len(self.questions) - 1)
        return self.current_index

    def next(self) -> int:
        return self.go_to(self.current_index + 1)

    def previous(self) -> int:
        return self.go_to(self.current_index - 1)

    @property
    def progress(self) -> int:
        """Position of the current question as a rounded percentage."""
        if not self.questions:
            return 0
        return int(math.floor((self.current_index + 1) / len(self.questions) * 100 + 0.5))

    @property
    def answered_count(self) -> int:
        """Questions the learner has touched."""
        return sum(1 for q in self.questions if q.id in self.answers)

    def question_status(self, index: int) -> str:
        """Navigation-strip status of a question: current, answered or unanswered."""
        if index == self.current_index:
            return "current"
        if 0 <= index < len(self.questions) and self.questions[index].id in self.answers:
            return "answered"
        return "unanswered"

    # ---------- submit ----------
    async def submit(self) -> bool:
        """Manual submit; returns True when this call submitted the attempt."""
        return await self._submit("manual")

    async def _auto_submit(self) -> bool:
        return await self._submit("auto")

    async def _submit(self, trigger: str) -> bool:
        # check-then-act on state; no await between the check and the transition
        if self.state in (SessionState.SUBMITTING, SessionState.SUBMITTED):
            mark_submit(trigger, "skipped")
            log.info("Skipping %s submit: attempt already %s", trigger, self.state.value)
            return False
        if self.state is not SessionState.READY:
            mark_submit(trigger, "skipped")
            log.warning("Cannot %s-submit from state %s", trigger, self.state.value)
            return False

        self.state = SessionState.SUBMITTING
        if trigger == "manual":
            self.error_message = None
        attempt_id = self.attempt_id
        try:
            await self.client.submit_attempt(attempt_id)
        except ApiError as e:
            self.state = SessionState.READY
            mark_submit(trigger, "fail")
            if trigger == "manual":
                self.error_message = e.message or SUBMIT_ERROR
                log.warning("Submit failed for attempt %s: %s", attempt_id, self.error_message)
            else:
                log.warning("Auto-submit failed for attempt %s: %s", attempt_id, e.message)
            return False

        self.state = SessionState.SUBMITTED
        mark_submit(trigger, "ok")
        if self.timer is not None:
            self.timer.cancel()
        self.cache.evict(attempt_id)
        self.navigator.push(results_url(attempt_id))
        log.info("Attempt %s submitted (%s)", attempt_id, trigger)
        return True

    async def fetch_review(self) -> AttemptReview:
        """Load the graded review of this attempt once submitted."""
        if self.state is not SessionState.SUBMITTED:
            raise AttemptStateError("Attempt has not been submitted.")
        return await self.client.fetch_review(self.attempt_id)

    # ---------- teardown ----------
    async def drain(self) -> None:
        """Wait for in-flight autosaves and any running auto-submit."""
        pending = list(self._pending)
        if self.timer is not None and self.timer.expiry_task is not None:
            pending.append(self.timer.expiry_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Tear the timer down; in-flight autosaves are left to finish."""
        if self.timer is not None:
            await self.timer.aclose()
