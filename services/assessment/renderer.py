"""Question renderer for assessment attempts.

Turns one question plus its current answer into a presentation-neutral
`QuestionView`, and applies learner interactions to produce the next answer
value, which is handed to the caller's `on_change(question_id, value)`.

Dispatch is a table keyed by question type; unknown types fall back to free
text entry. The renderer keeps no state of its own, so answers for other
questions are never touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from packages.schemas.assessment import QUESTION_TYPES, Identifier, Question
from .codec import (
    Option,
    decode_match_pairs,
    decode_options,
    decode_order_items,
    normalize_text,
    resolve_boolean,
    resolve_ordering,
    resolve_pair_map,
    decode_answer,
)

log = logging.getLogger("beelearn.assessment.renderer")

OnChange = Callable[[Identifier, Any], None]

TRUE_FALSE_OPTIONS = [Option(id="true", text="True"), Option(id="false", text="False")]


# ----------------------------
# Interactions
# ----------------------------
@dataclass(frozen=True)
class Select:
    """Pick one option (by id or text) of a single-select control."""
    option: str


@dataclass(frozen=True)
class Toggle:
    """Check or uncheck one option of a multi-select control."""
    option: str
    checked: bool


@dataclass(frozen=True)
class EnterText:
    """Replace the text of a free-text or numeric control."""
    text: str


@dataclass(frozen=True)
class Assign:
    """Assign a right-hand item to a left-hand item; empty `right` clears it."""
    left: str
    right: str


@dataclass(frozen=True)
class Move:
    """Move the item at position `source` to position `target` (zero-based)."""
    source: int
    target: int


Interaction = Union[Select, Toggle, EnterText, Assign, Move]


# ----------------------------
# View
# ----------------------------
@dataclass
class QuestionView:
    """Everything a front end needs to draw one question."""
    question_id: Identifier
    control: str                         # radio | checkbox | text | number | textarea | match | order
    prompt: str
    prompt_html: Optional[str] = None
    image_url: Optional[str] = None
    hint: Optional[str] = None
    options: List[Option] = field(default_factory=list)
    selected: List[str] = field(default_factory=list)     # option ids
    text: str = ""
    left: List[str] = field(default_factory=list)
    right: List[str] = field(default_factory=list)
    pairs: Dict[str, str] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    multiline: bool = False
    min_rows: int = 1
    disabled: bool = False


# ----------------------------
# Per-type handlers
# ----------------------------
class _Handler:
    """Base handler: free-text entry (also the fallback for unknown types)."""
    control = "textarea"
    hint: Optional[str] = None
    multiline = True
    min_rows = 2

    def view(self, q: Question, answer: Any, v: QuestionView) -> None:
        v.text = normalize_text(decode_answer(q, answer))

    def apply(self, q: Question, answer: Any, action: Interaction) -> Any:
        if isinstance(action, EnterText):
            return action.text
        return _UNCHANGED


class _SingleChoice(_Handler):
    control = "radio"
    multiline = False
    min_rows = 1

    def view(self, q: Question, answer: Any, v: QuestionView) -> None:
        v.options = decode_options(q.option_spec)
        current = decode_answer(q, answer)
        v.selected = [o.id for o in v.options if current is not None and o.text == current][:1]

    def apply(self, q: Question, answer: Any, action: Interaction) -> Any:
        if not isinstance(action, Select):
            return _UNCHANGED
        return _option_text(action.option, decode_options(q.option_spec))


class _MultiSelect(_Handler):
    control = "checkbox"
    multiline = False
    min_rows = 1

    def view(self, q: Question, answer: Any, v: QuestionView) -> None:
        v.options = decode_options(q.option_spec)
        current = decode_answer(q, answer) or []
        v.selected = [o.id for o in v.options if o.text in current]

    def apply(self, q: Question, answer: Any, action: Interaction) -> Any:
        if not isinstance(action, Toggle):
            return _UNCHANGED
        text = _option_text(action.option, decode_options(q.option_spec))
        if text is _UNCHANGED:
            return _UNCHANGED
        current = list(decode_answer(q, answer) or [])
        if action.checked and text not in current:
            current.append(text)
        elif not action.checked and text in current:
            current.remove(text)
        return current


class _TrueFalse(_Handler):
    control = "radio"
    multiline = False
    min_rows = 1

    def view(self, q: Question, answer: Any, v: QuestionView) -> None:
        v.options = list(TRUE_FALSE_OPTIONS)
        sel = resolve_boolean(answer)
        v.selected = [sel] if sel else []

    def apply(self, q: Question, answer: Any, action: Interaction) -> Any:
        if not isinstance(action, Select):
            return _UNCHANGED
        return resolve_boolean(action.option) or _UNCHANGED


class _Numeric(_Handler):
    control = "number"
    multiline = False
    min_rows = 1


class _ShortText(_Handler):
    control = "text"
    multiline = False
    min_rows = 1


class _BlankText(_ShortText):
    hint = "Fill in the blank"


class _Essay(_Handler):
    min_rows = 6


class _Matching(_Handler):
    control = "match"
    hint = "Match each item on the left with the correct option on the right."
    multiline = False
    min_rows = 1

    def view(self, q: Question, answer: Any, v: QuestionView) -> None:
        cols = decode_match_pairs(q.option_spec)
        v.left, v.right = list(cols.left), list(cols.right)
        v.pairs = resolve_pair_map(answer)

    def apply(self, q: Question, answer: Any, action: Interaction) -> Any:
        if not isinstance(action, Assign):
            return _UNCHANGED
        left = decode_match_pairs(q.option_spec).left
        current = resolve_pair_map(answer)
        current[action.left] = action.right
        # unset entries are omitted; left-column order is kept
        ordered = [item for item in left if item in current] + [k for k in current if k not in left]
        return {k: current[k] for k in ordered if current[k].strip()}


class _Ordering(_Handler):
    control = "order"
    multiline = False
    min_rows = 1

    def view(self, q: Question, answer: Any, v: QuestionView) -> None:
        items = decode_order_items(q.option_spec)
        v.order = resolve_ordering(answer, items)
        v.hint = f"Arrange the items in the correct order (positions 1-{len(items)})."

    def apply(self, q: Question, answer: Any, action: Interaction) -> Any:
        if not isinstance(action, Move):
            return _UNCHANGED
        ordered = resolve_ordering(answer, decode_order_items(q.option_spec))
        n = len(ordered)
        if not (0 <= action.source < n and 0 <= action.target < n):
            return _UNCHANGED
        item = ordered.pop(action.source)
        ordered.insert(action.target, item)
        return ordered


_UNCHANGED: Any = object()


def _option_text(token: str, options: List[Option]) -> Any:
    """Resolve an option id or text to option text; _UNCHANGED when it matches nothing."""
    key = normalize_text(token).strip().lower()
    for o in options:
        if o.id.strip().lower() == key:
            return o.text
    for o in options:
        if o.text.strip().lower() == key:
            return o.text
    return _UNCHANGED


HANDLERS: Dict[str, _Handler] = {
    "multiple_choice": _SingleChoice(),
    "multi_select": _MultiSelect(),
    "true_false": _TrueFalse(),
    "numeric": _Numeric(),
    "fill_in_blank": _BlankText(),
    "short_answer": _Handler(),
    "essay": _Essay(),
    "matching": _Matching(),
    "ordering": _Ordering(),
}
_DEFAULT = _Handler()


def handler_for(question_type: str) -> _Handler:
    """Return the handler for a question type, falling back to free text."""
    if question_type not in QUESTION_TYPES:
        log.debug("Unknown question type %r; using the free-text control", question_type)
        return _DEFAULT
    return HANDLERS[question_type]


class QuestionRenderer:
    """Stateless dispatcher from question type to view and interaction handling."""

    def __init__(self, on_change: Optional[OnChange] = None, disabled: bool = False) -> None:
        """Create a renderer.

        Args:
            on_change: Callback receiving `(question_id, value)` for every accepted interaction.
            disabled: Read-only mode; interactions are ignored and `on_change` is never called.
        """
        self.on_change = on_change
        self.disabled = disabled

    def render(self, question: Question, answer: Any = None) -> QuestionView:
        """Build the view of `question` with its current `answer` (None when unanswered)."""
        h = handler_for(question.type)
        v = QuestionView(
            question_id=question.id,
            control=h.control,
            prompt=question.prompt,
            prompt_html=question.prompt_html,
            image_url=question.image_url,
            hint=h.hint,
            multiline=h.multiline,
            min_rows=h.min_rows,
            disabled=self.disabled,
        )
        h.view(question, answer, v)
        return v

    def interact(self, question: Question, answer: Any, action: Interaction) -> Any:
        """Apply one interaction and return the next answer value.

        The new value is passed to `on_change`. Interactions that do not fit
        the question type (or arrive while disabled) leave the answer as it
        was and do not call `on_change`.
        """
        if self.disabled:
            return answer
        value = handler_for(question.type).apply(question, answer, action)
        if value is _UNCHANGED:
            log.debug("Ignored %s for question %s (%s)", type(action).__name__, question.id, question.type)
            return answer
        if self.on_change is not None:
            self.on_change(question.id, value)
        return value
