"""Answer codec for assessment attempts.

Functions:
- decode_options / decode_match_pairs / decode_order_items: parse the untyped
  `option_spec` payload of a question into well-typed lists.
- extract_answer_value / has_answer_value: unwrap backend answer envelopes and
  decide whether a learner has answered.
- encode_answer / decode_answer: the single translation boundary between the
  in-memory answer of a question type and its wire form.
- format_answer_for_display: human-readable rendering used by the review view.

Every function here is total: malformed payloads decode to empty or
placeholder values instead of raising.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from packages.schemas.assessment import Question

log = logging.getLogger("beelearn.assessment.codec")

EMPTY_DISPLAY = "—"
PAIR_SEPARATOR = " -> "
LIST_SEPARATOR = ", "

_WRAPPER_KEYS = ("value", "answer", "correctAnswer")
_TRUE_TOKENS = {"true", "1", "yes"}
_FALSE_TOKENS = {"false", "0", "no"}


@dataclass(frozen=True)
class Option:
    """A selectable option of a choice question."""
    id: str
    text: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class MatchPairs:
    """Left (premise) and right (response) columns of a matching question."""
    left: List[str] = field(default_factory=list)
    right: List[str] = field(default_factory=list)


# ----------------------------
# Scalars
# ----------------------------
def normalize_text(value: Any) -> str:
    """Render a scalar as text; non-scalars become an empty string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        return str(int(value)) if value.is_integer() else str(value)
    return ""


def _stringify(value: Any) -> str:
    """Best-effort text for an arbitrary value (scalar text, JSON, then str())."""
    text = normalize_text(value)
    if text or isinstance(value, str):
        return text
    if value is None:
        return ""
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


def _first_present(obj: Dict[str, Any], *keys: str) -> Any:
    """Return the first non-None value among `keys` in `obj`."""
    for k in keys:
        if obj.get(k) is not None:
            return obj[k]
    return None


# ----------------------------
# Option spec decoding
# ----------------------------
def decode_options(option_spec: Any) -> List[Option]:
    """Decode a choice question's option payload into ordered `Option`s.

    Accepts a flat string list (ids are positional), a list of objects with
    `text` / `label` / `value` fallbacks, or an `{"options": [...]}` wrapper.
    Anything else decodes to an empty list.
    """
    if not option_spec:
        return []
    if isinstance(option_spec, dict):
        return decode_options(option_spec.get("options"))
    if not isinstance(option_spec, (list, tuple)):
        return []

    out: List[Option] = []
    for i, item in enumerate(option_spec):
        if isinstance(item, str):
            out.append(Option(id=str(i), text=item))
        elif isinstance(item, dict):
            text = _first_present(item, "text", "label", "value")
            oid = item.get("id")
            image = item.get("imageUrl")
            out.append(
                Option(
                    id=_stringify(oid) if oid is not None else str(i),
                    text=_stringify(text) if text is not None else _stringify(item),
                    image_url=image if isinstance(image, str) else None,
                )
            )
        else:
            out.append(Option(id=str(i), text=_stringify(item)))
    return out


def decode_match_pairs(option_spec: Any) -> MatchPairs:
    """Decode a matching question's payload into left/right columns.

    Accepts `{"pairs": [...]}`, a flat list of pair objects (`left`/`premise`,
    `right`/`response`), or an explicit `{"left": [...], "right": [...]}`.
    """
    if not option_spec:
        return MatchPairs()
    if isinstance(option_spec, (list, tuple)):
        left: List[str] = []
        right: List[str] = []
        for p in option_spec:
            if not isinstance(p, dict):
                continue
            left.append(normalize_text(_first_present(p, "left", "premise")))
            right.append(normalize_text(_first_present(p, "right", "response")))
        return MatchPairs(left=left, right=right)
    if isinstance(option_spec, dict):
        if option_spec.get("pairs"):
            return decode_match_pairs(option_spec["pairs"])
        lhs, rhs = option_spec.get("left"), option_spec.get("right")
        if isinstance(lhs, (list, tuple)) and isinstance(rhs, (list, tuple)):
            return MatchPairs(left=[_stringify(x) for x in lhs], right=[_stringify(x) for x in rhs])
    return MatchPairs()


def decode_order_items(option_spec: Any) -> List[str]:
    """Decode an ordering question's payload: a flat list or `{"items": [...]}`."""
    if not option_spec:
        return []
    if isinstance(option_spec, (list, tuple)):
        return [_stringify(item) for item in option_spec]
    if isinstance(option_spec, dict) and "items" in option_spec:
        return decode_order_items(option_spec["items"])
    return []


# ----------------------------
# Answer envelopes
# ----------------------------
def extract_answer_value(raw: Any) -> Any:
    """Unwrap `{"value"|"answer"|"correctAnswer": x}` envelopes; pass anything else through."""
    if isinstance(raw, dict):
        for key in _WRAPPER_KEYS:
            if key in raw:
                return raw[key]
    return raw


def has_answer_value(raw: Any) -> bool:
    """True iff the unwrapped value counts as an answer.

    Non-blank strings, finite numbers, booleans, non-empty lists and non-empty
    mappings are answers; None, blank strings and empty collections are not.
    """
    value = extract_answer_value(raw)
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return False


# ----------------------------
# Option resolution
# ----------------------------
def resolve_option_id(value: Any, options: List[Option]) -> str:
    """Map an option id or option text (case-insensitive) to the option id, or ""."""
    token = normalize_text(value).strip().lower()
    if not token:
        return ""
    for opt in options:
        if opt.id.strip().lower() == token:
            return opt.id
    for opt in options:
        if opt.text.strip().lower() == token:
            return opt.id
    return ""


def _resolve_option_text(value: Any, options: List[Option]) -> str:
    """Map a stored token back to option text, preferring text over id matches."""
    text = normalize_text(value)
    token = text.strip().lower()
    if not token:
        return ""
    if not options:
        return text
    for opt in options:
        if opt.text == text:
            return opt.text
    for opt in options:
        if opt.text.strip().lower() == token:
            return opt.text
    for opt in options:
        if opt.id.strip().lower() == token:
            return opt.text
    return ""


def _label(value: Any, options: List[Option]) -> str:
    """Display label for a token: option text when it matches an id or text, else the token."""
    token = normalize_text(value)
    key = token.strip().lower()
    if key:
        for opt in options:
            if opt.id.strip().lower() == key:
                return opt.text
        for opt in options:
            if opt.text.strip().lower() == key:
                return opt.text
    return token if token else _stringify(value)


def resolve_boolean(raw: Any) -> str:
    """Normalize a true/false answer to "true", "false", or "" when unrecognized."""
    value = extract_answer_value(raw)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return "false" if value == 0 else "true"
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return "true"
        if token in _FALSE_TOKENS:
            return "false"
    return ""


def resolve_pair_map(raw: Any) -> Dict[str, str]:
    """Normalize a matching answer (pair list or mapping) to `{left: right}`."""
    value = extract_answer_value(raw)
    pairs: Dict[str, str] = {}
    if isinstance(value, (list, tuple)):
        for entry in value:
            if not isinstance(entry, dict):
                continue
            left = normalize_text(_first_present(entry, "left", "premise")).strip()
            right = normalize_text(_first_present(entry, "right", "response")).strip()
            if left and right:
                pairs[left] = right
    elif isinstance(value, dict):
        for left, right in value.items():
            lk = normalize_text(left).strip()
            rv = normalize_text(right).strip()
            if lk and rv:
                pairs[lk] = rv
    return pairs


def resolve_ordering(raw: Any, fallback: List[str]) -> List[str]:
    """Normalize an ordering answer; non-list answers fall back to the original item order."""
    value = extract_answer_value(raw)
    if isinstance(value, (list, tuple)):
        return [t for t in (normalize_text(e) for e in value) if t.strip()]
    return list(fallback)


# ----------------------------
# Encode / decode per question type
# ----------------------------
def _encode_text(question: Question, value: Any) -> Any:
    return normalize_text(value)


def _encode_list(question: Question, value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [normalize_text(v) for v in value]
    return [normalize_text(value)]


def _encode_pairs(question: Question, value: Any) -> Any:
    return resolve_pair_map(value)


def _decode_single(question: Question, raw: Any) -> Any:
    text = _resolve_option_text(extract_answer_value(raw), decode_options(question.option_spec))
    return text or None


def _decode_multi(question: Question, raw: Any) -> Any:
    value = extract_answer_value(raw)
    values = list(value) if isinstance(value, (list, tuple)) else [value]
    options = decode_options(question.option_spec)
    out: List[str] = []
    for v in values:
        text = _resolve_option_text(v, options)
        if text and text not in out:
            out.append(text)
    return out


def _decode_boolean(question: Question, raw: Any) -> Any:
    return resolve_boolean(raw) or None


def _decode_text(question: Question, raw: Any) -> Any:
    return normalize_text(extract_answer_value(raw))


def _decode_blank(question: Question, raw: Any) -> Any:
    value = extract_answer_value(raw)
    if isinstance(value, (list, tuple)):
        first = next((e for e in value if normalize_text(e).strip()), None)
        return normalize_text(first)
    return normalize_text(value)


def _decode_pairs(question: Question, raw: Any) -> Any:
    return resolve_pair_map(raw)


def _decode_order(question: Question, raw: Any) -> Any:
    value = extract_answer_value(raw)
    if not isinstance(value, (list, tuple)):
        return None
    return resolve_ordering(value, [])


Encoder = Callable[[Question, Any], Any]
Decoder = Callable[[Question, Any], Any]

_CODECS: Dict[str, tuple[Encoder, Decoder]] = {
    "multiple_choice": (_encode_text, _decode_single),
    "multi_select": (_encode_list, _decode_multi),
    "true_false": (_encode_text, _decode_boolean),
    "numeric": (_encode_text, _decode_text),
    "fill_in_blank": (_encode_text, _decode_blank),
    "short_answer": (_encode_text, _decode_text),
    "essay": (_encode_text, _decode_text),
    "matching": (_encode_pairs, _decode_pairs),
    "ordering": (_encode_list, _decode_order),
}
_FALLBACK_CODEC: tuple[Encoder, Decoder] = (_encode_text, _decode_text)


def encode_answer(question: Question, value: Any) -> Any:
    """Encode an in-memory answer for the save-answer call. None stays None."""
    if value is None:
        return None
    encode, _ = _CODECS.get(question.type, _FALLBACK_CODEC)
    return encode(question, value)


def decode_answer(question: Question, raw: Any) -> Any:
    """Decode a wire answer (wrapped or bare) into the in-memory shape for the question type.

    Returns None when the backend holds no answer, so "never answered" stays
    distinct from an explicit empty string or list.
    """
    if extract_answer_value(raw) is None:
        return None
    _, decode = _CODECS.get(question.type, _FALLBACK_CODEC)
    try:
        return decode(question, raw)
    except Exception as e:  # decoding must never break rendering
        log.warning("Answer decode failed for question %s (%s): %s", question.id, question.type, e)
        return None


# ----------------------------
# Display
# ----------------------------
def _is_pair_entry(entry: Any) -> bool:
    return isinstance(entry, dict) and (
        ("left" in entry or "premise" in entry) and ("right" in entry or "response" in entry)
    )


def _format_pairs(pairs: Dict[str, str]) -> str:
    return LIST_SEPARATOR.join(f"{left}{PAIR_SEPARATOR}{right}" for left, right in pairs.items())


def format_answer_for_display(raw: Any, option_spec: Any = None) -> str:
    """Render an answer (wrapped or bare) as a human-readable string.

    Option ids/texts resolve to option labels (id first, then text, case
    insensitive); matching answers render as `"left -> right"` joined by
    commas; lists render element-wise; other shapes fall back to JSON. Never
    raises.
    """
    value = extract_answer_value(raw)
    try:
        if value is None:
            return EMPTY_DISPLAY
        options = decode_options(option_spec)
        if isinstance(value, (str, int, float, bool)):
            return _label(value, options)
        if isinstance(value, (list, tuple)):
            if value and all(_is_pair_entry(e) for e in value):
                return _format_pairs(resolve_pair_map(list(value)))
            return LIST_SEPARATOR.join(
                _label(e, options) if not isinstance(e, (dict, list, tuple)) else _stringify(e)
                for e in value
            )
        if isinstance(value, dict):
            if _is_pair_entry(value):
                return _format_pairs(resolve_pair_map([value]))
            if all(isinstance(v, (str, int, float, bool)) for v in value.values()):
                return _format_pairs({normalize_text(k): normalize_text(v) for k, v in value.items()})
            return json.dumps(value, ensure_ascii=False, default=str)
        return str(value)
    except Exception:
        return str(value)
