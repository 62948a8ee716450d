"""Review formatting for graded attempts.

Functions:
- format_review: turn an `AttemptReview` into display-ready sections and items.
- score_label / percentage_label / status_label: header strings.
- render_text: plain-text rendering of a report (used by the CLI).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from packages.schemas.assessment import AttemptReview, Identifier, ReviewAttempt, ReviewQuestion
from .codec import EMPTY_DISPLAY, format_answer_for_display, has_answer_value, normalize_text

CORRECT = "Correct"
INCORRECT = "Incorrect"


@dataclass
class ReviewItem:
    """One graded question, formatted."""
    question_id: Identifier
    order: int
    prompt: str
    points: str
    your_answer: str
    answered: bool
    badge: Optional[str] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


@dataclass
class ReviewSectionReport:
    title: str
    instructions: Optional[str] = None
    items: List[ReviewItem] = field(default_factory=list)


@dataclass
class ReviewReport:
    title: str
    status_label: str
    score_label: str
    percentage_label: Optional[str] = None
    sections: List[ReviewSectionReport] = field(default_factory=list)


def _num(value: Optional[float]) -> str:
    return normalize_text(value if value is not None else 0)


def score_label(attempt: ReviewAttempt) -> str:
    """`"total / max"`, or `"total pts"` when there is no max score."""
    total = _num(attempt.total_score)
    if not attempt.max_score:
        return f"{total} pts"
    return f"{total} / {_num(attempt.max_score)}"


def percentage_label(attempt: ReviewAttempt) -> Optional[str]:
    if attempt.percentage is None:
        return None
    return f"{_num(attempt.percentage)}%"


def status_label(status: str) -> str:
    return status.replace("_", " ")


def badge_for(is_correct: Optional[bool]) -> Optional[str]:
    """Correctness badge; ungraded questions (None) get no badge."""
    if is_correct is None:
        return None
    return CORRECT if is_correct else INCORRECT


def format_item(q: ReviewQuestion, show_correct: bool = True, show_explanation: bool = True) -> ReviewItem:
    """Format one graded question."""
    answered = has_answer_value(q.answer)
    correct = None
    # explicit null renders the placeholder; an absent key omits the line
    if show_correct and "correct_answer" in q.model_fields_set:
        correct = format_answer_for_display(q.correct_answer, q.option_spec)
    explanation = q.explanation if show_explanation and q.explanation and q.explanation.strip() else None
    return ReviewItem(
        question_id=q.id,
        order=q.order,
        prompt=q.prompt,
        points=normalize_text(q.points),
        your_answer=format_answer_for_display(q.answer, q.option_spec) if answered else EMPTY_DISPLAY,
        answered=answered,
        badge=badge_for(q.is_correct),
        correct_answer=correct,
        explanation=explanation,
    )


def format_review(review: AttemptReview) -> ReviewReport:
    """Build the display report for a graded attempt, keeping section order."""
    a = review.assessment
    return ReviewReport(
        title=a.title,
        status_label=status_label(review.attempt.status),
        score_label=score_label(review.attempt),
        percentage_label=percentage_label(review.attempt),
        sections=[
            ReviewSectionReport(
                title=s.display_title,
                instructions=s.instructions or None,
                items=[format_item(q, a.show_correct_answers, a.show_explanations) for q in s.questions],
            )
            for s in review.sections
        ],
    )


def render_text(report: ReviewReport) -> str:
    """Plain-text rendering of a review report."""
    head = f"{report.title} [{report.status_label}] {report.score_label}"
    if report.percentage_label:
        head += f" ({report.percentage_label})"
    lines = [head]
    for s in report.sections:
        lines.append("")
        lines.append(s.title)
        if s.instructions:
            lines.append(f"  {s.instructions}")
        for it in s.items:
            badge = f" [{it.badge}]" if it.badge else ""
            lines.append(f"  Q{it.order} ({it.points} pts){badge} {it.prompt}")
            lines.append(f"    Your answer: {it.your_answer}")
            if it.correct_answer is not None:
                lines.append(f"    Correct answer: {it.correct_answer}")
            if it.explanation:
                lines.append(f"    Explanation: {it.explanation}")
    return "\n".join(lines)
