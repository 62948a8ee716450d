"""Tests for review formatting."""

import pytest

from packages.schemas.assessment import AttemptReview, ReviewAttempt
from services.assessment.review import (
    format_review,
    percentage_label,
    render_text,
    score_label,
    status_label,
)

REVIEW = {
    "attempt": {"id": "att-1", "status": "needs_grading", "totalScore": 2.5, "maxScore": 4, "percentage": 62.5},
    "assessment": {"id": 42, "title": "World Basics", "showCorrectAnswers": True, "showExplanations": True},
    "sections": [
        {"id": 1, "title": None, "order": 3, "questions": [
            {"assessmentQuestionId": 1, "order": 1, "type": "multi_select", "questionText": "Pick vowels",
             "options": [{"id": "a", "text": "Alpha"}, {"id": "b", "text": "Beta"}, {"id": "e", "text": "Echo"}],
             "points": 2, "answer": {"value": ["a", "e"]}, "isCorrect": True,
             "correctAnswer": ["a", "e"], "explanation": "  "},
            {"assessmentQuestionId": 2, "order": 2, "type": "matching", "questionText": "Match",
             "options": {"left": ["Cat"], "right": ["Meow"]}, "points": 1,
             "answer": [{"left": "Cat", "right": "Meow"}], "isCorrect": False,
             "correctAnswer": None, "explanation": "Cats meow."},
            {"assessmentQuestionId": 3, "order": 3, "type": "essay", "questionText": "Essay", "points": 1,
             "answer": None},
        ]},
    ],
}


def test_items_carry_badges_and_placeholders() -> None:
    report = format_review(AttemptReview.model_validate(REVIEW))
    assert report.title == "World Basics"
    assert report.status_label == "needs grading"
    assert report.score_label == "2.5 / 4"
    assert report.percentage_label == "62.5%"
    section = report.sections[0]
    assert section.title == "Section 3"
    multi, match, essay = section.items
    assert (multi.badge, multi.your_answer, multi.correct_answer) == ("Correct", "Alpha, Echo", "Alpha, Echo")
    assert multi.explanation is None
    assert (match.badge, match.your_answer) == ("Incorrect", "Cat -> Meow")
    assert match.correct_answer == "—"
    assert match.explanation == "Cats meow."
    assert (essay.badge, essay.your_answer, essay.answered) == (None, "—", False)
    assert essay.correct_answer is None


def test_visibility_flags_hide_answers_and_explanations() -> None:
    data = dict(REVIEW, assessment=dict(REVIEW["assessment"], showCorrectAnswers=False, showExplanations=False))
    items = format_review(AttemptReview.model_validate(data)).sections[0].items
    assert all(it.correct_answer is None and it.explanation is None for it in items)


@pytest.mark.parametrize(
    "attempt,score,pct",
    [
        ({"id": "a", "totalScore": 3, "maxScore": 5, "percentage": 60}, "3 / 5", "60%"),
        ({"id": "a", "totalScore": 7}, "7 pts", None),
        ({"id": "a"}, "0 pts", None),
    ],
)
def test_score_labels(attempt, score, pct) -> None:
    a = ReviewAttempt.model_validate(attempt)
    assert score_label(a) == score
    assert percentage_label(a) == pct


def test_status_label_replaces_underscores() -> None:
    assert status_label("in_progress") == "in progress"
    assert status_label("submitted") == "submitted"


def test_render_text() -> None:
    text = render_text(format_review(AttemptReview.model_validate(REVIEW)))
    lines = text.splitlines()
    assert lines[0] == "World Basics [needs grading] 2.5 / 4 (62.5%)"
    assert "  Q1 (2 pts) [Correct] Pick vowels" in lines
    assert "    Correct answer: Alpha, Echo" in lines
    assert "    Explanation: Cats meow." in lines
    assert "    Your answer: —" in lines


def test_null_and_absent_correct_answers_differ() -> None:
    text = render_text(format_review(AttemptReview.model_validate(REVIEW)))
    # the matching question sends correctAnswer: null, the essay sends nothing
    assert text.count("Correct answer:") == 2
    assert "    Correct answer: —" in text.splitlines()
