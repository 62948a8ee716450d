"""Assessment schemas for attempts, sections, questions, and graded reviews.

Models accept the backend's camelCase wire keys (plus the older alternate key
names some endpoints still emit) and dump back with `by_alias=True`.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Identifier = Union[int, str]
AttemptStatus = Literal["in_progress", "submitted"]

QUESTION_TYPES = (
    "multiple_choice",
    "multi_select",
    "true_false",
    "numeric",
    "fill_in_blank",
    "short_answer",
    "essay",
    "matching",
    "ordering",
)


class WireModel(BaseModel):
    """Base model mapping snake_case fields to camelCase wire keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Question(WireModel):
    """One assessable unit; `option_spec` shape depends on `type`."""
    id: Identifier = Field(
        validation_alias=AliasChoices("assessmentQuestionId", "questionId", "id"),
        serialization_alias="assessmentQuestionId",
    )
    question_bank_item_id: Optional[Identifier] = None
    order: int = 0
    type: str = "short_answer"
    difficulty: Optional[str] = None
    prompt: str = Field(
        default="",
        validation_alias=AliasChoices("questionText", "prompt"),
        serialization_alias="questionText",
    )
    prompt_html: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("questionHtml", "promptHtml"),
        serialization_alias="questionHtml",
    )
    image_url: Optional[str] = None
    option_spec: Any = Field(
        default=None,
        validation_alias=AliasChoices("options", "optionSpec"),
        serialization_alias="options",
    )
    points: Union[int, float] = Field(default=0, ge=0)
    section_title: Optional[str] = Field(default=None, exclude=True)


class Section(WireModel):
    """An ordered group of questions with optional instructions."""
    id: Identifier
    title: Optional[str] = None
    order: int = 0
    instructions: Optional[str] = None
    questions: List[Question] = []

    @property
    def display_title(self) -> str:
        """Section title, or `Section {order}` when the backend sent none."""
        return self.title or f"Section {self.order}"


class AssessmentInfo(WireModel):
    """Assessment header returned with a started attempt."""
    id: Identifier
    title: str
    type: str = "quiz"
    time_limit_minutes: Optional[float] = None
    instructions: Optional[str] = None

    @property
    def time_limit_seconds(self) -> int:
        """Time limit in whole seconds; 0 means untimed."""
        return int((self.time_limit_minutes or 0) * 60)


class StartAttemptPayload(WireModel):
    """Response of the start-attempt call; cached verbatim for resume."""
    attempt_id: str
    assessment: AssessmentInfo
    sections: List[Section] = []

    def flat_questions(self) -> List[Question]:
        """Flatten sections in received order, tagging each question with its section title."""
        return [
            q.model_copy(update={"section_title": s.display_title})
            for s in self.sections
            for q in s.questions
        ]


class ReviewAttempt(WireModel):
    """Attempt header of a graded review."""
    id: str
    assessment_id: Optional[Identifier] = None
    user_id: Optional[str] = None
    status: str = "submitted"
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    total_score: Optional[float] = None
    max_score: Optional[float] = None
    percentage: Optional[float] = None


class ReviewAssessment(WireModel):
    """Assessment header of a graded review, with visibility flags."""
    id: Identifier
    title: str
    type: str = "quiz"
    instructions: Optional[str] = None
    show_correct_answers: bool = True
    show_explanations: bool = True


class ReviewQuestion(Question):
    """A question as it appears in a graded review."""
    answer: Any = None
    is_correct: Optional[bool] = None
    score: Optional[float] = None
    max_score: Optional[float] = None
    correct_answer: Any = None
    explanation: Optional[str] = None


class ReviewSection(Section):
    """A review section holding graded questions."""
    questions: List[ReviewQuestion] = []


class AttemptReview(WireModel):
    """Response of the fetch-review call."""
    attempt: ReviewAttempt
    assessment: ReviewAssessment
    sections: List[ReviewSection] = []
