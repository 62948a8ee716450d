"""Shared fixtures: an in-process FastAPI fake of the assessment backend."""

import itertools
from typing import Any, Dict

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from packages.common.config import Settings
from services.assessment.cache import MemoryAttemptCache
from services.assessment.client import AssessmentClient

# In-memory assessment bank
BANK: Dict[str, Dict[str, Any]] = {
    "42": {
        "assessment": {
            "id": 42,
            "title": "World Basics",
            "type": "quiz",
            "timeLimitMinutes": 10,
            "instructions": "Answer every question.",
        },
        "sections": [
            {
                "id": 2,
                "title": None,
                "order": 2,
                "questions": [
                    {"assessmentQuestionId": 201, "order": 1, "type": "matching", "difficulty": "medium",
                     "questionText": "Match the animal to its sound",
                     "options": {"pairs": [{"left": "Cat", "right": "Meow"}, {"left": "Dog", "right": "Bark"}]},
                     "points": 2},
                    {"assessmentQuestionId": 202, "order": 2, "type": "ordering", "difficulty": "easy",
                     "questionText": "Order from smallest", "options": {"items": ["ant", "cat", "horse"]},
                     "points": 1},
                ],
            },
            {
                "id": 1,
                "title": "Geography",
                "order": 1,
                "instructions": "Pick one.",
                "questions": [
                    {"assessmentQuestionId": 101, "order": 1, "type": "multiple_choice", "difficulty": "easy",
                     "questionText": "Capital of England?", "options": ["Paris", "London", "Rome"], "points": 1},
                    {"assessmentQuestionId": 102, "order": 2, "type": "true_false", "difficulty": "easy",
                     "questionText": "The Nile is in Africa.", "points": 1},
                ],
            },
        ],
        "correct": {101: "London", 102: "true", 201: {"Cat": "Meow", "Dog": "Bark"}, 202: ["ant", "cat", "horse"]},
        "explanations": {101: "London is the capital of England."},
    },
    "7": {
        "assessment": {"id": 7, "title": "Untimed Practice", "type": "practice", "timeLimitMinutes": None},
        "sections": [
            {"id": 9, "title": "Only", "order": 1, "questions": [
                {"assessmentQuestionId": 901, "order": 1, "type": "essay", "difficulty": "hard",
                 "questionText": "Describe your summer.", "points": 5},
            ]},
        ],
        "correct": {},
        "explanations": {},
    },
}


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=status)


def build_backend() -> FastAPI:
    """Fake backend holding attempts in memory, with failure switches on `app.state`."""
    app = FastAPI(title="Fake Assessment Backend", version="1.0.0")
    app.state.attempts = {}
    app.state.calls = {"start": 0, "answer": 0, "submit": 0, "review": 0}
    app.state.fail = {"start": False, "answer": False, "submit": False}
    app.state.grades = {}
    ids = itertools.count(1)

    @app.post("/api/assessments/{assessment_id}/start")
    async def start(assessment_id: str):
        app.state.calls["start"] += 1
        if app.state.fail["start"]:
            return _error(503, "Assessment service unavailable")
        bank = BANK.get(assessment_id)
        if bank is None:
            return _error(404, "Assessment not found")
        attempt_id = f"att-{next(ids)}"
        app.state.attempts[attempt_id] = {"assessment_id": assessment_id, "answers": {}, "status": "in_progress"}
        return {"attemptId": attempt_id, "assessment": bank["assessment"], "sections": bank["sections"]}

    @app.put("/api/attempts/{attempt_id}/answer")
    async def answer(attempt_id: str, request: Request):
        app.state.calls["answer"] += 1
        attempt = app.state.attempts.get(attempt_id)
        if attempt is None:
            return _error(404, "Attempt not found")
        if app.state.fail["answer"]:
            return _error(500, "Save failed")
        body = await request.json()
        attempt["answers"][body["assessmentQuestionId"]] = body["answer"]
        return {"ok": True}

    @app.post("/api/attempts/{attempt_id}/submit")
    async def submit(attempt_id: str):
        app.state.calls["submit"] += 1
        attempt = app.state.attempts.get(attempt_id)
        if attempt is None:
            return _error(404, "Attempt not found")
        if app.state.fail["submit"]:
            return _error(500, "Submit failed")
        if attempt["status"] == "submitted":
            return _error(409, "Attempt already submitted")
        attempt["status"] = "submitted"
        return {"ok": True}

    @app.get("/api/attempts/{attempt_id}/review")
    async def review(attempt_id: str):
        app.state.calls["review"] += 1
        attempt = app.state.attempts.get(attempt_id)
        if attempt is None:
            return _error(404, "Attempt not found")
        bank = BANK[attempt["assessment_id"]]
        sections = []
        for s in bank["sections"]:
            qs = []
            for q in s["questions"]:
                qid = q["assessmentQuestionId"]
                entry = dict(q, answer=attempt["answers"].get(qid), isCorrect=app.state.grades.get(qid))
                if qid in bank["correct"]:
                    entry["correctAnswer"] = bank["correct"][qid]
                if qid in bank["explanations"]:
                    entry["explanation"] = bank["explanations"][qid]
                qs.append(entry)
            sections.append(dict(s, questions=qs))
        return {
            "attempt": {"id": attempt_id, "assessmentId": bank["assessment"]["id"], "userId": "u-1",
                        "status": attempt["status"], "startedAt": "2026-10-19T09:00:00Z",
                        "totalScore": 3, "maxScore": 5, "percentage": 60},
            "assessment": dict(bank["assessment"], showCorrectAnswers=True, showExplanations=True),
            "sections": sections,
        }

    return app


@pytest.fixture
def backend() -> FastAPI:
    return build_backend()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, BACKEND_URL="http://test", TIMER_WARNING_SECONDS=300, LOG_JSON=False)


@pytest.fixture
def cache() -> MemoryAttemptCache:
    return MemoryAttemptCache()


@pytest_asyncio.fixture
async def client(backend: FastAPI, settings: Settings):
    c = AssessmentClient(base_url="http://test", transport=httpx.ASGITransport(app=backend), settings=settings)
    yield c
    await c.aclose()
