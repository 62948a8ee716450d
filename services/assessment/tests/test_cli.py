"""Tests for the console runner."""

import asyncio
import functools
from typing import Iterator, List

import pytest

from packages.schemas.assessment import Question
from services.assessment.cli import parse_interaction, render_view, run_review, run_take
from services.assessment.navigation import MemoryNavigator, take_url
from services.assessment.renderer import Assign, EnterText, Move, QuestionRenderer, Select, Toggle
from services.assessment.session import AttemptSession
from services.assessment.timer import AttemptTimer


def _view(qtype: str, options=None, answer=None):
    q = Question.model_validate({"assessmentQuestionId": 1, "type": qtype, "questionText": "Q", "options": options})
    return QuestionRenderer().render(q, answer)


async def _never(_: float) -> None:
    await asyncio.Event().wait()


def _reader(lines: List[str]):
    it: Iterator[str] = iter(lines)
    return lambda prompt: next(it)


def test_parse_interaction_per_control() -> None:
    assert parse_interaction("2", _view("multiple_choice", ["a", "b"])) == Select("1")
    assert parse_interaction("1", _view("multi_select", ["a", "b"], ["a"])) == Toggle("0", checked=False)
    assert parse_interaction("2", _view("multi_select", ["a", "b"], ["a"])) == Toggle("1", checked=True)
    match = _view("matching", {"left": ["Cat", "Dog"], "right": ["Meow", "Bark"]})
    assert parse_interaction("2=2", match) == Assign("Dog", "Bark")
    assert parse_interaction("1=", match) == Assign("Cat", "")
    assert parse_interaction("3>1", _view("ordering", ["x", "y", "z"])) == Move(2, 0)
    assert parse_interaction("hello", _view("essay")) == EnterText("hello")
    assert parse_interaction("9", _view("multiple_choice", ["a"])) is None
    assert parse_interaction("x", _view("ordering", ["a"])) is None


@pytest.mark.asyncio
async def test_render_view_shows_header_and_selection(client, cache, settings) -> None:
    s = AttemptSession(
        client, 42, navigator=MemoryNavigator(take_url(42)), cache=cache, settings=settings,
        timer_factory=functools.partial(AttemptTimer.for_limit, sleep=_never),
    )
    await s.hydrate()
    s.go_to(2)
    s.interact(Select("1"))
    await s.drain()
    text = render_view(s.view(), s)
    lines = text.splitlines()
    assert lines[0] == "Question 3 of 4 | 1 pts | Geography | 1/4 answered | 10:00"
    assert "  [x] 2. London" in lines
    assert "  [ ] 1. Paris" in lines
    await s.close()


@pytest.mark.asyncio
async def test_run_take_answers_and_submits(client, backend, cache, settings, capsys) -> None:
    code = await run_take(client, "42", reader=_reader([":g 3", "2", ":s"]), cache=cache, settings=settings)
    assert code == 0
    assert backend.state.attempts["att-1"]["answers"] == {101: "London"}
    assert backend.state.attempts["att-1"]["status"] == "submitted"
    out = capsys.readouterr().out
    assert "Answer every question." in out
    assert "Submitted. Results: /assessments/results/att-1" in out


@pytest.mark.asyncio
async def test_run_take_quit_keeps_attempt_resumable(client, backend, cache, settings, capsys) -> None:
    code = await run_take(client, "42", reader=_reader([":q"]), cache=cache, settings=settings)
    assert code == 0
    assert "Resume with --attempt-id att-1" in capsys.readouterr().out
    assert "beelearn-attempt:att-1" in cache.entries

    await run_take(client, "42", attempt_id="att-1", reader=_reader([":s"]), cache=cache, settings=settings)
    assert backend.state.calls["start"] == 1
    assert backend.state.calls["submit"] == 1


@pytest.mark.asyncio
async def test_run_take_reports_load_errors(client, cache, settings) -> None:
    assert await run_take(client, "999", reader=_reader([]), cache=cache, settings=settings) == 1


@pytest.mark.asyncio
async def test_run_review_prints_report(client, capsys) -> None:
    assert await run_review(client, "missing") == 1
    await _start_and_submit(client)
    assert await run_review(client, "att-1") == 0
    out = capsys.readouterr().out
    assert "World Basics [submitted] 3 / 5 (60%)" in out
    assert "Section 2" in out


async def _start_and_submit(client) -> None:
    payload = await client.start_attempt(42)
    await client.submit_attempt(payload.attempt_id)
