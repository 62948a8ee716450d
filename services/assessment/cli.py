"""Console runner for assessment attempts.

    python -m services.assessment.cli take 42
    python -m services.assessment.cli take 42 --attempt-id att-9f1c   # resume
    python -m services.assessment.cli review att-9f1c

While taking an attempt, lines starting with ":" are commands
(:n next, :p previous, :g N go to, :s submit, :q quit); anything else answers
the current question (option number, free text, "i=j" to match, "i>j" to move).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Callable, List, Optional

from dotenv import load_dotenv

from packages.common.config import Settings, get_settings
from packages.common.logging import configure_logging
from packages.common.metrics import start_metrics_server
from .cache import AttemptCache, cache_from_settings
from .client import ApiError, AssessmentClient
from .navigation import MemoryNavigator, take_url
from .renderer import Assign, EnterText, Interaction, Move, QuestionView, Select, Toggle
from .review import format_review, render_text
from .session import AttemptSession, SessionState

log = logging.getLogger("beelearn.assessment.cli")

Reader = Callable[[str], str]


def render_view(view: QuestionView, session: AttemptSession) -> str:
    """Console rendering of the current question with its header line."""
    q = session.current_question
    head = f"Question {session.current_index + 1} of {len(session.questions)}"
    if q is not None:
        head += f" | {q.points} pts | {q.section_title}"
    head += f" | {session.answered_count}/{len(session.questions)} answered"
    if session.timer is not None and not session.timer.untimed:
        head += f" | {session.timer.formatted}" + (" !" if session.timer.is_warning else "")
    lines = [head, "", view.prompt]
    if view.hint:
        lines.append(f"({view.hint})")
    if view.control in ("radio", "checkbox"):
        for i, opt in enumerate(view.options, 1):
            mark = "x" if opt.id in view.selected else " "
            lines.append(f"  [{mark}] {i}. {opt.text}")
    elif view.control == "match":
        for i, left in enumerate(view.left, 1):
            lines.append(f"  {i}. {left} -> {view.pairs.get(left, '...')}")
        lines.append("  choices: " + ", ".join(f"{j}. {r}" for j, r in enumerate(view.right, 1)))
    elif view.control == "order":
        for i, item in enumerate(view.order, 1):
            lines.append(f"  {i}. {item}")
    else:
        lines.append(f"  > {view.text}")
    if session.saving_question_id == view.question_id:
        lines.append("Saving...")
    if session.error_message:
        lines.append(f"! {session.error_message}")
    return "\n".join(lines)


def parse_interaction(line: str, view: QuestionView) -> Optional[Interaction]:
    """Translate one console line into an interaction for the current control."""
    text = line.strip()
    try:
        if view.control in ("radio", "checkbox"):
            opt = view.options[int(text) - 1]
            if view.control == "radio":
                return Select(opt.id)
            return Toggle(opt.id, checked=opt.id not in view.selected)
        if view.control == "match":
            i, _, j = text.partition("=")
            left = view.left[int(i) - 1]
            right = view.right[int(j) - 1] if j.strip() else ""
            return Assign(left, right)
        if view.control == "order":
            i, _, j = text.partition(">")
            return Move(int(i) - 1, int(j) - 1)
    except (ValueError, IndexError):
        return None
    return EnterText(line)


async def run_take(
    client: AssessmentClient,
    assessment_id: str,
    attempt_id: Optional[str] = None,
    reader: Reader = input,
    cache: Optional[AttemptCache] = None,
    settings: Optional[Settings] = None,
) -> int:
    """Interactive attempt loop; returns a process exit code."""
    s = settings or get_settings()
    nav = MemoryNavigator(take_url(assessment_id, attempt_id))
    session = AttemptSession(
        client, assessment_id, navigator=nav, cache=cache if cache is not None else cache_from_settings(s), settings=s
    )
    async with session:
        if session.state is SessionState.ERROR:
            log.error("%s", session.error_message)
            return 1
        if not session.questions:
            print("This assessment has no questions.")
            return 1
        if session.payload and session.payload.assessment.instructions:
            print(session.payload.assessment.instructions)
        while session.state is not SessionState.SUBMITTED:
            view = session.view()
            print("\n" + render_view(view, session))
            line = await asyncio.to_thread(reader, "> ")
            if session.state is SessionState.SUBMITTED:
                break
            cmd = line.strip()
            if cmd in (":q", ":quit"):
                print(f"Attempt saved. Resume with --attempt-id {session.attempt_id}")
                await session.drain()
                return 0
            if cmd == ":n":
                session.next()
            elif cmd == ":p":
                session.previous()
            elif cmd.startswith(":g"):
                try:
                    session.go_to(int(cmd[2:].strip()) - 1)
                except ValueError:
                    print("usage: :g N")
            elif cmd == ":s":
                await session.drain()
                await session.submit()
            else:
                action = parse_interaction(line, view)
                if action is None:
                    print("Unrecognized input.")
                else:
                    session.interact(action)
        await session.drain()
        print(f"Submitted. Results: {nav.location}")
        return 0


async def run_review(client: AssessmentClient, attempt_id: str) -> int:
    """Print the graded review of an attempt."""
    try:
        review = await client.fetch_review(attempt_id)
    except ApiError as e:
        log.error("%s", e.message)
        return 1
    print(render_text(format_review(review)))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    load_dotenv()
    s = get_settings()
    configure_logging(s.LOG_LEVEL, json_logs=s.LOG_JSON)
    if s.METRICS_PORT:
        start_metrics_server(s.METRICS_PORT)

    ap = argparse.ArgumentParser(prog="beelearn-attempt", description="Take or review an assessment attempt")
    sub = ap.add_subparsers(dest="cmd", required=True)
    ap_take = sub.add_parser("take", help="Start or resume an attempt")
    ap_take.add_argument("assessment_id")
    ap_take.add_argument("--attempt-id", default=None, help="Resume a cached attempt")
    ap_review = sub.add_parser("review", help="Show the graded review of an attempt")
    ap_review.add_argument("attempt_id")
    ns = ap.parse_args(argv)

    async def _run() -> int:
        async with AssessmentClient() as client:
            if ns.cmd == "take":
                return await run_take(client, ns.assessment_id, ns.attempt_id)
            return await run_review(client, ns.attempt_id)

    return asyncio.run(_run())


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
