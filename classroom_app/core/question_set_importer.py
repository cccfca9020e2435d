"""Utilities for importing quiz question sets from JSON documents.

Document format: a JSON array of question objects.

    [
      {
        "question": "What is 2 + 2?",
        "options": ["3", "4", "5", "22"],
        "correct": "4"
      }
    ]

``correct`` holds the text of the right option rather than its index, so it
must match one of ``options`` exactly.

Parsing never raises for bad input. ``parse_question_set`` returns either a
``ValidQuestionSet`` or a ``MalformedInput`` carrying the reason, and callers
decide how to surface it. ``load_question_set_from_file`` is the raising
variant for file-based workflows.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from classroom_app.core.errors import QuestionSetImportError
from classroom_app.core.models import Question

_MIN_OPTIONS = 2


@dataclass(slots=True, frozen=True)
class ValidQuestionSet:
    """Parsed questions in document order."""

    questions: list[Question]


@dataclass(slots=True, frozen=True)
class MalformedInput:
    """Explains why a question-set document was rejected."""

    reason: str


ParsedQuestionSet = ValidQuestionSet | MalformedInput


def parse_question_set(text: str) -> ParsedQuestionSet:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        return MalformedInput(f"Question set is not valid JSON: {exc.msg} (line {exc.lineno}).")
    return parse_question_items(document)


def parse_question_items(document: Any) -> ParsedQuestionSet:
    """Validate an already-decoded document, e.g. a JSON request body."""
    if not isinstance(document, list):
        return MalformedInput("Question set must be a JSON array of questions.")
    if not document:
        return MalformedInput("Question set did not contain any questions.")

    questions: list[Question] = []
    for position, item in enumerate(document, start=1):
        parsed = _parse_item(item, position)
        if isinstance(parsed, MalformedInput):
            return parsed
        questions.append(parsed)
    return ValidQuestionSet(questions=questions)


def load_question_set_from_file(file_path: Path) -> list[Question]:
    text = file_path.read_text(encoding="utf-8")
    parsed = parse_question_set(text)
    if isinstance(parsed, MalformedInput):
        raise QuestionSetImportError(parsed.reason)
    return parsed.questions


def _parse_item(item: Any, position: int) -> Question | MalformedInput:
    if not isinstance(item, dict):
        return MalformedInput(f"Question {position} must be an object.")

    question_text = item.get("question")
    if not isinstance(question_text, str) or not question_text.strip():
        return MalformedInput(f"Question {position} is missing its text.")

    options = item.get("options")
    if not isinstance(options, list) or any(not isinstance(option, str) for option in options):
        return MalformedInput(f"Question {position} must list its options as strings.")
    cleaned_options = [_sanitize_option(option) for option in options]
    if len(cleaned_options) < _MIN_OPTIONS:
        return MalformedInput(f"Question {position} needs at least {_MIN_OPTIONS} options.")
    if any(not option for option in cleaned_options):
        return MalformedInput(f"Question {position} has an empty option.")

    correct = item.get("correct")
    if not isinstance(correct, str):
        return MalformedInput(f"Question {position} is missing the correct option text.")
    correct = _sanitize_option(correct)
    if correct not in cleaned_options:
        return MalformedInput(f"Question {position}: correct answer '{correct}' is not one of its options.")

    return Question(question=question_text.strip(), options=cleaned_options, correct=correct)


def _sanitize_option(option_text: str) -> str:
    return option_text.strip()
