import uuid
from typing import Any, Dict, Iterable, List, Mapping

from classroom.models.assignments import QuestionType


class AssignmentValidationError(ValueError):
    pass


def prepare_questions(questions: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Normalise question payloads for storage.

    Missing ids are generated, MCQ options are trimmed and blank ones
    dropped, and every MCQ must end up with at least two options and a
    correct answer (if given) taken from them.
    """
    prepared = []
    seen_ids = set()
    for index, raw in enumerate(questions, start=1):
        question = dict(raw)
        question_id = question.get("id") or uuid.uuid4().hex[:8]
        if question_id in seen_ids:
            raise AssignmentValidationError(f"Duplicate question id '{question_id}'")
        seen_ids.add(question_id)
        question["id"] = question_id

        if not (question.get("text") or "").strip():
            raise AssignmentValidationError(f"Question {index} has no text")

        if question["type"] == QuestionType.MCQ.value:
            options = [opt.strip() for opt in question.get("options") or [] if opt and opt.strip()]
            if len(options) < 2:
                raise AssignmentValidationError(f"Question {index} needs at least two options")
            question["options"] = options
            correct = question.get("correct_answer")
            if correct is not None and correct not in options:
                raise AssignmentValidationError(f"Question {index} correct answer is not one of its options")
        else:
            question["options"] = None

        prepared.append(question)
    return prepared


def total_points(questions: Iterable[Mapping[str, Any]]) -> float:
    return sum(q.get("points", 0) for q in questions)


def validate_answers(questions: Iterable[Mapping[str, Any]], answers: Mapping[str, str]) -> None:
    known = {q["id"] for q in questions}
    unknown = sorted(set(answers) - known)
    if unknown:
        raise AssignmentValidationError(f"Unknown question ids: {', '.join(unknown)}")


def auto_score(questions: Iterable[Mapping[str, Any]], answers: Mapping[str, str]) -> float:
    """Points earned on MCQ questions that carry a reference answer."""
    score = 0.0
    for question in questions:
        if question.get("type") != QuestionType.MCQ.value:
            continue
        correct = question.get("correct_answer")
        if correct is not None and answers.get(question["id"]) == correct:
            score += question.get("points", 0)
    return score
