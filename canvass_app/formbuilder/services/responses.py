from __future__ import annotations

import logging
from typing import Any, Mapping

from canvass_app.core.errors import NotFoundError, ValidationError

from ..permissions import AccessResolver
from ..records import AnswerInput, AnswerRecord, QuestionRecord, ResponseRecord
from ..store import FormStore
from .aggregation import FormStats, ResponseAggregator, is_answered

logger = logging.getLogger(__name__)


def _answer_text(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise TypeError(type(value).__name__)


def _answer_options(value: Any) -> list[str] | str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)) and all(
        isinstance(v, (str, int, float)) and not isinstance(v, bool) for v in value
    ):
        return [str(v) for v in value]
    raise TypeError(type(value).__name__)


def _as_record(answer: AnswerInput) -> AnswerRecord:
    return AnswerRecord(
        id=0,
        response_id=0,
        question_id=answer.question_id,
        answer_text=answer.answer_text,
        answer_options=answer.answer_options,
    )


class ResponseService:
    """Submission and read access for a form's responses."""

    def __init__(self, store: FormStore, access: AccessResolver | None = None):
        self.store = store
        self.access = access or AccessResolver(store)
        self.aggregator = ResponseAggregator(store)

    def _parse_answers(self, payload: Any, questions: dict[int, QuestionRecord]) -> list[AnswerInput]:
        if payload is None:
            payload = []
        if not isinstance(payload, (list, tuple)):
            raise ValidationError("Answers must be a list")

        problems: list[str] = []
        answers: list[AnswerInput] = []
        for position, item in enumerate(payload, start=1):
            if not isinstance(item, Mapping):
                problems.append(f"Answer {position} is malformed")
                continue
            qid = item.get("questionId")
            if not isinstance(qid, int) or isinstance(qid, bool):
                problems.append(f"Answer {position} has no question id")
                continue
            if qid not in questions:
                problems.append(f"Answer references unknown question {qid}")
                continue
            try:
                text = _answer_text(item.get("answerText"))
            except TypeError:
                problems.append(f"Answer {position} text must be a string")
                continue
            try:
                options = _answer_options(item.get("answerOptions"))
            except TypeError:
                problems.append(f"Answer {position} options must be a list")
                continue
            answers.append(
                AnswerInput(
                    question_id=qid,
                    answer_text=text,
                    answer_options=options,
                )
            )

        supplied = {}
        for answer in answers:
            supplied.setdefault(answer.question_id, answer)
        for question in questions.values():
            if not question.is_required:
                continue
            answer = supplied.get(question.id)
            if answer is None or not is_answered(_as_record(answer)):
                problems.append(f'Question "{question.text}" is required')

        if problems:
            raise ValidationError("Validation failed", details=problems)
        return answers

    def submit(self, form_id: int, user_id: int | None, answers: Any) -> ResponseRecord:
        self.access.require_submittable_form(form_id, user_id)
        questions = {q.id: q for q in self.store.list_questions(form_id)}
        parsed = self._parse_answers(answers, questions)
        response = self.store.create_response(form_id, user_id, parsed)
        logger.info(
            "Recorded response %s for form %s (%s)",
            response.id,
            form_id,
            f"user {user_id}" if user_id is not None else "anonymous",
        )
        return response

    def list_responses(self, form_id: int, user_id: int | None):
        self.access.require_access(form_id, user_id)
        return self.store.list_responses(form_id), self.store.list_questions(form_id)

    def get_response(self, form_id: int, response_id: int, user_id: int | None):
        self.access.require_access(form_id, user_id)
        response = self.store.get_response(form_id, response_id)
        if response is None:
            raise NotFoundError("Response not found")
        return response, self.store.list_questions(form_id)

    def stats(self, form_id: int, user_id: int | None) -> FormStats:
        self.access.require_access(form_id, user_id)
        return self.aggregator.form_stats(form_id)
