"""Completion statistics computed from sparse answer data."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Sequence

from django.db import DatabaseError

from canvass_app.core.errors import StorageError

from ..records import AnswerRecord, FormListing, QuestionRecord, ResponseRecord
from ..store import FormStore

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


def round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def is_answered(answer: AnswerRecord | None) -> bool:
    """True when the answer carries non-blank text or a non-empty option value."""
    if answer is None:
        return False
    if answer.answer_text is not None and answer.answer_text.strip():
        return True
    options: Any = answer.answer_options
    if options is None:
        return False
    if isinstance(options, (list, tuple)):
        return len(options) > 0
    return bool(str(options).strip())


def first_answer_for(response: ResponseRecord, question_id: int) -> AnswerRecord | None:
    # Duplicate answers for one question are tolerated; the first stored one counts.
    for answer in response.answers:
        if answer.question_id == question_id:
            return answer
    return None


@dataclass(frozen=True)
class Completion:
    answered_count: int
    total_questions: int
    completion_rate: float


@dataclass(frozen=True)
class ResponseStats:
    response_id: int
    user_name: str
    submitted_at: datetime
    answered_questions: int
    total_questions: int
    completion_rate: float


@dataclass(frozen=True)
class FormStats:
    form_id: int
    total_responses: int
    total_questions: int
    average_completion_rate: float
    individual_responses: list[ResponseStats]


@dataclass(frozen=True)
class FormSummary:
    listing: FormListing
    response_count: int
    completion_rate: int
    last_response: datetime | None

    @property
    def form(self):
        return self.listing.form

    @property
    def role(self) -> str:
        return self.listing.role


def compute_response_completion(
    questions: Sequence[QuestionRecord], response: ResponseRecord
) -> Completion:
    total = len(questions)
    if total == 0:
        return Completion(0, 0, 0.0)
    answered = sum(1 for q in questions if is_answered(first_answer_for(response, q.id)))
    return Completion(answered, total, round_half_up(100 * answered / total, 1))


def average_rate(rates: Iterable[float], places: int) -> float:
    rates = list(rates)
    if not rates:
        return 0.0
    return round_half_up(sum(rates) / len(rates), places)


class ResponseAggregator:
    def __init__(self, store: FormStore):
        self.store = store

    def compute_form_completion_rate(self, form_id: int) -> int:
        """Mean per-response completion as a whole percentage, capped at 100."""
        questions = self.store.list_questions(form_id)
        if not questions:
            return 0
        responses = self.store.list_responses(form_id)
        if not responses:
            return 0
        rates = [compute_response_completion(questions, r).completion_rate for r in responses]
        return min(int(average_rate(rates, 0)), 100)

    def response_count(self, form_id: int) -> int:
        return self.store.count_responses(form_id)

    def last_response_date(self, form_id: int) -> datetime | None:
        return self.store.last_response_at(form_id)

    def form_stats(self, form_id: int) -> FormStats:
        questions = self.store.list_questions(form_id)
        responses = self.store.list_responses(form_id)
        individual = []
        for response in responses:
            completion = compute_response_completion(questions, response)
            individual.append(
                ResponseStats(
                    response_id=response.id,
                    user_name=response.user_name or ANONYMOUS,
                    submitted_at=response.submitted_at,
                    answered_questions=completion.answered_count,
                    total_questions=completion.total_questions,
                    completion_rate=completion.completion_rate,
                )
            )
        return FormStats(
            form_id=form_id,
            total_responses=len(responses),
            total_questions=len(questions),
            average_completion_rate=average_rate(
                (s.completion_rate for s in individual), 1
            ),
            individual_responses=individual,
        )

    def _guarded(self, what: str, form_id: int, compute, default):
        try:
            return compute(form_id)
        except (StorageError, DatabaseError):
            logger.exception("Could not compute %s for form %s", what, form_id)
            return default

    def summarize(self, listing: FormListing) -> FormSummary:
        """Dashboard aggregates for one form; each degrades to a default on failure."""
        form_id = listing.form.id
        return FormSummary(
            listing=listing,
            response_count=self._guarded("response count", form_id, self.response_count, 0),
            completion_rate=self._guarded(
                "completion rate", form_id, self.compute_form_completion_rate, 0
            ),
            last_response=self._guarded(
                "last response", form_id, self.last_response_date, None
            ),
        )

    def dashboard(self, user_id: int) -> list[FormSummary]:
        return [self.summarize(listing) for listing in self.store.list_forms_for_user(user_id)]
