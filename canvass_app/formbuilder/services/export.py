"""Tabular rendering of a form's responses for spreadsheet export."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from django.conf import settings
from django.utils import timezone
from django.utils.formats import date_format

from canvass_app.core.errors import ExportTooLargeError

from ..permissions import AccessResolver
from ..records import AnswerRecord, QuestionRecord, ResponseRecord
from ..store import FormStore
from .aggregation import ANONYMOUS, first_answer_for
from .spreadsheet import CellTooLargeError, encode_workbook

logger = logging.getLogger(__name__)

FIXED_HEADERS = ("Response ID", "User", "Submitted At")
FIXED_WIDTHS = (15, 20, 25)
QUESTION_WIDTH = 20
QUESTION_SHEET_HEADERS = ("Question ID", "Question Text", "Type", "Required", "Options")
TRUNCATION_MARKER = "... [truncated]"


@dataclass
class Sheet:
    title: str
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    widths: list[int] = field(default_factory=list)


@dataclass
class Workbook:
    sheets: list[Sheet]

    def sheet(self, title: str) -> Sheet:
        for sheet in self.sheets:
            if sheet.title == title:
                return sheet
        raise KeyError(title)


def unique_headers(texts: Sequence[str], reserved: Sequence[str] = ()) -> list[str]:
    """Make column headers unique by suffixing repeats with `` (2)``, `` (3)``..."""
    taken = set(reserved)
    headers = []
    for text in texts:
        candidate, n = text, 1
        while candidate in taken:
            n += 1
            candidate = f"{text} ({n})"
        taken.add(candidate)
        headers.append(candidate)
    return headers


class ExportFormatter:
    def __init__(self, data_too_long_chars: int | None = None, truncate_chars: int | None = None):
        if data_too_long_chars is None:
            data_too_long_chars = getattr(settings, "EXPORT_DATA_TOO_LONG_CHARS", 30000)
        if truncate_chars is None:
            truncate_chars = getattr(settings, "EXPORT_TRUNCATE_CHARS", 25000)
        self.data_too_long_chars = data_too_long_chars
        self.truncate_chars = truncate_chars

    def cell(self, question: QuestionRecord, response_id: int, answer: AnswerRecord | None) -> str:
        if answer is None:
            return ""
        text = answer.answer_text
        if text:
            if question.type == "image" and text.startswith("data:image"):
                return f"[Image {response_id}-{question.id}]"
            if len(text) > self.data_too_long_chars:
                return f"[Data too long: {len(text)} chars]"
            if len(text) > self.truncate_chars:
                return text[: self.truncate_chars] + TRUNCATION_MARKER
            return text
        options = answer.answer_options
        if options is None:
            return ""
        if isinstance(options, (list, tuple)):
            return ", ".join(str(o) for o in options)
        return str(options)

    def submitted_at(self, response: ResponseRecord) -> str:
        return date_format(timezone.localtime(response.submitted_at), "SHORT_DATETIME_FORMAT")

    def responses_sheet(
        self, questions: Sequence[QuestionRecord], responses: Sequence[ResponseRecord]
    ) -> Sheet:
        headers = list(FIXED_HEADERS) + unique_headers(
            [q.text for q in questions], reserved=FIXED_HEADERS
        )
        rows = []
        for response in responses:
            row: list[Any] = [
                response.id,
                response.user_name or ANONYMOUS,
                self.submitted_at(response),
            ]
            for question in questions:
                row.append(self.cell(question, response.id, first_answer_for(response, question.id)))
            rows.append(row)
        widths = list(FIXED_WIDTHS) + [QUESTION_WIDTH] * len(questions)
        return Sheet("Responses", headers, rows, widths)

    def questions_sheet(self, questions: Sequence[QuestionRecord]) -> Sheet:
        rows = [
            [
                q.id,
                q.text,
                q.type,
                "Yes" if q.is_required else "No",
                "; ".join(str(o) for o in q.raw_options),
            ]
            for q in questions
        ]
        return Sheet("Questions", list(QUESTION_SHEET_HEADERS), rows)

    def format(
        self, questions: Sequence[QuestionRecord], responses: Sequence[ResponseRecord]
    ) -> Workbook:
        return Workbook([self.responses_sheet(questions, responses), self.questions_sheet(questions)])


class ExportService:
    def __init__(
        self,
        store: FormStore,
        access: AccessResolver | None = None,
        formatter: ExportFormatter | None = None,
    ):
        self.store = store
        self.access = access or AccessResolver(store)
        self.formatter = formatter or ExportFormatter()

    def export(self, form_id: int, user_id: int | None) -> bytes:
        self.access.require_access(form_id, user_id)
        questions = self.store.list_questions(form_id)
        responses = self.store.list_responses(form_id)
        workbook = self.formatter.format(questions, responses)
        try:
            return encode_workbook(workbook)
        except CellTooLargeError as exc:
            logger.warning("Export of form %s rejected by encoder: %s", form_id, exc)
            raise ExportTooLargeError() from exc

    @staticmethod
    def filename(form_id: int) -> str:
        return f"form-{form_id}-responses-{timezone.now().strftime('%Y%m%d%H%M%S')}.xlsx"
