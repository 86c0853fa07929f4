"""Typed records handed out by the form store.

Services never see ORM instances; they work with these frozen dataclasses so
that any ``FormStore`` implementation (database backed or in-memory) is
interchangeable.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence, Union

logger = logging.getLogger(__name__)

QUESTION_TYPES = (
    "text",
    "textarea",
    "radio",
    "checkbox",
    "select",
    "email",
    "number",
    "number_range",
    "date",
    "time",
    "image",
)
CHOICE_TYPES = frozenset({"radio", "checkbox", "select"})
RANGE_TYPE = "number_range"


class Role:
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
    NONE = "none"

    COLLABORATOR_ROLES = (EDITOR, VIEWER)
    EDIT_ROLES = (OWNER, EDITOR)


@dataclass(frozen=True)
class ChoiceOptions:
    choices: tuple = ()

    def as_list(self) -> list:
        return list(self.choices)


@dataclass(frozen=True)
class RangeOptions:
    minimum: float
    maximum: float
    step: float

    def as_list(self) -> list:
        return [self.minimum, self.maximum, self.step]


@dataclass(frozen=True)
class NoOptions:
    def as_list(self) -> list:
        return []


QuestionOptions = Union[ChoiceOptions, RangeOptions, NoOptions]


def _number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return int(parsed) if parsed.is_integer() else parsed
    return None


def parse_range(raw: Sequence) -> RangeOptions | None:
    """Return ``RangeOptions`` for a well formed ``[min, max, step]`` triple."""
    if len(raw) != 3:
        return None
    minimum, maximum, step = (_number(v) for v in raw)
    if minimum is None or maximum is None or step is None:
        return None
    if step <= 0 or minimum > maximum:
        return None
    return RangeOptions(minimum, maximum, step)


def parse_options(question_type: str, raw: Any) -> QuestionOptions:
    """Coerce stored or submitted options into the variant for ``question_type``.

    Malformed JSON or a non-list value degrades to no options rather than
    raising; batch validation is where bad input is rejected.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unparseable options payload")
            raw = []
    if not isinstance(raw, (list, tuple)):
        raw = []
    if question_type in CHOICE_TYPES:
        return ChoiceOptions(tuple(raw))
    if question_type == RANGE_TYPE and raw:
        return parse_range(raw) or NoOptions()
    return NoOptions()


@dataclass(frozen=True)
class UserRecord:
    id: int
    email: str
    name: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class FormRecord:
    id: int
    title: str
    description: str
    allow_unauthenticated: bool
    is_locked: bool
    created_by: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class FormListing:
    form: FormRecord
    role: str


@dataclass(frozen=True)
class QuestionRecord:
    id: int
    form_id: int
    text: str
    type: str
    is_required: bool
    options: QuestionOptions
    order_index: int
    image_url: str | None = None

    @property
    def raw_options(self) -> list:
        return self.options.as_list()


@dataclass(frozen=True)
class QuestionInput:
    """A validated incoming question; ``id`` is set when it targets an existing row."""

    text: str
    type: str
    is_required: bool = False
    options: QuestionOptions = field(default_factory=NoOptions)
    image_url: str | None = None
    id: int | None = None


@dataclass(frozen=True)
class CollaboratorRecord:
    id: int
    form_id: int
    user_id: int
    email: str
    name: str
    role: str
    created_at: datetime


@dataclass(frozen=True)
class AnswerInput:
    question_id: int
    answer_text: str | None = None
    answer_options: Any = None


@dataclass(frozen=True)
class AnswerRecord:
    id: int
    response_id: int
    question_id: int
    answer_text: str | None
    answer_options: Any
    created_at: datetime | None = None


@dataclass(frozen=True)
class ResponseRecord:
    id: int
    form_id: int
    user_id: int | None
    submitted_at: datetime
    answers: tuple[AnswerRecord, ...] = ()
    user_name: str | None = None
    user_email: str | None = None
