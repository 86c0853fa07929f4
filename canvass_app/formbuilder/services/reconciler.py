"""Question reconciliation.

An incoming ordered list of questions replaces a form's persisted set:
questions whose id is missing from the list are deleted (their answers
first), listed ids are updated in place and everything else is inserted.
Each question's ``order_index`` becomes its position in the list.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from canvass_app.core.errors import NotFoundError, ValidationError

from ..records import (
    CHOICE_TYPES,
    QUESTION_TYPES,
    RANGE_TYPE,
    FormRecord,
    QuestionInput,
    QuestionRecord,
    parse_options,
    parse_range,
)
from ..store import FormStore

logger = logging.getLogger(__name__)

EDITABLE_FORM_FIELDS = ("title", "description", "allow_unauthenticated")


def _is_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_choice(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def validate_question_batch(items: Any) -> list[QuestionInput]:
    """Validate every incoming question before anything is written.

    Raises ``ValidationError`` listing all problems found, not only the first.
    """
    if not isinstance(items, (list, tuple)):
        raise ValidationError("Questions array is required")

    problems: list[str] = []
    parsed: list[QuestionInput] = []
    seen_ids: set[int] = set()
    for position, item in enumerate(items, start=1):
        if not isinstance(item, Mapping):
            problems.append(f"Question {position} is malformed")
            continue

        text = item.get("text")
        if not isinstance(text, str) or not text.strip():
            problems.append(f"Question {position} text is required")

        qtype = item.get("type")
        if qtype not in QUESTION_TYPES:
            problems.append(f"Invalid question type for question {position}")

        raw_options = item.get("options")
        if raw_options is None:
            raw_options = []
        if qtype in CHOICE_TYPES:
            if not isinstance(raw_options, (list, tuple)) or not raw_options:
                problems.append(
                    f"Options are required for {qtype} questions (question {position})"
                )
            elif not all(_is_choice(choice) for choice in raw_options):
                problems.append(
                    f"Options must be strings or numbers (question {position})"
                )
        elif qtype == RANGE_TYPE and raw_options:
            if not isinstance(raw_options, (list, tuple)) or parse_range(raw_options) is None:
                problems.append(
                    f"Options for number_range must be [min, max, step] (question {position})"
                )

        is_required = item.get("is_required")
        if is_required is not None and not isinstance(is_required, bool):
            problems.append(f"is_required must be true or false (question {position})")

        image_url = item.get("image_url")
        if image_url is not None and not isinstance(image_url, str):
            problems.append(f"Image URL must be a string (question {position})")

        qid = item.get("id")
        if _is_id(qid):
            if qid in seen_ids:
                problems.append(f"Question {position} repeats id {qid}")
            seen_ids.add(qid)
        else:
            qid = None

        if problems:
            continue
        parsed.append(
            QuestionInput(
                text=text.strip(),
                type=qtype,
                is_required=bool(is_required),
                options=parse_options(qtype, raw_options),
                image_url=image_url or None,
                id=qid,
            )
        )

    if problems:
        raise ValidationError("Validation failed", details=problems)
    return parsed


class QuestionReconciler:
    def __init__(self, store: FormStore):
        self.store = store

    def create_questions(self, form_id: int, items: Sequence) -> list[QuestionRecord]:
        """Insert a fresh batch; ids in the payload are ignored."""
        questions = validate_question_batch(items)
        with self.store.atomic():
            created = [
                self.store.insert_question(form_id, q, position)
                for position, q in enumerate(questions)
            ]
        logger.info("Created %d questions for form %s", len(created), form_id)
        return created

    def reconcile(self, form_id: int, items: Sequence) -> list[QuestionRecord]:
        questions = validate_question_batch(items)
        try:
            with self.store.atomic():
                return self._apply(form_id, questions)
        except Exception:
            logger.warning("Reconciliation of form %s rolled back", form_id, exc_info=True)
            raise

    def _apply(self, form_id: int, questions: list[QuestionInput]) -> list[QuestionRecord]:
        existing_ids = {q.id for q in self.store.list_questions(form_id)}
        incoming_ids = {q.id for q in questions if q.id is not None}
        to_delete = sorted(existing_ids - incoming_ids)

        if to_delete:
            self.store.delete_answers_for_questions(to_delete)
            self.store.delete_questions(form_id, to_delete)

        applied = []
        updated = inserted = 0
        for position, question in enumerate(questions):
            if question.id is not None and question.id in existing_ids:
                applied.append(self.store.update_question(question.id, question, position))
                updated += 1
            else:
                applied.append(self.store.insert_question(form_id, question, position))
                inserted += 1

        logger.info(
            "Reconciled form %s: %d deleted, %d updated, %d inserted",
            form_id,
            len(to_delete),
            updated,
            inserted,
        )
        return applied

    def update_form(
        self,
        form_id: int,
        fields: Mapping[str, Any],
        items: Sequence | None = None,
    ) -> tuple[FormRecord, list[QuestionRecord]]:
        """Apply form fields and, when given, the question list as one unit."""
        changes = {k: v for k, v in fields.items() if k in EDITABLE_FORM_FIELDS}
        if "title" in changes:
            title = changes["title"]
            if not isinstance(title, str) or not title.strip():
                raise ValidationError("Form title is required")
            changes["title"] = title.strip()
        incoming = validate_question_batch(items) if items is not None else None

        try:
            with self.store.atomic():
                form = self.store.update_form_fields(form_id, **changes)
                if form is None:
                    raise NotFoundError("Form not found")
                if incoming is not None:
                    questions = self._apply(form_id, incoming)
                else:
                    questions = self.store.list_questions(form_id)
        except Exception:
            logger.warning("Update of form %s rolled back", form_id, exc_info=True)
            raise
        return form, questions

    def reorder(self, form_id: int, question_ids: Any) -> list[QuestionRecord]:
        """Set ``order_index`` from list position without touching content.

        Ids that do not belong to the form are skipped and take no position.
        Questions left out of the list follow the listed ones in their
        current order.
        """
        if not isinstance(question_ids, (list, tuple)) or not all(
            _is_id(qid) for qid in question_ids
        ):
            raise ValidationError("question_ids must be a list of question ids")

        with self.store.atomic():
            current = [q.id for q in self.store.list_questions(form_id)]
            known = set(current)
            position = 0
            placed: set[int] = set()
            for qid in question_ids:
                if qid not in known or qid in placed:
                    continue
                self.store.set_question_order(form_id, qid, position)
                placed.add(qid)
                position += 1
            for qid in current:
                if qid not in placed:
                    self.store.set_question_order(form_id, qid, position)
                    position += 1
            return self.store.list_questions(form_id)
