"""Storage handle for forms and everything hanging off them.

Services receive a ``FormStore`` at construction time. ``OrmFormStore`` is the
Django ORM implementation used by the API; tests may pass an in-memory store
implementing the same interface.
"""

from __future__ import annotations

import abc
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Sequence

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Max, Prefetch, Q
from django.utils import timezone

from canvass_app.core.errors import StorageError

from .models import Answer, Collaborator, Form, Question, Response
from .records import (
    AnswerInput,
    AnswerRecord,
    CollaboratorRecord,
    FormListing,
    FormRecord,
    QuestionInput,
    QuestionRecord,
    ResponseRecord,
    Role,
    UserRecord,
    parse_options,
)

logger = logging.getLogger(__name__)

FORM_FIELDS = ("title", "description", "allow_unauthenticated", "is_locked")


class FormStore(abc.ABC):
    """Interface every storage backend implements."""

    @abc.abstractmethod
    def atomic(self):
        """Context manager: everything inside commits together or not at all."""

    # Users
    @abc.abstractmethod
    def get_user(self, user_id: int) -> UserRecord | None: ...

    @abc.abstractmethod
    def get_user_by_email(self, email: str) -> UserRecord | None: ...

    # Forms
    @abc.abstractmethod
    def get_form(self, form_id: int) -> FormRecord | None: ...

    @abc.abstractmethod
    def list_forms_for_user(self, user_id: int) -> list[FormListing]: ...

    @abc.abstractmethod
    def create_form(
        self,
        created_by: int,
        title: str,
        description: str = "",
        allow_unauthenticated: bool = False,
    ) -> FormRecord: ...

    @abc.abstractmethod
    def update_form_fields(self, form_id: int, **fields) -> FormRecord | None: ...

    @abc.abstractmethod
    def delete_form(self, form_id: int) -> bool: ...

    # Questions
    @abc.abstractmethod
    def list_questions(self, form_id: int) -> list[QuestionRecord]: ...

    @abc.abstractmethod
    def insert_question(
        self, form_id: int, question: QuestionInput, order_index: int
    ) -> QuestionRecord: ...

    @abc.abstractmethod
    def update_question(
        self, question_id: int, question: QuestionInput, order_index: int
    ) -> QuestionRecord: ...

    @abc.abstractmethod
    def set_question_order(
        self, form_id: int, question_id: int, order_index: int
    ) -> bool: ...

    @abc.abstractmethod
    def delete_answers_for_questions(self, question_ids: Sequence[int]) -> int: ...

    @abc.abstractmethod
    def delete_questions(self, form_id: int, question_ids: Sequence[int]) -> int: ...

    # Collaborators
    @abc.abstractmethod
    def get_collaborator_role(self, form_id: int, user_id: int) -> str | None: ...

    @abc.abstractmethod
    def list_collaborators(self, form_id: int) -> list[CollaboratorRecord]: ...

    @abc.abstractmethod
    def upsert_collaborator(
        self, form_id: int, user_id: int, role: str
    ) -> CollaboratorRecord: ...

    @abc.abstractmethod
    def remove_collaborator(self, form_id: int, user_id: int) -> bool: ...

    # Responses
    @abc.abstractmethod
    def list_responses(self, form_id: int) -> list[ResponseRecord]: ...

    @abc.abstractmethod
    def get_response(self, form_id: int, response_id: int) -> ResponseRecord | None: ...

    @abc.abstractmethod
    def create_response(
        self, form_id: int, user_id: int | None, answers: Iterable[AnswerInput]
    ) -> ResponseRecord: ...

    @abc.abstractmethod
    def count_responses(self, form_id: int) -> int: ...

    @abc.abstractmethod
    def last_response_at(self, form_id: int) -> datetime | None: ...


def _user_record(user) -> UserRecord:
    return UserRecord(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


def _form_record(form: Form) -> FormRecord:
    return FormRecord(
        id=form.id,
        title=form.title,
        description=form.description,
        allow_unauthenticated=form.allow_unauthenticated,
        is_locked=form.is_locked,
        created_by=form.created_by_id,
        created_at=form.created_at,
        updated_at=form.updated_at,
    )


def _question_record(question: Question) -> QuestionRecord:
    return QuestionRecord(
        id=question.id,
        form_id=question.form_id,
        text=question.text,
        type=question.type,
        is_required=question.is_required,
        options=parse_options(question.type, question.options),
        order_index=question.order_index,
        image_url=question.image_url,
    )


def _answer_record(answer: Answer) -> AnswerRecord:
    return AnswerRecord(
        id=answer.id,
        response_id=answer.response_id,
        question_id=answer.question_id,
        answer_text=answer.answer_text,
        answer_options=answer.answer_options,
        created_at=answer.created_at,
    )


def _response_record(response: Response) -> ResponseRecord:
    user = response.user
    return ResponseRecord(
        id=response.id,
        form_id=response.form_id,
        user_id=response.user_id,
        submitted_at=response.submitted_at,
        answers=tuple(_answer_record(a) for a in response.answers.all()),
        user_name=user.name if user else None,
        user_email=user.email if user else None,
    )


def _collaborator_record(collaborator: Collaborator) -> CollaboratorRecord:
    return CollaboratorRecord(
        id=collaborator.id,
        form_id=collaborator.form_id,
        user_id=collaborator.user_id,
        email=collaborator.user.email,
        name=collaborator.user.name,
        role=collaborator.role,
        created_at=collaborator.created_at,
    )


class OrmFormStore(FormStore):
    """``FormStore`` backed by the Django ORM and the default database."""

    @contextmanager
    def atomic(self) -> Iterator[None]:
        try:
            with transaction.atomic():
                yield
        except DatabaseError as exc:
            logger.warning("Transaction rolled back: %s", exc)
            raise StorageError("Database operation failed") from exc

    def get_user(self, user_id):
        user = get_user_model().objects.filter(pk=user_id).first()
        return _user_record(user) if user else None

    def get_user_by_email(self, email):
        user = get_user_model().objects.filter(email__iexact=email.strip()).first()
        return _user_record(user) if user else None

    def get_form(self, form_id):
        form = Form.objects.filter(pk=form_id).first()
        return _form_record(form) if form else None

    def list_forms_for_user(self, user_id):
        roles = dict(
            Collaborator.objects.filter(user_id=user_id).values_list("form_id", "role")
        )
        forms = Form.objects.filter(created_by_id=user_id) | Form.objects.filter(
            pk__in=list(roles)
        )
        listings = []
        for form in forms.distinct().order_by("-updated_at", "-id"):
            role = Role.OWNER if form.created_by_id == user_id else roles[form.id]
            listings.append(FormListing(form=_form_record(form), role=role))
        return listings

    def create_form(self, created_by, title, description="", allow_unauthenticated=False):
        form = Form.objects.create(
            created_by_id=created_by,
            title=title,
            description=description or "",
            allow_unauthenticated=allow_unauthenticated,
        )
        return _form_record(form)

    def update_form_fields(self, form_id, **fields):
        unknown = set(fields) - set(FORM_FIELDS)
        if unknown:
            raise ValueError(f"Unknown form fields: {sorted(unknown)}")
        updated = Form.objects.filter(pk=form_id).update(updated_at=timezone.now(), **fields)
        return self.get_form(form_id) if updated else None

    def delete_form(self, form_id):
        with self.atomic():
            if not Form.objects.filter(pk=form_id).exists():
                return False
            Answer.objects.filter(
                Q(response__form_id=form_id) | Q(question__form_id=form_id)
            ).delete()
            Response.objects.filter(form_id=form_id).delete()
            Question.objects.filter(form_id=form_id).delete()
            Collaborator.objects.filter(form_id=form_id).delete()
            Form.objects.filter(pk=form_id).delete()
        logger.info("Deleted form %s", form_id)
        return True

    def list_questions(self, form_id):
        return [_question_record(q) for q in Question.objects.filter(form_id=form_id)]

    def insert_question(self, form_id, question, order_index):
        row = Question.objects.create(
            form_id=form_id,
            text=question.text,
            type=question.type,
            is_required=question.is_required,
            options=question.options.as_list(),
            order_index=order_index,
            image_url=question.image_url,
        )
        return _question_record(row)

    def update_question(self, question_id, question, order_index):
        row = Question.objects.get(pk=question_id)
        row.text = question.text
        row.type = question.type
        row.is_required = question.is_required
        row.options = question.options.as_list()
        row.order_index = order_index
        row.image_url = question.image_url
        row.save(
            update_fields=["text", "type", "is_required", "options", "order_index", "image_url"]
        )
        return _question_record(row)

    def set_question_order(self, form_id, question_id, order_index):
        return bool(
            Question.objects.filter(pk=question_id, form_id=form_id).update(
                order_index=order_index
            )
        )

    def delete_answers_for_questions(self, question_ids):
        if not question_ids:
            return 0
        deleted, _ = Answer.objects.filter(question_id__in=list(question_ids)).delete()
        return deleted

    def delete_questions(self, form_id, question_ids):
        if not question_ids:
            return 0
        deleted, _ = Question.objects.filter(
            form_id=form_id, pk__in=list(question_ids)
        ).delete()
        return deleted

    def get_collaborator_role(self, form_id, user_id):
        return (
            Collaborator.objects.filter(form_id=form_id, user_id=user_id)
            .values_list("role", flat=True)
            .first()
        )

    def list_collaborators(self, form_id):
        rows = (
            Collaborator.objects.filter(form_id=form_id)
            .select_related("user")
            .order_by("created_at", "id")
        )
        return [_collaborator_record(c) for c in rows]

    def upsert_collaborator(self, form_id, user_id, role):
        row, created = Collaborator.objects.update_or_create(
            form_id=form_id, user_id=user_id, defaults={"role": role}
        )
        logger.info(
            "%s collaborator user=%s form=%s role=%s",
            "Added" if created else "Updated",
            user_id,
            form_id,
            role,
        )
        return _collaborator_record(
            Collaborator.objects.select_related("user").get(pk=row.pk)
        )

    def remove_collaborator(self, form_id, user_id):
        deleted, _ = Collaborator.objects.filter(form_id=form_id, user_id=user_id).delete()
        if deleted:
            logger.info("Removed collaborator user=%s form=%s", user_id, form_id)
        return bool(deleted)

    def _responses(self):
        return Response.objects.select_related("user").prefetch_related(
            Prefetch("answers", queryset=Answer.objects.order_by("id"))
        )

    def list_responses(self, form_id):
        rows = self._responses().filter(form_id=form_id).order_by("-submitted_at", "-id")
        return [_response_record(r) for r in rows]

    def get_response(self, form_id, response_id):
        row = self._responses().filter(form_id=form_id, pk=response_id).first()
        return _response_record(row) if row else None

    def create_response(self, form_id, user_id, answers):
        with self.atomic():
            response = Response.objects.create(form_id=form_id, user_id=user_id)
            Answer.objects.bulk_create(
                [
                    Answer(
                        response=response,
                        question_id=a.question_id,
                        answer_text=a.answer_text,
                        answer_options=a.answer_options,
                    )
                    for a in answers
                ]
            )
        return self.get_response(form_id, response.id)

    def count_responses(self, form_id):
        return Response.objects.filter(form_id=form_id).count()

    def last_response_at(self, form_id):
        return Response.objects.filter(form_id=form_id).aggregate(
            last=Max("submitted_at")
        )["last"]
