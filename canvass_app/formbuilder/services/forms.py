from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from canvass_app.core.errors import ConflictError, NotFoundError, ValidationError

from ..permissions import AccessResolver
from ..records import CollaboratorRecord, FormRecord, QuestionRecord, Role
from ..store import FormStore
from .aggregation import FormSummary, ResponseAggregator
from .reconciler import QuestionReconciler, validate_question_batch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormDetail:
    form: FormRecord
    questions: list[QuestionRecord]
    role: str

    @property
    def can_edit(self) -> bool:
        return self.role in Role.EDIT_ROLES

    @property
    def collaborator_role(self) -> str | None:
        return self.role if self.role in Role.COLLABORATOR_ROLES else None

    @property
    def is_collaborator(self) -> bool:
        return self.collaborator_role is not None


class FormService:
    """Form lifecycle, sharing and ordering, gated by ``AccessResolver``."""

    def __init__(self, store: FormStore, access: AccessResolver | None = None):
        self.store = store
        self.access = access or AccessResolver(store)
        self.reconciler = QuestionReconciler(store)
        self.aggregator = ResponseAggregator(store)

    def dashboard(self, user_id: int) -> list[FormSummary]:
        return self.aggregator.dashboard(user_id)

    def create(
        self,
        user_id: int,
        title: Any,
        description: str = "",
        allow_unauthenticated: bool = False,
        questions: Sequence | None = None,
    ) -> FormDetail:
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Form title is required")
        items = questions if questions is not None else []
        validate_question_batch(items)
        with self.store.atomic():
            form = self.store.create_form(
                created_by=user_id,
                title=title.strip(),
                description=description or "",
                allow_unauthenticated=bool(allow_unauthenticated),
            )
            created = self.reconciler.create_questions(form.id, items)
        logger.info("User %s created form %s", user_id, form.id)
        return FormDetail(form=form, questions=created, role=Role.OWNER)

    def detail(self, form_id: int, user_id: int | None) -> FormDetail:
        form, role = self.access.require_readable_form(form_id, user_id)
        return FormDetail(form=form, questions=self.store.list_questions(form_id), role=role)

    def update(
        self,
        form_id: int,
        user_id: int | None,
        fields: Mapping[str, Any],
        questions: Sequence | None = None,
    ) -> FormDetail:
        _, role = self.access.require_edit(form_id, user_id)
        form, applied = self.reconciler.update_form(form_id, fields, questions)
        return FormDetail(form=form, questions=applied, role=role)

    def delete(self, form_id: int, user_id: int | None) -> None:
        self.access.require_owner(form_id, user_id)
        self.store.delete_form(form_id)

    def set_lock(self, form_id: int, user_id: int | None, is_locked: Any) -> FormRecord:
        self.access.require_lock_toggle(form_id, user_id)
        if not isinstance(is_locked, bool):
            raise ValidationError("is_locked must be true or false")
        form = self.store.update_form_fields(form_id, is_locked=is_locked)
        logger.info("User %s %s form %s", user_id, "locked" if is_locked else "unlocked", form_id)
        return form

    def reorder(self, form_id: int, user_id: int | None, question_ids: Any) -> list[QuestionRecord]:
        self.access.require_edit(form_id, user_id)
        return self.reconciler.reorder(form_id, question_ids)

    def collaborators(self, form_id: int, user_id: int | None) -> list[CollaboratorRecord]:
        self.access.require_access(form_id, user_id)
        return self.store.list_collaborators(form_id)

    def add_collaborator(
        self, form_id: int, user_id: int | None, email: Any, role: Any
    ) -> CollaboratorRecord:
        self.access.require_owner(form_id, user_id)
        if role not in Role.COLLABORATOR_ROLES:
            raise ValidationError("Role must be editor or viewer")
        if not isinstance(email, str) or not email.strip():
            raise ValidationError("Collaborator email is required")
        user = self.store.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        if user.id == user_id:
            raise ConflictError("Cannot add yourself as collaborator")
        return self.store.upsert_collaborator(form_id, user.id, role)

    def remove_collaborator(
        self, form_id: int, user_id: int | None, collaborator_user_id: int
    ) -> None:
        self.access.require_owner(form_id, user_id)
        if not self.store.remove_collaborator(form_id, collaborator_user_id):
            raise NotFoundError("Collaborator not found")
