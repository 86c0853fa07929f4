from __future__ import annotations

import logging

from django.conf import settings
from django.db import DatabaseError

from canvass_app.core.errors import (
    AccessDeniedError,
    AuthRequiredError,
    LockedError,
    NotFoundError,
    StorageError,
)

from .records import FormRecord, Role
from .store import FormStore

logger = logging.getLogger(__name__)


class AccessResolver:
    """Effective role of a user on a form, and the checks built on it.

    ``require_*`` helpers check in a fixed order: the form must exist
    (``NotFoundError``), then a user must be present (``AuthRequiredError``),
    then the role must allow the operation (``AccessDeniedError``).
    """

    def __init__(self, store: FormStore, lock_toggle_requires_owner: bool | None = None):
        self.store = store
        if lock_toggle_requires_owner is None:
            lock_toggle_requires_owner = getattr(settings, "LOCK_TOGGLE_REQUIRES_OWNER", False)
        self.lock_toggle_requires_owner = lock_toggle_requires_owner

    def resolve_role(self, form_id: int, user_id: int | None, form: FormRecord | None = None) -> str:
        if user_id is None:
            return Role.NONE
        try:
            form = form or self.store.get_form(form_id)
            if form is None:
                return Role.NONE
            if form.created_by == user_id:
                return Role.OWNER
            role = self.store.get_collaborator_role(form_id, user_id)
        except (StorageError, DatabaseError):
            logger.exception("Role lookup failed for form=%s user=%s", form_id, user_id)
            return Role.NONE
        if role in Role.COLLABORATOR_ROLES:
            return role
        return Role.NONE

    def has_access(self, form_id: int, user_id: int | None) -> bool:
        return self.resolve_role(form_id, user_id) != Role.NONE

    def can_edit(self, form_id: int, user_id: int | None) -> bool:
        return self.resolve_role(form_id, user_id) in Role.EDIT_ROLES

    def can_manage(self, form_id: int, user_id: int | None) -> bool:
        return self.resolve_role(form_id, user_id) == Role.OWNER

    def can_toggle_lock(self, form_id: int, user_id: int | None) -> bool:
        role = self.resolve_role(form_id, user_id)
        if self.lock_toggle_requires_owner:
            return role == Role.OWNER
        return role != Role.NONE

    # Gate helpers used by the services

    def _existing(self, form_id: int) -> FormRecord:
        form = self.store.get_form(form_id)
        if form is None:
            raise NotFoundError("Form not found")
        return form

    def _gate(self, form_id: int, user_id: int | None, allowed) -> tuple[FormRecord, str]:
        form = self._existing(form_id)
        if user_id is None:
            raise AuthRequiredError()
        role = self.resolve_role(form_id, user_id, form=form)
        if not allowed(role):
            raise AccessDeniedError()
        return form, role

    def require_access(self, form_id: int, user_id: int | None) -> tuple[FormRecord, str]:
        return self._gate(form_id, user_id, lambda role: role != Role.NONE)

    def require_edit(self, form_id: int, user_id: int | None) -> tuple[FormRecord, str]:
        return self._gate(form_id, user_id, lambda role: role in Role.EDIT_ROLES)

    def require_owner(self, form_id: int, user_id: int | None) -> tuple[FormRecord, str]:
        return self._gate(form_id, user_id, lambda role: role == Role.OWNER)

    def require_lock_toggle(self, form_id: int, user_id: int | None) -> tuple[FormRecord, str]:
        if self.lock_toggle_requires_owner:
            return self.require_owner(form_id, user_id)
        return self.require_access(form_id, user_id)

    def require_readable_form(self, form_id: int, user_id: int | None) -> tuple[FormRecord, str]:
        """Any signed-in user may read a form to fill it in; anonymous callers
        only when the form accepts unauthenticated responses."""
        form = self._existing(form_id)
        if user_id is None:
            if form.allow_unauthenticated:
                return form, Role.NONE
            raise AuthRequiredError("Authentication required to access this form")
        return form, self.resolve_role(form_id, user_id, form=form)

    def require_submittable_form(self, form_id: int, user_id: int | None) -> FormRecord:
        form = self._existing(form_id)
        if form.is_locked:
            raise LockedError()
        if user_id is None and not form.allow_unauthenticated:
            raise AuthRequiredError("Authentication required to submit this form")
        return form
