"""Account registration, profile updates and token issuance."""

from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from rest_framework_simplejwt.tokens import RefreshToken

from .errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

User = get_user_model()


def user_payload(user) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name}


def issue_token(user) -> str:
    return str(RefreshToken.for_user(user).access_token)


def email_taken(email: str, exclude_id: int | None = None) -> bool:
    qs = User.objects.filter(email__iexact=email)
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs.exists()


def register_user(email: str, password: str, name: str):
    if email_taken(email):
        raise ConflictError("User with this email already exists")
    try:
        with transaction.atomic():
            user = User.objects.create_user(email=email, password=password, name=name.strip())
    except IntegrityError as exc:
        raise ConflictError("User with this email already exists") from exc
    logger.info("Registered user %s", user.id)
    return user


def update_profile(user, name: str | None = None, email: str | None = None, password: str | None = None):
    if not (name or email or password):
        raise ValidationError("No fields to update")
    update_fields = []
    if name:
        user.name = name.strip()
        update_fields.append("name")
    if email:
        if email_taken(email, exclude_id=user.id):
            raise ConflictError("Email already taken")
        user.email = User.objects.normalize_email(email).lower()
        update_fields.append("email")
    if password:
        user.set_password(password)
        update_fields.append("password")
    try:
        with transaction.atomic():
            user.save(update_fields=update_fields)
    except IntegrityError as exc:
        raise ConflictError("Email already taken") from exc
    logger.info("Updated profile for user %s (%s)", user.id, ", ".join(update_fields))
    return user
