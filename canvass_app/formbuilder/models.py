from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone


class Form(models.Model):
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    allow_unauthenticated = models.BooleanField(default=False)
    is_locked = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="forms"
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-updated_at", "-id"]

    def __str__(self) -> str:  # pragma: no cover
        return self.title


class Question(models.Model):
    class Types(models.TextChoices):
        TEXT = "text", "Short text"
        TEXTAREA = "textarea", "Long text"
        RADIO = "radio", "Single choice"
        CHECKBOX = "checkbox", "Multiple choice"
        SELECT = "select", "Dropdown"
        EMAIL = "email", "Email"
        NUMBER = "number", "Number"
        NUMBER_RANGE = "number_range", "Number range"
        DATE = "date", "Date"
        TIME = "time", "Time"
        IMAGE = "image", "Image"

    form = models.ForeignKey(Form, on_delete=models.CASCADE, related_name="questions")
    text = models.TextField()
    type = models.CharField(max_length=20, choices=Types.choices)
    is_required = models.BooleanField(default=False)
    # Choice list for radio/checkbox/select, [min, max, step] for number_range
    options = models.JSONField(default=list, blank=True)
    order_index = models.IntegerField(default=0)
    image_url = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["order_index", "id"]

    def __str__(self) -> str:  # pragma: no cover
        return self.text


class Collaborator(models.Model):
    class Role(models.TextChoices):
        EDITOR = "editor", "Editor"
        VIEWER = "viewer", "Viewer"

    form = models.ForeignKey(
        Form, on_delete=models.CASCADE, related_name="collaborators"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="form_collaborations",
    )
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.VIEWER)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["form", "user"], name="one_collaborator_row_per_user_per_form"
            )
        ]


class Response(models.Model):
    form = models.ForeignKey(Form, on_delete=models.CASCADE, related_name="responses")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="form_responses",
    )
    submitted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-submitted_at", "-id"]


class Answer(models.Model):
    response = models.ForeignKey(
        Response, on_delete=models.CASCADE, related_name="answers"
    )
    # Answers must be removed before the question they reference
    question = models.ForeignKey(
        Question, on_delete=models.RESTRICT, related_name="answers"
    )
    answer_text = models.TextField(null=True, blank=True)
    answer_options = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["id"]
