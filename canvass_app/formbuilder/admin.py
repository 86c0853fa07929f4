from django.contrib import admin

from .models import Answer, Collaborator, Form, Question, Response


class QuestionInline(admin.TabularInline):
    model = Question
    extra = 0
    fields = ("order_index", "text", "type", "is_required")


class CollaboratorInline(admin.TabularInline):
    model = Collaborator
    extra = 0
    raw_id_fields = ("user",)


@admin.register(Form)
class FormAdmin(admin.ModelAdmin):
    list_display = ("title", "created_by", "is_locked", "allow_unauthenticated", "updated_at")
    list_filter = ("is_locked", "allow_unauthenticated")
    search_fields = ("title", "created_by__email")
    inlines = [QuestionInline, CollaboratorInline]


class AnswerInline(admin.TabularInline):
    model = Answer
    extra = 0
    readonly_fields = ("question", "answer_text", "answer_options", "created_at")


@admin.register(Response)
class ResponseAdmin(admin.ModelAdmin):
    list_display = ("id", "form", "user", "submitted_at")
    list_filter = ("form",)
    inlines = [AnswerInline]
