from rest_framework import serializers

from canvass_app.formbuilder.records import Role
from canvass_app.formbuilder.services.aggregation import ANONYMOUS


# Input shapes. Question and answer contents are validated by the services so
# that every problem in a batch is reported together.


class FormCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, allow_blank=True)
    description = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, default=""
    )
    allow_unauthenticated = serializers.BooleanField(required=False, default=False)
    questions = serializers.ListField(child=serializers.DictField())


class FormUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    allow_unauthenticated = serializers.BooleanField(required=False)
    questions = serializers.ListField(child=serializers.DictField(), required=False)

    def validate_description(self, value):
        return value or ""


class LockSerializer(serializers.Serializer):
    is_locked = serializers.BooleanField()


class QuestionOrderSerializer(serializers.Serializer):
    question_ids = serializers.ListField(child=serializers.IntegerField())


class CollaboratorCreateSerializer(serializers.Serializer):
    collaborator_email = serializers.EmailField()
    role = serializers.ChoiceField(choices=Role.COLLABORATOR_ROLES)


# Output shapes, read from the store's records.


class QuestionSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    form_id = serializers.IntegerField()
    text = serializers.CharField()
    type = serializers.CharField()
    is_required = serializers.BooleanField()
    options = serializers.ListField(source="raw_options")
    order_index = serializers.IntegerField()
    image_url = serializers.CharField(allow_null=True)


class FormSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    description = serializers.CharField()
    allow_unauthenticated = serializers.BooleanField()
    is_locked = serializers.BooleanField()
    created_by = serializers.IntegerField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class FormDetailSerializer(serializers.Serializer):
    def to_representation(self, detail):
        data = FormSerializer(detail.form).data
        data["questions"] = QuestionSerializer(detail.questions, many=True).data
        data["can_edit"] = detail.can_edit
        data["collaborator_role"] = detail.collaborator_role
        data["is_collaborator"] = detail.is_collaborator
        return data


class FormSummarySerializer(serializers.Serializer):
    def to_representation(self, summary):
        data = FormSerializer(summary.form).data
        collaborator_role = summary.role if summary.role in Role.COLLABORATOR_ROLES else None
        data.update(
            user_role=summary.role,
            response_count=summary.response_count,
            completion_rate=summary.completion_rate,
            last_response=serializers.DateTimeField().to_representation(summary.last_response)
            if summary.last_response
            else None,
            collaborator_role=collaborator_role,
            is_collaborator=collaborator_role is not None,
            can_edit=summary.role in Role.EDIT_ROLES,
        )
        return data


class CollaboratorSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    user_id = serializers.IntegerField()
    name = serializers.CharField()
    email = serializers.EmailField()
    role = serializers.CharField()
    created_at = serializers.DateTimeField()


class ResponseSerializer(serializers.Serializer):
    """Needs ``context["questions"]``: question records keyed by id."""

    def to_representation(self, response):
        questions = self.context.get("questions", {})
        answers = []
        for answer in response.answers:
            question = questions.get(answer.question_id)
            answers.append(
                {
                    "id": answer.id,
                    "question_id": answer.question_id,
                    "question_text": question.text if question else None,
                    "question_type": question.type if question else None,
                    "answer_text": answer.answer_text,
                    "answer_options": answer.answer_options,
                }
            )
        return {
            "id": response.id,
            "form_id": response.form_id,
            "user_id": response.user_id,
            "user_name": response.user_name or ANONYMOUS,
            "user_email": response.user_email,
            "submitted_at": serializers.DateTimeField().to_representation(response.submitted_at),
            "answers": answers,
        }


class ResponseStatsSerializer(serializers.Serializer):
    response_id = serializers.IntegerField()
    user_name = serializers.CharField()
    submitted_at = serializers.DateTimeField()
    answered_questions = serializers.IntegerField()
    total_questions = serializers.IntegerField()
    completion_rate = serializers.FloatField()


class FormStatsSerializer(serializers.Serializer):
    form_id = serializers.IntegerField()
    total_responses = serializers.IntegerField()
    total_questions = serializers.IntegerField()
    average_completion_rate = serializers.FloatField()
    individual_responses = ResponseStatsSerializer(many=True)
