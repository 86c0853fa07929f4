from django.conf import settings
from django.http import HttpResponse
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.authentication import JWTAuthentication

from canvass_app.formbuilder.permissions import AccessResolver
from canvass_app.formbuilder.services import ExportService, FormService, ResponseService
from canvass_app.formbuilder.services.spreadsheet import XLSX_CONTENT_TYPE
from canvass_app.formbuilder.store import OrmFormStore

from .authentication import OptionalJWTAuthentication
from .serializers import (
    CollaboratorCreateSerializer,
    CollaboratorSerializer,
    FormCreateSerializer,
    FormDetailSerializer,
    FormSerializer,
    FormStatsSerializer,
    FormSummarySerializer,
    FormUpdateSerializer,
    LockSerializer,
    QuestionOrderSerializer,
    QuestionSerializer,
    ResponseSerializer,
)


def submission_rate(group, request):
    return settings.SUBMISSION_RATE_LIMIT


class FormsAPIView(APIView):
    """Base view wiring the services to a store.

    Methods listed in ``anonymous_methods`` accept requests without a valid
    token; the services then apply the form's own anonymous-access rules.
    """

    store_class = OrmFormStore
    anonymous_methods: tuple = ()

    def get_authenticators(self):
        # self.request is the plain HttpRequest here (set by View.setup)
        if self.request.method in self.anonymous_methods:
            return [OptionalJWTAuthentication()]
        return [JWTAuthentication()]

    def get_permissions(self):
        if self.request.method in self.anonymous_methods:
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated()]

    def user_id(self):
        return getattr(self.request.user, "id", None)

    def get_store(self):
        return self.store_class()

    def access(self, store):
        return AccessResolver(store)

    def form_service(self):
        store = self.get_store()
        return FormService(store, self.access(store))

    def response_service(self):
        store = self.get_store()
        return ResponseService(store, self.access(store))


@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def healthcheck(request):
    return Response({"status": "ok"})


class FormListView(FormsAPIView):
    def get(self, request):
        summaries = self.form_service().dashboard(self.user_id())
        return Response(FormSummarySerializer(summaries, many=True).data)

    def post(self, request):
        serializer = FormCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        detail = self.form_service().create(self.user_id(), **serializer.validated_data)
        return Response(FormDetailSerializer(detail).data, status=status.HTTP_201_CREATED)


class FormDetailView(FormsAPIView):
    anonymous_methods = ("GET",)

    def get(self, request, form_id):
        detail = self.form_service().detail(form_id, self.user_id())
        return Response(FormDetailSerializer(detail).data)

    def put(self, request, form_id):
        serializer = FormUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        questions = fields.pop("questions", None)
        detail = self.form_service().update(form_id, self.user_id(), fields, questions)
        return Response(FormDetailSerializer(detail).data)

    def delete(self, request, form_id):
        self.form_service().delete(form_id, self.user_id())
        return Response({"message": "Form deleted successfully"})


class FormLockView(FormsAPIView):
    def patch(self, request, form_id):
        serializer = LockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        is_locked = serializer.validated_data["is_locked"]
        form = self.form_service().set_lock(form_id, self.user_id(), is_locked)
        return Response(
            {
                "message": f"Form {'locked' if is_locked else 'unlocked'} successfully",
                "form": FormSerializer(form).data,
            }
        )


class QuestionOrderView(FormsAPIView):
    def put(self, request, form_id):
        serializer = QuestionOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        questions = self.form_service().reorder(
            form_id, self.user_id(), serializer.validated_data["question_ids"]
        )
        return Response(
            {
                "message": "Questions reordered successfully",
                "questions": QuestionSerializer(questions, many=True).data,
            }
        )


class CollaboratorListView(FormsAPIView):
    def get(self, request, form_id):
        collaborators = self.form_service().collaborators(form_id, self.user_id())
        return Response({"collaborators": CollaboratorSerializer(collaborators, many=True).data})

    def post(self, request, form_id):
        serializer = CollaboratorCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        collaborator = self.form_service().add_collaborator(
            form_id,
            self.user_id(),
            serializer.validated_data["collaborator_email"],
            serializer.validated_data["role"],
        )
        return Response(
            {
                "message": "Collaborator added successfully",
                "collaborator": CollaboratorSerializer(collaborator).data,
            },
            status=status.HTTP_201_CREATED,
        )


class CollaboratorDetailView(FormsAPIView):
    def delete(self, request, form_id, user_id):
        self.form_service().remove_collaborator(form_id, self.user_id(), user_id)
        return Response({"message": "Collaborator removed successfully"})


class ResponseListView(FormsAPIView):
    anonymous_methods = ("POST",)

    def get(self, request, form_id):
        responses, questions = self.response_service().list_responses(form_id, self.user_id())
        context = {"questions": {q.id: q for q in questions}}
        return Response(ResponseSerializer(responses, many=True, context=context).data)

    @method_decorator(ratelimit(key="ip", rate=submission_rate, method=["POST"], block=True))
    def post(self, request, form_id):
        # answers are validated after the form gate so 404/423/401 take precedence
        answers = request.data.get("answers") if isinstance(request.data, dict) else None
        response = self.response_service().submit(form_id, self.user_id(), answers)
        return Response(
            {"message": "Response submitted successfully", "response_id": response.id},
            status=status.HTTP_201_CREATED,
        )


class ResponseDetailView(FormsAPIView):
    def get(self, request, form_id, response_id):
        response, questions = self.response_service().get_response(
            form_id, response_id, self.user_id()
        )
        context = {"questions": {q.id: q for q in questions}}
        return Response(ResponseSerializer(response, context=context).data)


class ResponseStatsView(FormsAPIView):
    def get(self, request, form_id):
        stats = self.response_service().stats(form_id, self.user_id())
        return Response(FormStatsSerializer(stats).data)


class ResponseExportView(FormsAPIView):
    def get(self, request, form_id):
        store = self.get_store()
        service = ExportService(store, self.access(store))
        content = service.export(form_id, self.user_id())
        response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
        response["Content-Disposition"] = f'attachment; filename="{service.filename(form_id)}"'
        return response
