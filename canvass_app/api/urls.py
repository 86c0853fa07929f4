from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import views

urlpatterns = [
    path("health", views.healthcheck, name="healthcheck"),
    path("token", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/", include("canvass_app.core.urls")),
    path("forms", views.FormListView.as_view(), name="form-list"),
    path("forms/<int:form_id>", views.FormDetailView.as_view(), name="form-detail"),
    path("forms/<int:form_id>/lock", views.FormLockView.as_view(), name="form-lock"),
    path(
        "forms/<int:form_id>/questions/order",
        views.QuestionOrderView.as_view(),
        name="question-order",
    ),
    path(
        "forms/<int:form_id>/collaborators",
        views.CollaboratorListView.as_view(),
        name="collaborator-list",
    ),
    path(
        "forms/<int:form_id>/collaborators/<int:user_id>",
        views.CollaboratorDetailView.as_view(),
        name="collaborator-detail",
    ),
    path(
        "forms/<int:form_id>/responses",
        views.ResponseListView.as_view(),
        name="response-list",
    ),
    path(
        "forms/<int:form_id>/responses/stats",
        views.ResponseStatsView.as_view(),
        name="response-stats",
    ),
    path(
        "forms/<int:form_id>/responses/export",
        views.ResponseExportView.as_view(),
        name="response-export",
    ),
    path(
        "forms/<int:form_id>/responses/<int:response_id>",
        views.ResponseDetailView.as_view(),
        name="response-detail",
    ),
]
