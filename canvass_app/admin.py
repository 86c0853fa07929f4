from django.contrib.admin import AdminSite
from django.contrib.admin.apps import AdminConfig


class CanvassAdminSite(AdminSite):
    site_header = "Canvass Admin"
    site_title = "Canvass Admin"
    index_title = "Administration"

    def has_permission(self, request):  # type: ignore[override]
        # Restrict access strictly to active superusers
        return bool(
            request.user and request.user.is_active and request.user.is_superuser
        )


class CanvassAdminConfig(AdminConfig):
    default_site = "canvass_app.admin.CanvassAdminSite"
