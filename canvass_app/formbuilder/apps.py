from django.apps import AppConfig


class FormbuilderConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "canvass_app.formbuilder"
    label = "formbuilder"
    verbose_name = "Forms"
