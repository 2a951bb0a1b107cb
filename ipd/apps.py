from django.apps import AppConfig


class IpdConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'ipd'
    verbose_name = 'IPD Billing & Beds'

    def ready(self):
        from . import signals  # noqa: F401
