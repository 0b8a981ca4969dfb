from django.apps import AppConfig


class ScoutConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'scout'
    verbose_name = 'Athena Scout'

    def ready(self):
        # Register signal handlers for auth events (login success/failure)
        # and account provisioning.
        from . import signals  # noqa: F401
