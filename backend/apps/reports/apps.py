from django.apps import AppConfig


class ReportsConfig(AppConfig):
    name = "apps.reports"
    label = "reports"
    verbose_name = "Road damage reports"

    def ready(self):
        # Register storage receivers for evidence_released
        from apps.reports import storage  # noqa: F401
