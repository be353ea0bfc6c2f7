from django.db import connection
from django.core.cache import caches
from django.apps import apps
from django.db.migrations.executor import MigrationExecutor
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView
from rest_framework.response import Response


class LiveView(APIView):
    """Liveness probe: process is running. No DB or external deps."""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({"status": "alive"})


class ReadyView(APIView):
    """Readiness probe: DB, cache, migrations, reports table."""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        checks = self._run_checks()
        overall = "ready" if all(v == "ok" for v in checks.values()) else "not_ready"
        return Response(
            {"status": overall, "checks": checks},
            status=200 if overall == "ready" else 503,
        )

    def _run_checks(self):
        # Each probe reports "error" instead of raising so every check is listed
        checks = {}

        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1;")
            checks["database"] = "ok"
        except Exception:
            checks["database"] = "error"

        try:
            executor = MigrationExecutor(connection)
            plan = executor.migration_plan(executor.loader.graph.leaf_nodes())
            checks["migrations"] = "ok" if not plan else "pending"
        except Exception:
            checks["migrations"] = "error"

        try:
            cache = caches["default"]
            cache.set("health_check", "ok", timeout=5)
            checks["cache"] = "ok" if cache.get("health_check") == "ok" else "error"
        except Exception:
            checks["cache"] = "error"

        try:
            Report = apps.get_model("reports", "Report")
            Report.objects.exists()
            checks["reports_table"] = "ok"
        except Exception:
            checks["reports_table"] = "error"

        return checks
