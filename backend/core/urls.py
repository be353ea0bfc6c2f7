from django.conf import settings
from django.conf.urls.static import static
from django.urls import include, path

from .health import health_check

urlpatterns = [
    path("api/health/", health_check),
    path("health/", include("health.urls")),
    path("api/v1/auth/", include("apps.auth.urls")),
    path("api/v1/users/", include("apps.users.urls")),
    # Report endpoints are defined directly under /api/v1 (e.g., /api/v1/reports)
    # so this include must come after the more specific prefixes above.
    path("api/v1/", include("apps.reports.urls")),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
