from django.db import DatabaseError, connection
from django.http import JsonResponse

ARCHITECTURE_VERSION = "v1.0.0"


def health_check(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        return JsonResponse(
            {
                "status": "unhealthy",
                "database": "disconnected",
                "architecture_version": ARCHITECTURE_VERSION,
            },
            status=503,
        )
    return JsonResponse(
        {
            "status": "ok",
            "database": "connected",
            "architecture_version": ARCHITECTURE_VERSION,
        },
        status=200,
    )
