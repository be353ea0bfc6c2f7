"""
User views: get current user, list users, create users.

Listing and creating users requires the admin role.
"""

from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.pagination import LimitOffsetPagination
from core.exceptions import error_response
from core.permissions import IsAdmin, IsReporterOrAdmin
from apps.users.models import User
from apps.users.serializers import UserSerializer, UserCreateSerializer


@api_view(["GET"])
@permission_classes([IsReporterOrAdmin])
def get_current_user(request):
    """
    GET /api/v1/users/me

    Get current authenticated user.
    """
    serializer = UserSerializer(request.user)
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)


@api_view(["GET", "POST"])
@permission_classes([IsAdmin])
def list_or_create_users(request):
    """
    GET /api/v1/users - List all users with pagination (admin only).
    POST /api/v1/users - Create a citizen user (admin only).
    """
    if request.method == "GET":
        paginator = LimitOffsetPagination()
        paginator.default_limit = 50
        paginator.max_limit = 100

        users = User.objects.all().order_by("username")
        page = paginator.paginate_queryset(users, request)

        serializer = UserSerializer(page, many=True)

        return paginator.get_paginated_response(serializer.data)

    serializer = UserCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    username = serializer.validated_data["username"]

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                username=username,
                password=serializer.validated_data["password"],
                display_name=serializer.validated_data.get("display_name")
                or username,
                email=serializer.validated_data.get("email", ""),
                role=serializer.validated_data["role"],
            )
    except IntegrityError:
        return error_response(
            "CONFLICT",
            f"User with username '{username}' already exists",
            status_code=status.HTTP_409_CONFLICT,
        )

    return Response(
        {"data": UserSerializer(user).data}, status=status.HTTP_201_CREATED
    )
