"""
Authentication views: register, login, logout.

No domain logic - authentication only.
"""

import logging

from django.contrib.auth import authenticate
from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from core.exceptions import error_response
from apps.auth.serializers import LoginSerializer, LogoutSerializer
from apps.users.models import Role, User
from apps.users.serializers import RegisterSerializer, UserSerializer

logger = logging.getLogger(__name__)


def _token_payload(user):
    refresh = RefreshToken.for_user(user)
    return {
        "token": str(refresh.access_token),
        "refreshToken": str(refresh),
        "user": UserSerializer(user).data,
    }


@api_view(["POST"])
@permission_classes([AllowAny])
def register(request):
    """
    POST /api/v1/auth/register

    Create a citizen account and return JWT tokens.
    """
    serializer = RegisterSerializer(data=request.data)
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
                role=Role.USER,
            )
    except IntegrityError:
        return error_response(
            "CONFLICT",
            f"User with username '{username}' already exists",
            status_code=status.HTTP_409_CONFLICT,
        )

    logger.info(
        "user_registered",
        extra={"operation": "REGISTER_USER", "entity_id": str(user.id)},
    )
    return Response({"data": _token_payload(user)}, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([AllowAny])
def login(request):
    """
    POST /api/v1/auth/login

    Authenticate user and return JWT token.
    """
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = authenticate(
        username=serializer.validated_data["username"],
        password=serializer.validated_data["password"],
    )

    if user is None:
        return error_response(
            "UNAUTHORIZED",
            "Invalid credentials",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    return Response({"data": _token_payload(user)}, status=status.HTTP_200_OK)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def logout(request):
    """
    POST /api/v1/auth/logout

    Logout user and invalidate refresh token.
    """
    serializer = LogoutSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    refresh_token = serializer.validated_data.get("refresh_token")
    if refresh_token:
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError:
            # Already expired or blacklisted tokens need no further action
            logger.info("logout_token_already_invalid")

    return Response({"data": {"success": True}}, status=status.HTTP_200_OK)
