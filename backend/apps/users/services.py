"""
Service-layer functions for the Users app.

This module exists to keep models passive:
- No business logic in models
- No permission logic in models
- Persistence orchestration (create/save) lives here
"""

from __future__ import annotations

from typing import Any, Optional, Type

ADMIN_ROLE = "admin"
USER_ROLE = "user"


def create_user(
    *,
    user_model: Type[Any],
    username: str,
    password: Optional[str] = None,
    display_name: Optional[str] = None,
    role: str = USER_ROLE,
    using: Optional[str] = None,
    **extra_fields: Any,
):
    """
    Create and persist a user.

    A missing password leaves the account unusable for login.
    """
    if not username:
        raise ValueError("The username field must be set")

    user = user_model(
        username=username,
        display_name=display_name or username,
        role=role,
        **extra_fields,
    )
    user.set_password(password)
    if using is None:
        user.save()
    else:
        user.save(using=using)
    return user


def create_superuser(
    *,
    user_model: Type[Any],
    username: str,
    password: Optional[str] = None,
    using: Optional[str] = None,
    **extra_fields: Any,
):
    """Create an administrator account (used by `createsuperuser`)."""
    extra_fields["role"] = ADMIN_ROLE
    return create_user(
        user_model=user_model,
        username=username,
        password=password,
        using=using,
        **extra_fields,
    )


def user_is_admin(*, user: Any) -> bool:
    return getattr(user, "role", None) == ADMIN_ROLE
