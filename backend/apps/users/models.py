"""
User model for the road damage reporting backend.

Fields: id (UUID), username, display_name, role, password, created_at, updated_at.
Username unique. Role choices user (citizen reporter) and admin.
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager
from django.db import models
from django.core.validators import RegexValidator

from . import services


class Role(models.TextChoices):
    USER = "user"
    ADMIN = "admin"


class UserManager(BaseUserManager):
    """Custom user manager."""

    def create_user(
        self, username, password=None, display_name=None, role=Role.USER, **extra_fields
    ):
        return services.create_user(
            user_model=self.model,
            username=username,
            password=password,
            display_name=display_name,
            role=role,
            using=self._db,
            **extra_fields,
        )

    def create_superuser(self, username, password=None, **extra_fields):
        return services.create_superuser(
            user_model=self.model,
            username=username,
            password=password,
            using=self._db,
            **extra_fields,
        )


class User(AbstractBaseUser):
    """Custom User model with UUID primary key and role field."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    username = models.CharField(
        max_length=150,
        unique=True,
        validators=[
            RegexValidator(
                regex=r"^[\w.@+-]+$",
                message=(
                    "Username may contain only letters, numbers, and @/./+/-/_ "
                    "characters."
                ),
            )
        ],
    )
    display_name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.USER)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "username"
    REQUIRED_FIELDS = ["display_name"]

    objects = UserManager()

    class Meta:
        db_table = "users"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(role__in=Role.values),
                name="valid_role",
            )
        ]

    def __str__(self):
        return self.username

    @property
    def is_admin(self):
        return services.user_is_admin(user=self)

