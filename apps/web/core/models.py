"""
Core models - Multi-tenancy foundation and audit trail.

All tenant-scoped models inherit from ClientScopedModel.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models

from .managers import AuditLogManager, ClientScopedManager


class Client(models.Model):
    """
    Tenant - a restaurant business operating one or more locations.

    All data is scoped to a Client.
    """

    slug = models.SlugField(unique=True, help_text="URL-safe identifier")
    name = models.CharField(max_length=200)
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True)

    # Status
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """
    Custom user model with client association.

    Users belong to one Client (restaurant staff) or none (platform staff).
    """

    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="users",
        help_text="Null for platform staff",
    )

    class Role(models.TextChoices):
        OWNER = "owner", "Owner"
        STAFF = "staff", "Staff"
        READONLY = "readonly", "Read Only"

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.STAFF,
    )

    class Meta:
        ordering = ["username"]

    def __str__(self) -> str:
        if self.client:
            return f"{self.username} ({self.client.slug})"
        return self.username

    def can_manage(self, client: Client) -> bool:
        """Platform staff manage every client; owners/staff only their own."""
        if self.is_staff:
            return True
        return self.client_id == client.pk and self.role != self.Role.READONLY


class ClientScopedModel(models.Model):
    """
    Abstract base for all tenant-scoped models.

    Provides:
    - Automatic client FK
    - ClientScopedManager for filtered queries
    - Created/updated timestamps
    """

    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name="%(class)ss",  # e.g., client.locations, client.orders
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ClientScopedManager()

    class Meta:
        abstract = True


class AuditLog(models.Model):
    """
    Append-only audit trail for integration activity.

    Rows are written via ``AuditLog.objects.record()`` and never updated.
    """

    client = models.ForeignKey(
        Client,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    action = models.CharField(
        max_length=100,
        help_text="Machine-readable action, e.g. POS_MENU_SYNC",
    )
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=255, blank=True)
    changes = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogManager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["action", "created_at"]),
            models.Index(fields=["entity_type", "entity_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.entity_type}:{self.entity_id}"
