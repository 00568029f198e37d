from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .exceptions import InvalidTransition


class Distributor(models.Model):
    """Distribution company that owns and receives devices."""

    name = models.CharField(max_length=100, unique=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class PhoneModel(models.Model):
    """Handset model master data. Display only."""

    brand = models.CharField(max_length=50)
    model = models.CharField(max_length=100)
    storage_gb = models.PositiveIntegerField(null=True, blank=True)
    color = models.CharField(max_length=30, blank=True)

    class Meta:
        ordering = ["brand", "model"]
        constraints = [
            models.UniqueConstraint(
                fields=["brand", "model", "storage_gb", "color"],
                name="unique_phone_model_variant",
            ),
        ]

    def __str__(self):
        parts = [self.brand, self.model]
        if self.storage_gb:
            parts.append(f"{self.storage_gb}GB")
        if self.color:
            parts.append(self.color)
        return " ".join(parts)


class DeviceQuerySet(models.QuerySet):
    def visible(self):
        """Devices shown in default listings (not soft-deleted)."""
        return self.filter(is_deleted=False)

    def with_related(self):
        return self.select_related(
            "model", "distributor", "backup_distributor", "owner"
        )


class Device(models.Model):
    """A physical handset, identified by its IMEI."""

    STATUS_NEW = "NEW"
    STATUS_ASSIGNED = "ASSIGNED"
    STATUS_USED = "USED"
    STATUS_REPAIRED = "REPAIRED"
    STATUS_NOT_REPAIRED = "NOT_REPAIRED"
    STATUS_LOST = "LOST"
    STATUS_DISPOSED = "DISPOSED"
    STATUS_SCRAPPED = "SCRAPPED"
    STATUS_DONATED = "DONATED"

    STATUS_CHOICES = [
        (STATUS_NEW, "Nuevo"),
        (STATUS_ASSIGNED, "Asignado"),
        (STATUS_USED, "Usado"),
        (STATUS_REPAIRED, "Reparado"),
        (STATUS_NOT_REPAIRED, "Sin reparación"),
        (STATUS_LOST, "Perdido"),
        (STATUS_DISPOSED, "Desechado"),
        (STATUS_SCRAPPED, "Chatarra"),
        (STATUS_DONATED, "Donado"),
    ]

    # Statuses an assignment may leave its device in when closed.
    TERMINAL_STATUSES = [
        STATUS_USED,
        STATUS_REPAIRED,
        STATUS_NOT_REPAIRED,
        STATUS_LOST,
    ]

    RETIREMENT_STATUSES = TERMINAL_STATUSES + [
        STATUS_DISPOSED,
        STATUS_SCRAPPED,
        STATUS_DONATED,
    ]

    # Counted as stock on hand.
    STOCK_STATUSES = [STATUS_NEW, STATUS_USED, STATUS_REPAIRED]

    imei = models.CharField(max_length=20, unique=True)
    model = models.ForeignKey(
        PhoneModel,
        on_delete=models.PROTECT,
        related_name="devices",
    )
    distributor = models.ForeignKey(
        Distributor,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="devices",
    )
    is_backup = models.BooleanField(
        default=False,
        help_text="Held in reserve at a distributor rather than issued",
    )
    backup_distributor = models.ForeignKey(
        Distributor,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="backup_devices",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="owned_devices",
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_NEW
    )
    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deletion_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DeviceQuerySet.as_manager()

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_device_status"),
            models.Index(
                fields=["is_deleted"],
                condition=Q(is_deleted=False),
                name="idx_device_visible",
            ),
            models.Index(
                fields=["distributor", "status"],
                name="idx_device_dist_status",
            ),
        ]

    def __str__(self):
        return f"{self.imei} ({self.get_status_display()})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_imei = instance.__dict__.get("imei")
        return instance

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_imei", None)
        if loaded is not None and self.imei != loaded:
            raise ValidationError(
                {"imei": "The IMEI of a registered device cannot change."}
            )
        super().save(*args, **kwargs)
        self._loaded_imei = self.imei


class Assignment(models.Model):
    """One custody period of a device."""

    TYPE_ASSIGN = "ASSIGN"
    TYPE_REPLACE = "REPLACE"

    TYPE_CHOICES = [
        (TYPE_ASSIGN, "Asignación"),
        (TYPE_REPLACE, "Reemplazo"),
    ]

    REPLACEMENT_REASON_CHOICES = [
        ("THEFT", "Robo"),
        ("BREAKAGE", "Rotura"),
        ("OBSOLESCENCE", "Obsolescencia"),
        ("LOSS", "Pérdida"),
    ]

    STATUS_ACTIVE = "active"
    STATUS_COMPLETED = "completed"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Activa"),
        (STATUS_COMPLETED, "Cerrada"),
    ]

    device = models.ForeignKey(
        Device,
        on_delete=models.PROTECT,
        related_name="assignments",
    )
    type = models.CharField(
        max_length=10, choices=TYPE_CHOICES, default=TYPE_ASSIGN
    )
    replacement_reason = models.CharField(
        max_length=20,
        choices=REPLACEMENT_REASON_CHOICES,
        blank=True,
        default="",
    )
    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE
    )
    assignee_name = models.CharField(max_length=200)
    assignee_phone = models.CharField(max_length=50, blank=True)
    assignee_email = models.EmailField(blank=True)
    assignee_role = models.CharField(
        max_length=200,
        blank=True,
        help_text="Role of the holder or reason for the assignment",
    )
    distributor = models.ForeignKey(
        Distributor,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assignments",
    )
    delivery_location = models.CharField(max_length=200, blank=True)
    contact_details = models.TextField(blank=True)
    ticket_id = models.CharField(max_length=50, blank=True)
    expects_return = models.BooleanField(default=False)
    return_device_imei = models.CharField(max_length=20, blank=True)
    assigned_at = models.DateTimeField(default=timezone.now)
    closed_at = models.DateTimeField(null=True, blank=True)
    closure_reason = models.TextField(blank=True)
    resulting_device_status = models.CharField(
        max_length=20, choices=Device.STATUS_CHOICES, blank=True
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_assignments",
    )

    class Meta:
        ordering = ["-assigned_at", "-pk"]
        constraints = [
            models.UniqueConstraint(
                fields=["device"],
                condition=Q(status="active"),
                name="unique_active_assignment_per_device",
            ),
            models.CheckConstraint(
                condition=(
                    Q(type="ASSIGN", replacement_reason="")
                    | (Q(type="REPLACE") & ~Q(replacement_reason=""))
                ),
                name="replacement_reason_matches_type",
            ),
        ]
        indexes = [
            models.Index(
                fields=["device", "status"],
                name="idx_assignment_device_status",
            ),
            models.Index(
                fields=["distributor", "assigned_at"],
                name="idx_assignment_dist_date",
            ),
        ]

    def __str__(self):
        return (
            f"{self.get_type_display()} {self.device.imei} -> "
            f"{self.assignee_name} ({self.get_status_display()})"
        )

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE


class Shipment(models.Model):
    """One physical leg of an assignment."""

    LEG_OUTBOUND = "outbound"
    LEG_RETURN = "return"

    LEG_CHOICES = [
        (LEG_OUTBOUND, "Envío"),
        (LEG_RETURN, "Devolución"),
    ]

    STATUS_PENDING = "pending"
    STATUS_SHIPPED = "shipped"
    STATUS_DELIVERED = "delivered"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pendiente"),
        (STATUS_SHIPPED, "Enviado"),
        (STATUS_DELIVERED, "Entregado"),
    ]

    VALID_TRANSITIONS = {
        STATUS_PENDING: [STATUS_SHIPPED],
        STATUS_SHIPPED: [STATUS_DELIVERED],
        STATUS_DELIVERED: [],
    }

    assignment = models.ForeignKey(
        Assignment,
        on_delete=models.PROTECT,
        related_name="shipments",
    )
    leg = models.CharField(max_length=10, choices=LEG_CHOICES)
    voucher_id = models.CharField(max_length=100, blank=True)
    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["assignment", "leg"],
                name="unique_leg_per_assignment",
            ),
        ]

    def __str__(self):
        return (
            f"{self.get_leg_display()} {self.voucher_id or '-'} "
            f"({self.get_status_display()})"
        )

    @property
    def is_live(self):
        """Voucher issued and not yet delivered."""
        return bool(self.voucher_id) and self.status != self.STATUS_DELIVERED

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    def transition_to(self, new_status):
        """Move one step along pending -> shipped -> delivered.

        Stamps ``shipped_at`` / ``delivered_at``. Raises InvalidTransition
        for any other move, including staying in place.
        """
        if not self.can_transition_to(new_status):
            raise InvalidTransition(current=self.status, target=new_status)

        now = timezone.now()
        self.status = new_status
        if new_status == self.STATUS_SHIPPED:
            self.shipped_at = now
        elif new_status == self.STATUS_DELIVERED:
            self.delivered_at = now
        self.save(update_fields=["status", "shipped_at", "delivered_at"])


class SotiDevice(models.Model):
    """Mirror row of the SOTI MDM feed. Written only by the sync job."""

    imei = models.CharField(max_length=20, db_index=True)
    device_name = models.CharField(max_length=200, blank=True)
    assigned_user = models.CharField(max_length=200, blank=True)
    is_active = models.BooleanField(default=False)
    last_sync = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["imei", "-updated_at"]
        verbose_name = "SOTI device"

    def __str__(self):
        state = "active" if self.is_active else "inactive"
        return f"SOTI {self.imei} ({state})"


class Ticket(models.Model):
    """Mirror row of the ticket source feeding demand analytics."""

    key = models.CharField(max_length=50, unique=True)
    distributor = models.CharField(
        max_length=100,
        help_text="Distributor name as reported by the ticket source",
    )
    issue_type = models.CharField(max_length=100, blank=True)
    title = models.CharField(max_length=300, blank=True)
    label = models.CharField(max_length=100, blank=True)
    created = models.DateTimeField()

    class Meta:
        ordering = ["-created"]
        indexes = [
            models.Index(
                fields=["distributor", "created"],
                name="idx_ticket_dist_created",
            ),
        ]

    def __str__(self):
        return f"{self.key} ({self.distributor})"
