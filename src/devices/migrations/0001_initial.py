import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

DEVICE_STATUS_CHOICES = [
    ("NEW", "Nuevo"),
    ("ASSIGNED", "Asignado"),
    ("USED", "Usado"),
    ("REPAIRED", "Reparado"),
    ("NOT_REPAIRED", "Sin reparación"),
    ("LOST", "Perdido"),
    ("DISPOSED", "Desechado"),
    ("SCRAPPED", "Chatarra"),
    ("DONATED", "Donado"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Distributor",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(max_length=100, unique=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="PhoneModel",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("brand", models.CharField(max_length=50)),
                ("model", models.CharField(max_length=100)),
                (
                    "storage_gb",
                    models.PositiveIntegerField(blank=True, null=True),
                ),
                ("color", models.CharField(blank=True, max_length=30)),
            ],
            options={
                "ordering": ["brand", "model"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("brand", "model", "storage_gb", "color"),
                        name="unique_phone_model_variant",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SotiDevice",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("imei", models.CharField(db_index=True, max_length=20)),
                (
                    "device_name",
                    models.CharField(blank=True, max_length=200),
                ),
                (
                    "assigned_user",
                    models.CharField(blank=True, max_length=200),
                ),
                ("is_active", models.BooleanField(default=False)),
                ("last_sync", models.DateTimeField(blank=True, null=True)),
                (
                    "updated_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
            ],
            options={
                "verbose_name": "SOTI device",
                "ordering": ["imei", "-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="Ticket",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("key", models.CharField(max_length=50, unique=True)),
                (
                    "distributor",
                    models.CharField(
                        help_text=(
                            "Distributor name as reported by the ticket "
                            "source"
                        ),
                        max_length=100,
                    ),
                ),
                ("issue_type", models.CharField(blank=True, max_length=100)),
                ("title", models.CharField(blank=True, max_length=300)),
                ("label", models.CharField(blank=True, max_length=100)),
                ("created", models.DateTimeField()),
            ],
            options={
                "ordering": ["-created"],
                "indexes": [
                    models.Index(
                        fields=["distributor", "created"],
                        name="idx_ticket_dist_created",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Device",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("imei", models.CharField(max_length=20, unique=True)),
                (
                    "is_backup",
                    models.BooleanField(
                        default=False,
                        help_text=(
                            "Held in reserve at a distributor rather than "
                            "issued"
                        ),
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=DEVICE_STATUS_CHOICES,
                        default="NEW",
                        max_length=20,
                    ),
                ),
                ("is_deleted", models.BooleanField(default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("deletion_reason", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "backup_distributor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="backup_devices",
                        to="devices.distributor",
                    ),
                ),
                (
                    "distributor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="devices",
                        to="devices.distributor",
                    ),
                ),
                (
                    "model",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="devices",
                        to="devices.phonemodel",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="owned_devices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-updated_at"],
                "indexes": [
                    models.Index(fields=["status"], name="idx_device_status"),
                    models.Index(
                        condition=models.Q(("is_deleted", False)),
                        fields=["is_deleted"],
                        name="idx_device_visible",
                    ),
                    models.Index(
                        fields=["distributor", "status"],
                        name="idx_device_dist_status",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Assignment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("ASSIGN", "Asignación"),
                            ("REPLACE", "Reemplazo"),
                        ],
                        default="ASSIGN",
                        max_length=10,
                    ),
                ),
                (
                    "replacement_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("THEFT", "Robo"),
                            ("BREAKAGE", "Rotura"),
                            ("OBSOLESCENCE", "Obsolescencia"),
                            ("LOSS", "Pérdida"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Activa"),
                            ("completed", "Cerrada"),
                        ],
                        default="active",
                        max_length=10,
                    ),
                ),
                ("assignee_name", models.CharField(max_length=200)),
                (
                    "assignee_phone",
                    models.CharField(blank=True, max_length=50),
                ),
                (
                    "assignee_email",
                    models.EmailField(blank=True, max_length=254),
                ),
                (
                    "assignee_role",
                    models.CharField(
                        blank=True,
                        help_text=(
                            "Role of the holder or reason for the assignment"
                        ),
                        max_length=200,
                    ),
                ),
                (
                    "delivery_location",
                    models.CharField(blank=True, max_length=200),
                ),
                ("contact_details", models.TextField(blank=True)),
                ("ticket_id", models.CharField(blank=True, max_length=50)),
                ("expects_return", models.BooleanField(default=False)),
                (
                    "return_device_imei",
                    models.CharField(blank=True, max_length=20),
                ),
                (
                    "assigned_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("closure_reason", models.TextField(blank=True)),
                (
                    "resulting_device_status",
                    models.CharField(
                        blank=True,
                        choices=DEVICE_STATUS_CHOICES,
                        max_length=20,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_assignments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "device",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="devices.device",
                    ),
                ),
                (
                    "distributor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="devices.distributor",
                    ),
                ),
            ],
            options={
                "ordering": ["-assigned_at", "-pk"],
                "indexes": [
                    models.Index(
                        fields=["device", "status"],
                        name="idx_assignment_device_status",
                    ),
                    models.Index(
                        fields=["distributor", "assigned_at"],
                        name="idx_assignment_dist_date",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "active")),
                        fields=("device",),
                        name="unique_active_assignment_per_device",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("replacement_reason", ""),
                                ("type", "ASSIGN"),
                            ),
                            models.Q(
                                ("type", "REPLACE"),
                                models.Q(
                                    ("replacement_reason", ""), _negated=True
                                ),
                            ),
                            _connector="OR",
                        ),
                        name="replacement_reason_matches_type",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Shipment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "leg",
                    models.CharField(
                        choices=[
                            ("outbound", "Envío"),
                            ("return", "Devolución"),
                        ],
                        max_length=10,
                    ),
                ),
                ("voucher_id", models.CharField(blank=True, max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pendiente"),
                            ("shipped", "Enviado"),
                            ("delivered", "Entregado"),
                        ],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("shipped_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "assignment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="shipments",
                        to="devices.assignment",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("assignment", "leg"),
                        name="unique_leg_per_assignment",
                    ),
                ],
            },
        ),
    ]
