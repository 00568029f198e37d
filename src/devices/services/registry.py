"""Device registry: identity, descriptive attributes and retirement."""

import logging

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.utils import timezone

from devices.exceptions import (
    DeviceRetired,
    DuplicateImei,
    HasActiveAssignment,
    InvalidResultingStatus,
)
from devices.models import Assignment, Device

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "model",
    "distributor",
    "is_backup",
    "backup_distributor",
    "owner",
)

STATUS_CODES = [code for code, _label in Device.STATUS_CHOICES]


def _require_status(status, allowed):
    if status not in allowed:
        raise InvalidResultingStatus(status=status, allowed=", ".join(allowed))


def register_device(
    imei: str,
    model,
    distributor,
    status: str = Device.STATUS_NEW,
    **attrs,
) -> Device:
    """Register a new device at intake.

    Soft-deleted devices still own their IMEI, so re-registering one fails
    with DuplicateImei. Custody only comes from the assignment ledger,
    which is why ASSIGNED is rejected as an initial status.
    """
    imei = (imei or "").strip()
    if not imei:
        raise ValidationError({"imei": "IMEI is required."})

    allowed = [s for s in STATUS_CODES if s != Device.STATUS_ASSIGNED]
    _require_status(status, allowed)

    unknown = set(attrs) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown device attribute(s): {', '.join(sorted(unknown))}."
        )

    if Device.objects.filter(imei=imei).exists():
        raise DuplicateImei(imei=imei)

    try:
        with db_transaction.atomic():
            device = Device.objects.create(
                imei=imei,
                model=model,
                distributor=distributor,
                status=status,
                **attrs,
            )
    except IntegrityError:
        raise DuplicateImei(imei=imei)

    logger.info("Registered device %s with status %s", imei, status)
    return device


def set_status(device: Device, status: str) -> Device:
    """Write the coarse status. Only lifecycle services call this."""
    _require_status(status, STATUS_CODES)
    device.status = status
    device.save(update_fields=["status", "updated_at"])
    return device


def update_device(device: Device, **changes) -> Device:
    """Edit descriptive attributes of a device.

    Status, IMEI and the soft-delete fields are owned by the lifecycle
    services and cannot be changed here.
    """
    forbidden = set(changes) - set(EDITABLE_FIELDS)
    if forbidden:
        raise ValidationError(
            "These fields cannot be edited directly: "
            f"{', '.join(sorted(forbidden))}."
        )
    if device.is_deleted:
        raise DeviceRetired(imei=device.imei)

    for field, value in changes.items():
        setattr(device, field, value)
    if not device.is_backup:
        device.backup_distributor = None
    device.full_clean()
    device.save()
    return device


def soft_delete(
    device: Device, final_status: str | None = None, reason: str = ""
) -> Device:
    """Retire a device without removing it.

    ``final_status`` is optional descriptive detail (None keeps the
    current status). The device must not be in anyone's custody.
    """
    if final_status is not None:
        _require_status(final_status, Device.RETIREMENT_STATUSES)

    with db_transaction.atomic():
        locked = Device.objects.select_for_update().get(pk=device.pk)
        if locked.is_deleted:
            raise DeviceRetired(imei=locked.imei)
        if Assignment.objects.filter(
            device=locked, status=Assignment.STATUS_ACTIVE
        ).exists():
            raise HasActiveAssignment(imei=locked.imei)

        locked.is_deleted = True
        locked.deleted_at = timezone.now()
        locked.deletion_reason = reason
        if final_status is not None:
            locked.status = final_status
        locked.save(
            update_fields=[
                "is_deleted",
                "deleted_at",
                "deletion_reason",
                "status",
                "updated_at",
            ]
        )

    logger.info(
        "Soft-deleted device %s (status %s)", locked.imei, locked.status
    )
    device.is_deleted = locked.is_deleted
    device.deleted_at = locked.deleted_at
    device.deletion_reason = locked.deletion_reason
    device.status = locked.status
    return locked


def visible_devices():
    """Default listing: every device that has not been soft-deleted."""
    return Device.objects.visible().with_related()
