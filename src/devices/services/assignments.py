"""Assignment ledger: custody periods of devices."""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.utils import timezone

from devices.exceptions import (
    DeviceAlreadyAssigned,
    DeviceRetired,
    InvalidResultingStatus,
    MissingReplacementReason,
    NotActive,
)
from devices.models import Assignment, Device, Shipment

from .registry import set_status

logger = logging.getLogger(__name__)

REPLACEMENT_REASONS = [
    code for code, _label in Assignment.REPLACEMENT_REASON_CHOICES
]


@dataclass(frozen=True)
class Assignee:
    """Who receives a device, and where it is delivered."""

    name: str
    phone: str = ""
    email: str = ""
    role: str = ""
    distributor: object = None
    delivery_location: str = ""
    contact_details: str = ""


@dataclass(frozen=True)
class TimelineEvent:
    at: datetime
    kind: str
    assignment: Assignment
    detail: str = ""


def _validate_origin(type, replacement_reason):
    if type not in dict(Assignment.TYPE_CHOICES):
        raise ValidationError({"type": f"Unknown assignment type '{type}'."})
    if type == Assignment.TYPE_REPLACE:
        if not replacement_reason:
            raise MissingReplacementReason()
        if replacement_reason not in REPLACEMENT_REASONS:
            raise ValidationError(
                {
                    "replacement_reason": (
                        f"Unknown replacement reason '{replacement_reason}'."
                    )
                }
            )
    elif replacement_reason:
        raise ValidationError(
            {
                "replacement_reason": (
                    "Only replacement assignments carry a replacement reason."
                )
            }
        )


def open_assignment(
    device: Device,
    type: str,
    assignee: Assignee,
    *,
    expects_return: bool = False,
    return_imei: str | None = None,
    replacement_reason: str = "",
    ticket_id: str = "",
    voucher_id: str | None = None,
    user=None,
) -> Assignment:
    """Hand a device to a holder.

    The device row is locked for the duration of the check-then-act; the
    partial unique constraint catches the race on backends without row
    locks. When ``voucher_id`` is given the outbound leg is created in the
    same transaction.
    """
    _validate_origin(type, replacement_reason)

    if not (assignee.name or "").strip():
        raise ValidationError({"assignee_name": "Assignee name is required."})

    return_imei = (return_imei or "").strip()
    if return_imei and not expects_return:
        raise ValidationError(
            {"return_imei": "A return IMEI requires expects_return."}
        )
    if return_imei and return_imei == device.imei:
        raise ValidationError(
            {"return_imei": "The returned device must be a different device."}
        )

    if voucher_id is not None:
        voucher_id = voucher_id.strip()
        if not voucher_id:
            raise ValidationError({"voucher_id": "Voucher id is blank."})

    with db_transaction.atomic():
        locked = Device.objects.select_for_update().get(pk=device.pk)
        if locked.is_deleted:
            raise DeviceRetired(imei=locked.imei)
        if Assignment.objects.filter(
            device=locked, status=Assignment.STATUS_ACTIVE
        ).exists():
            raise DeviceAlreadyAssigned(imei=locked.imei)

        try:
            with db_transaction.atomic():
                assignment = Assignment.objects.create(
                    device=locked,
                    type=type,
                    replacement_reason=replacement_reason,
                    assignee_name=assignee.name.strip(),
                    assignee_phone=assignee.phone,
                    assignee_email=assignee.email,
                    assignee_role=assignee.role,
                    distributor=assignee.distributor,
                    delivery_location=assignee.delivery_location,
                    contact_details=assignee.contact_details,
                    ticket_id=ticket_id,
                    expects_return=expects_return,
                    return_device_imei=return_imei,
                    created_by=user,
                )
        except IntegrityError:
            raise DeviceAlreadyAssigned(imei=locked.imei)

        set_status(locked, Device.STATUS_ASSIGNED)

        if voucher_id:
            Shipment.objects.create(
                assignment=assignment,
                leg=Shipment.LEG_OUTBOUND,
                voucher_id=voucher_id,
            )

    device.status = locked.status
    logger.info(
        "Opened %s assignment %s for device %s to %s",
        type,
        assignment.pk,
        locked.imei,
        assignment.assignee_name,
    )
    return assignment


def close_assignment(
    assignment: Assignment, resulting_status: str, reason: str = ""
) -> datetime:
    """Close a custody period and release the device.

    Returns the closing timestamp.
    """
    if resulting_status not in Device.TERMINAL_STATUSES:
        raise InvalidResultingStatus(
            status=resulting_status,
            allowed=", ".join(Device.TERMINAL_STATUSES),
        )

    with db_transaction.atomic():
        # Device first, same lock order as open_assignment.
        device = Device.objects.select_for_update().get(
            pk=assignment.device_id
        )
        locked = Assignment.objects.select_for_update().get(pk=assignment.pk)
        if not locked.is_active:
            raise NotActive(assignment_id=locked.pk)

        closed_at = timezone.now()
        locked.status = Assignment.STATUS_COMPLETED
        locked.closed_at = closed_at
        locked.closure_reason = reason
        locked.resulting_device_status = resulting_status
        locked.save(
            update_fields=[
                "status",
                "closed_at",
                "closure_reason",
                "resulting_device_status",
            ]
        )
        set_status(device, resulting_status)

    for field in (
        "status",
        "closed_at",
        "closure_reason",
        "resulting_device_status",
    ):
        setattr(assignment, field, getattr(locked, field))
    logger.info(
        "Closed assignment %s for device %s as %s",
        locked.pk,
        device.imei,
        resulting_status,
    )
    return closed_at


def active_assignment(device: Device) -> Assignment | None:
    return Assignment.objects.filter(
        device=device, status=Assignment.STATUS_ACTIVE
    ).first()


def latest_assignment(device: Device) -> Assignment | None:
    return (
        Assignment.objects.filter(device=device)
        .order_by("-assigned_at", "-pk")
        .first()
    )


def assignment_timeline(device: Device) -> list[TimelineEvent]:
    """Chronological custody and shipping events of a device."""
    events = []
    assignments = Assignment.objects.filter(device=device).prefetch_related(
        "shipments"
    )
    for assignment in assignments:
        events.append(
            TimelineEvent(
                assignment.assigned_at,
                "opened",
                assignment,
                assignment.assignee_name,
            )
        )
        for leg in assignment.shipments.all():
            prefix = leg.leg
            if leg.shipped_at:
                events.append(
                    TimelineEvent(
                        leg.shipped_at,
                        f"{prefix}_shipped",
                        assignment,
                        leg.voucher_id,
                    )
                )
            if leg.delivered_at:
                events.append(
                    TimelineEvent(
                        leg.delivered_at,
                        f"{prefix}_delivered",
                        assignment,
                        leg.notes or leg.voucher_id,
                    )
                )
        if assignment.closed_at:
            events.append(
                TimelineEvent(
                    assignment.closed_at,
                    "closed",
                    assignment,
                    assignment.resulting_device_status,
                )
            )
    # Stable sort keeps open < shipped < delivered < closed on equal times.
    events.sort(
        key=lambda e: (e.at, e.assignment.assigned_at, e.assignment.pk)
    )
    return events
