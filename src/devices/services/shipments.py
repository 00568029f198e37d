"""Shipment tracker: outbound and return legs of an assignment."""

import logging

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.utils import timezone

from devices.exceptions import (
    InvalidResultingStatus,
    InvalidTransition,
    LegAlreadyExists,
    NotActive,
    OutboundNotDelivered,
    ReturnNotExpected,
)
from devices.models import Assignment, Device, Shipment

from .assignments import active_assignment, close_assignment
from .registry import set_status

logger = logging.getLogger(__name__)


def _lock_active(assignment):
    locked = Assignment.objects.select_for_update().get(pk=assignment.pk)
    if not locked.is_active:
        raise NotActive(assignment_id=locked.pk)
    return locked


def _create_leg(assignment, leg, voucher_id):
    if assignment.shipments.filter(leg=leg).exists():
        raise LegAlreadyExists(assignment_id=assignment.pk, leg=leg)
    try:
        with db_transaction.atomic():
            return Shipment.objects.create(
                assignment=assignment, leg=leg, voucher_id=voucher_id
            )
    except IntegrityError:
        raise LegAlreadyExists(assignment_id=assignment.pk, leg=leg)


def start_outbound(assignment: Assignment, voucher_id: str) -> Shipment:
    """Create the OUTBOUND leg with a caller-supplied voucher."""
    voucher_id = (voucher_id or "").strip()
    if not voucher_id:
        raise ValidationError({"voucher_id": "A voucher id is required."})

    with db_transaction.atomic():
        locked = _lock_active(assignment)
        shipment = _create_leg(locked, Shipment.LEG_OUTBOUND, voucher_id)

    logger.info(
        "Started outbound leg %s for assignment %s", voucher_id, locked.pk
    )
    return shipment


def start_return(assignment: Assignment, voucher_id: str = "") -> Shipment:
    """Create the RETURN leg of an assignment that expects a device back."""
    with db_transaction.atomic():
        locked = _lock_active(assignment)
        if not locked.expects_return:
            raise ReturnNotExpected(assignment_id=locked.pk)
        shipment = _create_leg(
            locked, Shipment.LEG_RETURN, (voucher_id or "").strip()
        )

    logger.info("Started return leg for assignment %s", locked.pk)
    return shipment


def advance(shipment: Shipment, new_status: str) -> Shipment:
    """Move a leg one step forward: pending -> shipped -> delivered.

    A return leg is marked delivered only by confirm_return_received,
    which checks the outbound leg first.
    """
    with db_transaction.atomic():
        locked = Shipment.objects.select_for_update().get(pk=shipment.pk)
        assignment = Assignment.objects.get(pk=locked.assignment_id)
        if not assignment.is_active:
            raise NotActive(assignment_id=assignment.pk)
        if (
            locked.leg == Shipment.LEG_RETURN
            and new_status == Shipment.STATUS_DELIVERED
        ):
            raise InvalidTransition(
                "A return leg is delivered by confirming the return.",
                current=locked.status,
                target=new_status,
            )
        locked.transition_to(new_status)

    shipment.status = locked.status
    shipment.shipped_at = locked.shipped_at
    shipment.delivered_at = locked.delivered_at
    logger.info(
        "Shipment %s (%s) of assignment %s is now %s",
        locked.pk,
        locked.leg,
        assignment.pk,
        new_status,
    )
    return locked


def confirm_return_received(
    shipment: Shipment,
    notes: str = "",
    returned_status: str = Device.STATUS_USED,
) -> Shipment:
    """Record that the expected device came back.

    The assignment must still be active and its replacement delivered
    first. The returned device (``return_device_imei``, not the
    assignment's own device) is set to ``returned_status``; if it still
    has an active assignment of its own that assignment is closed with
    the same status. A retired returned device is left untouched.
    """
    if returned_status not in Device.TERMINAL_STATUSES:
        raise InvalidResultingStatus(
            status=returned_status,
            allowed=", ".join(Device.TERMINAL_STATUSES),
        )
    if shipment.leg != Shipment.LEG_RETURN:
        raise ValidationError("Only a return leg can be confirmed received.")

    with db_transaction.atomic():
        assignment = _lock_active(shipment.assignment)
        locked = Shipment.objects.select_for_update().get(pk=shipment.pk)

        outbound = Shipment.objects.filter(
            assignment=assignment, leg=Shipment.LEG_OUTBOUND
        ).first()
        if outbound is None or outbound.status != Shipment.STATUS_DELIVERED:
            raise OutboundNotDelivered(assignment_id=assignment.pk)
        if locked.status == Shipment.STATUS_DELIVERED:
            raise InvalidTransition(
                current=locked.status, target=Shipment.STATUS_DELIVERED
            )

        locked.status = Shipment.STATUS_DELIVERED
        locked.delivered_at = timezone.now()
        if notes:
            locked.notes = notes
        locked.save(update_fields=["status", "delivered_at", "notes"])

        imei = assignment.return_device_imei
        returned = (
            Device.objects.select_for_update().filter(imei=imei).first()
            if imei
            else None
        )
        if returned is None:
            logger.warning(
                "Return of assignment %s received but device %r is not "
                "registered; status not updated",
                assignment.pk,
                imei,
            )
        elif returned.is_deleted:
            logger.warning(
                "Return of assignment %s received but device %s is "
                "retired; status not updated",
                assignment.pk,
                imei,
            )
        else:
            held = active_assignment(returned)
            if held is not None:
                close_assignment(
                    held,
                    returned_status,
                    reason=f"Returned under assignment {assignment.pk}",
                )
            else:
                set_status(returned, returned_status)

    shipment.status = locked.status
    shipment.delivered_at = locked.delivered_at
    shipment.notes = locked.notes
    logger.info("Return of assignment %s received", assignment.pk)
    return locked
