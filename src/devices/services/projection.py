"""Human-facing device state, derived on every read and never stored."""

from devices.models import Assignment, Device

IN_TRANSIT = "En envío"
ASSIGNED = "Asignado"
CLOSED = "Cerrada"
PENDING_SOTI = "Pendiente SOTI"
LOST = "Perdido"
AVAILABLE = "Disponible"

# Display order for summaries; fallback status labels follow these.
STATE_LABELS = [IN_TRANSIT, ASSIGNED, CLOSED, PENDING_SOTI, LOST, AVAILABLE]


def project(
    device: Device,
    active_assignment,
    outbound_leg,
    overlay,
    *,
    last_assignment=None,
) -> str:
    """Return the state label for a device.

    The first matching rule wins:

    1. active assignment whose outbound leg has a voucher and is not yet
       delivered -> "En envío"
    2. active assignment -> "Asignado"
    3. latest assignment closed -> "Cerrada"
    4. SOTI reports the device -> "Pendiente SOTI"
    5. status LOST -> "Perdido"
    6. status NEW -> "Disponible"
    7. otherwise the status display label

    An assignment always wins over SOTI presence. Pure: reads only the
    arguments.
    """
    if active_assignment is not None:
        if (
            outbound_leg is not None
            and outbound_leg.assignment_id == active_assignment.pk
            and outbound_leg.is_live
        ):
            return IN_TRANSIT
        return ASSIGNED

    if (
        last_assignment is not None
        and last_assignment.status == Assignment.STATUS_COMPLETED
    ):
        return CLOSED

    if overlay is not None and overlay.is_in_soti:
        return PENDING_SOTI

    if device.status == Device.STATUS_LOST:
        return LOST
    if device.status == Device.STATUS_NEW:
        return AVAILABLE
    return device.get_status_display()
