"""Lifecycle error kinds raised by the device services.

Every kind is a ``ValidationError`` so callers can render ``messages`` the
same way they render form errors. ``code`` is stable and safe to branch on.
None of these are retried: they mean the request itself is invalid.
"""

from django.core.exceptions import ValidationError


class LifecycleError(ValidationError):
    """Base class for invariant violations in the device lifecycle."""

    code = "lifecycle_error"
    default_message = "The requested lifecycle operation is not allowed."

    def __init__(self, message=None, code=None, params=None, **kwargs):
        params = {**(params or {}), **kwargs}
        super().__init__(
            message or self.default_message,
            code=code or self.code,
            params=params or None,
        )


class DuplicateImei(LifecycleError):
    code = "duplicate_imei"
    default_message = "IMEI %(imei)s is already registered."


class DeviceAlreadyAssigned(LifecycleError):
    code = "device_already_assigned"
    default_message = "Device %(imei)s already has an active assignment."


class HasActiveAssignment(LifecycleError):
    code = "has_active_assignment"
    default_message = (
        "Device %(imei)s has an active assignment. Close it first."
    )


class DeviceRetired(LifecycleError):
    code = "device_retired"
    default_message = "Device %(imei)s has been retired (soft-deleted)."


class NotActive(LifecycleError):
    code = "not_active"
    default_message = "Assignment %(assignment_id)s is not active."


class InvalidResultingStatus(LifecycleError):
    code = "invalid_resulting_status"
    default_message = (
        "'%(status)s' is not allowed here. Allowed: %(allowed)s."
    )


class MissingReplacementReason(LifecycleError):
    code = "missing_replacement_reason"
    default_message = (
        "A replacement reason (theft, breakage, obsolescence or loss) "
        "is required for replacement assignments."
    )


class LegAlreadyExists(LifecycleError):
    code = "leg_already_exists"
    default_message = (
        "Assignment %(assignment_id)s already has a %(leg)s shipment."
    )


class InvalidTransition(LifecycleError):
    code = "invalid_transition"
    default_message = "Cannot transition from '%(current)s' to '%(target)s'."


class ReturnNotExpected(LifecycleError):
    code = "return_not_expected"
    default_message = (
        "Assignment %(assignment_id)s does not expect a device return."
    )


class OutboundNotDelivered(LifecycleError):
    code = "outbound_not_delivered"
    default_message = (
        "The outbound shipment of assignment %(assignment_id)s has not "
        "been delivered yet."
    )
