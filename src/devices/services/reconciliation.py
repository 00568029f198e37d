"""Merge SOTI presence records into a read-only overlay keyed by IMEI.

Nothing here writes to the database. Missing or partial records degrade
to "not in SOTI" instead of raising.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from devices.models import SotiDevice


@dataclass(frozen=True)
class PresenceRecord:
    imei: str
    is_active: bool
    updated_at: datetime | None = None
    device_name: str = ""
    assigned_user: str = ""
    last_sync: datetime | None = None

    @classmethod
    def from_model(cls, row: SotiDevice) -> "PresenceRecord":
        return cls(
            imei=row.imei,
            is_active=row.is_active,
            updated_at=row.updated_at,
            device_name=row.device_name,
            assigned_user=row.assigned_user,
            last_sync=row.last_sync,
        )


@dataclass(frozen=True)
class PresenceOverlay:
    is_in_soti: bool
    device_name: str = ""
    assigned_user: str = ""
    last_sync: datetime | None = None


NOT_IN_SOTI = PresenceOverlay(is_in_soti=False)


def _ts(value):
    return value.timestamp() if value is not None else float("-inf")


def _precedence(record: PresenceRecord):
    # Everything after updated_at only breaks ties between otherwise
    # equivalent records, so the choice never depends on input order.
    return (
        bool(record.is_active),
        _ts(record.updated_at),
        _ts(record.last_sync),
        record.device_name or "",
        record.assigned_user or "",
    )


def select_authoritative(records) -> PresenceRecord | None:
    """Pick the record that speaks for an IMEI.

    Active beats inactive regardless of timestamps; then the most
    recently updated wins.
    """
    records = list(records)
    if not records:
        return None
    return max(records, key=_precedence)


def to_overlay(record: PresenceRecord | None) -> PresenceOverlay:
    if record is None:
        return NOT_IN_SOTI
    return PresenceOverlay(
        is_in_soti=True,
        device_name=record.device_name or "",
        assigned_user=record.assigned_user or "",
        last_sync=record.last_sync,
    )


def reconcile(records, imeis=None) -> dict[str, PresenceOverlay]:
    """Build ``{imei: PresenceOverlay}`` from ``PresenceRecord`` items.

    Any record marks the IMEI as present in SOTI; ``is_active`` only
    decides which record supplies the details.

    With ``imeis`` the result has exactly those keys, and IMEIs without
    records map to NOT_IN_SOTI.
    """
    grouped = defaultdict(list)
    for record in records:
        imei = (record.imei or "").strip()
        if imei:
            grouped[imei].append(record)

    if imeis is None:
        keys = grouped.keys()
    else:
        keys = {(imei or "").strip() for imei in imeis} - {""}

    return {
        imei: to_overlay(select_authoritative(grouped.get(imei, [])))
        for imei in keys
    }


def fetch_presence(imeis) -> list[PresenceRecord]:
    """Batch-read mirrored SOTI rows for a set of IMEIs."""
    imeis = {imei for imei in imeis if imei}
    if not imeis:
        return []
    return [
        PresenceRecord.from_model(row)
        for row in SotiDevice.objects.filter(imei__in=imeis)
    ]
