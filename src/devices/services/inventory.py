"""Inventory read model: devices joined with custody, shipping and SOTI."""

from collections import Counter
from dataclasses import dataclass

from django.db.models import Count, Prefetch, prefetch_related_objects

from devices.models import Assignment, Device, Shipment, Ticket

from .projection import STATE_LABELS, project
from .reconciliation import (
    NOT_IN_SOTI,
    PresenceOverlay,
    fetch_presence,
    reconcile,
)
from .registry import visible_devices


@dataclass
class InventoryRow:
    device: Device
    active_assignment: Assignment | None
    outbound_leg: Shipment | None
    last_assignment: Assignment | None
    overlay: PresenceOverlay
    label: str


def _rows_for(device, overlays):
    history = device.assignment_history
    last = history[0] if history else None
    active = next((a for a in history if a.is_active), None)
    outbound = None
    if active is not None:
        legs = active.shipments.all()
        outbound = next(
            (s for s in legs if s.leg == Shipment.LEG_OUTBOUND), None
        )
    overlay = overlays.get(device.imei) or NOT_IN_SOTI
    label = project(device, active, outbound, overlay, last_assignment=last)
    return InventoryRow(device, active, outbound, last, overlay, label)


def build_inventory(devices=None, overlays=None) -> list[InventoryRow]:
    """One row per device with its projected state.

    Runs a fixed number of queries regardless of the device count. SOTI
    overlays are fetched for the listed IMEIs unless supplied.
    """
    if devices is None:
        devices = visible_devices()
    devices = list(devices)
    prefetch_related_objects(
        devices,
        Prefetch(
            "assignments",
            queryset=Assignment.objects.order_by(
                "-assigned_at", "-pk"
            ).prefetch_related("shipments"),
            to_attr="assignment_history",
        ),
    )
    if overlays is None:
        imeis = [d.imei for d in devices]
        overlays = reconcile(fetch_presence(imeis), imeis)
    return [_rows_for(device, overlays) for device in devices]


def status_summary(rows) -> dict[str, int]:
    """Count rows per state label, known labels first."""
    counts = Counter(row.label for row in rows)
    ordered = {
        label: counts[label] for label in STATE_LABELS if counts[label]
    }
    for label in sorted(set(counts) - set(STATE_LABELS)):
        ordered[label] = counts[label]
    return ordered


def fleet_kpis(start=None, end=None) -> dict:
    """Headline fleet figures. Soft-deleted devices are excluded.

    ``start``/``end`` bound the ticket and assignment counts; device
    counts are always current.
    """
    by_status = {
        row["status"]: row["n"]
        for row in Device.objects.visible()
        .order_by()
        .values("status")
        .annotate(n=Count("pk"))
    }
    total = sum(by_status.values())
    assigned = by_status.get(Device.STATUS_ASSIGNED, 0)

    tickets = Ticket.objects.all()
    assignments = Assignment.objects.all()
    if start is not None:
        tickets = tickets.filter(created__gte=start)
        assignments = assignments.filter(assigned_at__gte=start)
    if end is not None:
        tickets = tickets.filter(created__lt=end)
        assignments = assignments.filter(assigned_at__lt=end)
    requests = tickets.count()
    replacements = assignments.filter(type=Assignment.TYPE_REPLACE).count()

    return {
        "total_devices": total,
        "stock_current": sum(
            by_status.get(s, 0) for s in Device.STOCK_STATUSES
        ),
        "assigned_devices": assigned,
        "devices_lost": by_status.get(Device.STATUS_LOST, 0),
        "utilization_rate": (
            round(assigned / total * 100, 1) if total else 0.0
        ),
        "requests": requests,
        "assignments": assignments.filter(
            type=Assignment.TYPE_ASSIGN
        ).count(),
        "replacements": replacements,
        "replacement_rate": (
            round(replacements / requests * 100, 1) if requests else 0.0
        ),
    }
