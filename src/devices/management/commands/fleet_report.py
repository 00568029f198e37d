"""Management command printing the fleet report as JSON."""

import json
from dataclasses import asdict
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.core.serializers.json import DjangoJSONEncoder
from django.db.models import Count
from django.utils import timezone

from devices.models import Device
from devices.services.demand import (
    demand_projections,
    load_ticket_records,
    monthly_trend,
    stock_analysis,
)
from devices.services.inventory import (
    build_inventory,
    fleet_kpis,
    status_summary,
)


def _device_stock_by_distributor():
    rows = (
        Device.objects.visible()
        .filter(
            status__in=Device.STOCK_STATUSES,
            distributor__isnull=False,
        )
        .order_by()
        .values("distributor__name")
        .annotate(n=Count("pk"))
    )
    return {row["distributor__name"]: row["n"] for row in rows}


class Command(BaseCommand):
    help = (
        "Print inventory summary, KPIs, demand projections and stock "
        "analysis as JSON"
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=90,
            help="Only use tickets created in the last N days (default 90)",
        )
        parser.add_argument(
            "--device-stock",
            action="store_true",
            help="Use registered stock per distributor instead of the "
            "simulated baseline",
        )
        parser.add_argument("--indent", type=int, default=2)

    def handle(self, *args, **options):
        now = timezone.now()
        since = now - timedelta(days=options["days"])
        records = load_ticket_records(since=since)

        current_stock = None
        if options["device_stock"]:
            current_stock = _device_stock_by_distributor()

        rows = build_inventory()
        report = {
            "generated_at": now,
            "inventory": status_summary(rows),
            "kpis": fleet_kpis(start=since, end=now),
            "demand": [asdict(p) for p in demand_projections(records, now)],
            "stock": [
                asdict(s) for s in stock_analysis(records, current_stock)
            ],
            "monthly_trend": asdict(monthly_trend(records)),
        }
        self.stdout.write(
            json.dumps(
                report,
                cls=DjangoJSONEncoder,
                indent=options["indent"],
                ensure_ascii=False,
            )
        )
