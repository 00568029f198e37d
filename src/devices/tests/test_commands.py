"""Tests for the fleet_report management command."""

import json
from datetime import timedelta
from io import StringIO

import pytest

from django.core.management import call_command
from django.utils import timezone

from devices.factories import DeviceFactory, TicketFactory


def _report(*args):
    out = StringIO()
    call_command("fleet_report", *args, stdout=out)
    return json.loads(out.getvalue())


@pytest.mark.django_db
class TestFleetReport:
    def test_empty_database(self):
        report = _report()
        assert set(report) == {
            "generated_at",
            "inventory",
            "kpis",
            "demand",
            "stock",
            "monthly_trend",
        }
        assert report["inventory"] == {}
        assert report["demand"] == []
        assert report["kpis"]["total_devices"] == 0

    def test_inventory_and_kpis(
        self, device, second_device, active_assignment
    ):
        report = _report()
        assert report["inventory"] == {"Asignado": 1, "Disponible": 1}
        assert report["kpis"]["assigned_devices"] == 1
        assert report["kpis"]["assignments"] == 1

    def test_simulated_stock(self, db):
        for _ in range(10):
            TicketFactory(distributor="EDES")
        report = _report()
        (stock,) = report["stock"]
        assert stock["distributor"] == "EDES"
        assert stock["required_stock"] == 3
        assert stock["current_stock"] == 2
        assert stock["is_simulated"] is True
        (demand,) = report["demand"]
        assert demand["current_demand"] == 10

    def test_device_stock_option(self, phone_model, other_distributor):
        for _ in range(10):
            TicketFactory(distributor="EDES")
        for _ in range(5):
            DeviceFactory(model=phone_model, distributor=other_distributor)
        report = _report("--device-stock")
        (stock,) = report["stock"]
        assert stock["current_stock"] == 5
        assert stock["shortage"] == 0
        assert stock["is_simulated"] is False

    def test_days_window(self, db):
        TicketFactory(created=timezone.now() - timedelta(days=2))
        TicketFactory(created=timezone.now() - timedelta(days=40))
        assert _report("--days", "30")["kpis"]["requests"] == 1
        assert _report()["kpis"]["requests"] == 2

    def test_output_keeps_accents(self, db):
        TicketFactory(distributor="EDES")
        out = StringIO()
        call_command("fleet_report", "--indent", "0", stdout=out)
        assert "stock crítico" in out.getvalue()
