"""Tests for SOTI presence reconciliation."""

import itertools
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

import pytest

from devices.factories import SotiDeviceFactory
from devices.models import Device, SotiDevice
from devices.services.projection import project
from devices.services.reconciliation import (
    NOT_IN_SOTI,
    PresenceRecord,
    fetch_presence,
    reconcile,
    select_authoritative,
)

T0 = datetime(2025, 5, 1, 12, 0, 0, tzinfo=dt_timezone.utc)


def _record(imei="123", is_active=True, minutes=0, **kwargs):
    return PresenceRecord(
        imei=imei,
        is_active=is_active,
        updated_at=T0 + timedelta(minutes=minutes),
        **kwargs,
    )


class TestSelectAuthoritative:
    def test_active_beats_newer_inactive(self):
        older_active = _record(is_active=True, minutes=0, device_name="A")
        newer_inactive = _record(is_active=False, minutes=60, device_name="B")
        chosen = select_authoritative([newer_inactive, older_active])
        assert chosen is older_active

    def test_newest_wins_among_equal_activity(self):
        old = _record(minutes=0, device_name="old")
        new = _record(minutes=5, device_name="new")
        assert select_authoritative([old, new]) is new
        assert select_authoritative([new, old]) is new

    def test_missing_timestamp_loses(self):
        undated = PresenceRecord(imei="123", is_active=True)
        dated = _record(minutes=-600)
        assert select_authoritative([undated, dated]) is dated

    def test_independent_of_input_order(self):
        records = [
            _record(is_active=False, minutes=30, device_name="x"),
            _record(is_active=True, minutes=10, device_name="b"),
            _record(is_active=True, minutes=10, device_name="a"),
            _record(is_active=False, minutes=90, device_name="y"),
        ]
        choices = {
            select_authoritative(list(p))
            for p in itertools.permutations(records)
        }
        assert len(choices) == 1
        assert choices.pop().device_name == "b"

    def test_empty(self):
        assert select_authoritative([]) is None


class TestReconcile:
    def test_scenario_active_record_selected_despite_age(self):
        t1 = T0
        t2 = T0 + timedelta(days=2)
        records = [
            PresenceRecord(
                imei="123",
                is_active=False,
                updated_at=t2,
                device_name="stale",
            ),
            PresenceRecord(
                imei="123",
                is_active=True,
                updated_at=t1,
                device_name="live",
                assigned_user="jperez",
                last_sync=t1,
            ),
        ]
        overlay = reconcile(records)["123"]
        assert overlay.is_in_soti is True
        assert overlay.device_name == "live"
        assert overlay.assigned_user == "jperez"
        assert overlay.last_sync == t1

    def test_inactive_only_record_is_pending_soti(self):
        overlay = reconcile([_record(is_active=False, device_name="z")])["123"]
        assert overlay.is_in_soti is True
        assert overlay.device_name == "z"
        device = Device(imei="123", status=Device.STATUS_NEW)
        assert project(device, None, None, overlay) == "Pendiente SOTI"

    def test_requested_imeis_without_records(self):
        result = reconcile([_record(imei="1")], imeis=["1", "2"])
        assert set(result) == {"1", "2"}
        assert result["1"].is_in_soti is True
        assert result["2"] == NOT_IN_SOTI

    def test_requested_imeis_limit_result(self):
        records = [_record(imei="1"), _record(imei="9")]
        result = reconcile(records, imeis=["1"])
        assert set(result) == {"1"}

    def test_tolerates_blank_imeis(self):
        result = reconcile([_record(imei=""), _record(imei=" 5 ")])
        assert set(result) == {"5"}

    def test_record_without_imei_is_skipped(self):
        records = [PresenceRecord(imei=None, is_active=True), _record()]
        assert set(reconcile(records)) == {"123"}

    def test_empty_input(self):
        assert reconcile([]) == {}
        assert reconcile([], imeis=[]) == {}

    def test_deterministic(self):
        records = [
            _record(is_active=True, minutes=1, device_name="a"),
            _record(is_active=True, minutes=1, device_name="b"),
        ]
        first = reconcile(records)
        second = reconcile(list(reversed(records)))
        assert first == second


@pytest.mark.django_db
class TestFetchPresence:
    def test_reads_rows_for_imeis(self):
        SotiDeviceFactory(imei="111", is_active=False)
        SotiDeviceFactory(imei="111", is_active=True, device_name="MDM-1")
        SotiDeviceFactory(imei="222")
        records = fetch_presence(["111"])
        assert len(records) == 2
        assert {r.imei for r in records} == {"111"}
        assert reconcile(records)["111"].device_name == "MDM-1"

    def test_never_writes(self):
        SotiDeviceFactory(imei="111")
        before = list(SotiDevice.objects.values())
        reconcile(fetch_presence(["111", "333"]), imeis=["111", "333"])
        assert list(SotiDevice.objects.values()) == before

    def test_empty_set(self):
        assert fetch_presence([]) == []
