"""Tests for the shipment tracker."""

import logging

import pytest

from django.core.exceptions import ValidationError

from devices.exceptions import (
    InvalidResultingStatus,
    InvalidTransition,
    LegAlreadyExists,
    NotActive,
    OutboundNotDelivered,
    ReturnNotExpected,
)
from devices.models import Assignment, Device, Shipment
from devices.services.assignments import close_assignment, open_assignment
from devices.services.registry import soft_delete
from devices.services.shipments import (
    advance,
    confirm_return_received,
    start_outbound,
    start_return,
)


def _outbound(assignment):
    return assignment.shipments.get(leg=Shipment.LEG_OUTBOUND)


def _deliver(shipment):
    advance(shipment, "shipped")
    advance(shipment, "delivered")


@pytest.mark.django_db
class TestStartOutbound:
    def test_creates_pending_leg(self, active_assignment):
        leg = start_outbound(active_assignment, "VOU-100")
        assert leg.leg == "outbound"
        assert leg.status == "pending"
        assert leg.voucher_id == "VOU-100"

    def test_second_outbound_fails(self, active_assignment):
        start_outbound(active_assignment, "VOU-100")
        with pytest.raises(LegAlreadyExists) as exc:
            start_outbound(active_assignment, "VOU-101")
        assert exc.value.code == "leg_already_exists"
        assert active_assignment.shipments.count() == 1

    def test_voucher_from_open_counts_as_outbound(
        self, replacement_assignment
    ):
        with pytest.raises(LegAlreadyExists):
            start_outbound(replacement_assignment, "VOU-200")

    def test_blank_voucher(self, active_assignment):
        with pytest.raises(ValidationError):
            start_outbound(active_assignment, " ")

    def test_closed_assignment(self, active_assignment):
        close_assignment(active_assignment, Device.STATUS_USED)
        with pytest.raises(NotActive):
            start_outbound(active_assignment, "VOU-100")


@pytest.mark.django_db
class TestAdvance:
    def test_stamps_timestamps(self, replacement_assignment):
        leg = _outbound(replacement_assignment)
        advance(leg, "shipped")
        assert leg.status == "shipped"
        assert leg.shipped_at is not None
        advance(leg, "delivered")
        leg.refresh_from_db()
        assert leg.status == "delivered"
        assert leg.delivered_at >= leg.shipped_at

    def test_cannot_skip_shipped(self, replacement_assignment):
        leg = _outbound(replacement_assignment)
        with pytest.raises(InvalidTransition):
            advance(leg, "delivered")

    def test_never_regresses(self, replacement_assignment):
        leg = _outbound(replacement_assignment)
        observed = [leg.status]
        for target in ["shipped", "pending", "delivered", "shipped"]:
            try:
                advance(leg, target)
            except InvalidTransition:
                pass
            leg.refresh_from_db()
            observed.append(leg.status)
        order = ["pending", "shipped", "delivered"]
        ranks = [order.index(s) for s in observed]
        assert ranks == sorted(ranks)
        assert observed[-1] == "delivered"

    def test_return_leg_not_delivered_by_advance(
        self, replacement_assignment
    ):
        leg = start_return(replacement_assignment)
        advance(leg, "shipped")
        with pytest.raises(InvalidTransition):
            advance(leg, "delivered")
        leg.refresh_from_db()
        assert leg.status == "shipped"

    def test_closed_assignment(self, replacement_assignment):
        leg = _outbound(replacement_assignment)
        close_assignment(replacement_assignment, Device.STATUS_USED)
        with pytest.raises(NotActive):
            advance(leg, "shipped")

    def test_uses_row_lock(self):
        import inspect

        from devices.services import shipments

        for fn in (
            shipments.advance,
            shipments.start_outbound,
            shipments.start_return,
            shipments.confirm_return_received,
        ):
            source = inspect.getsource(fn)
            assert "atomic" in source
        assert "select_for_update" in inspect.getsource(shipments.advance)


@pytest.mark.django_db
class TestStartReturn:
    def test_requires_expects_return(self, active_assignment):
        with pytest.raises(ReturnNotExpected) as exc:
            start_return(active_assignment)
        assert exc.value.code == "return_not_expected"

    def test_creates_return_leg(self, replacement_assignment):
        leg = start_return(replacement_assignment, "RET-1")
        assert leg.leg == Shipment.LEG_RETURN
        assert leg.voucher_id == "RET-1"
        assert leg.status == "pending"

    def test_voucher_is_optional(self, replacement_assignment):
        leg = start_return(replacement_assignment)
        assert leg.voucher_id == ""

    def test_second_return_fails(self, replacement_assignment):
        start_return(replacement_assignment)
        with pytest.raises(LegAlreadyExists):
            start_return(replacement_assignment)

    def test_closed_assignment(self, replacement_assignment):
        close_assignment(replacement_assignment, Device.STATUS_USED)
        with pytest.raises(NotActive):
            start_return(replacement_assignment)


@pytest.mark.django_db
class TestConfirmReturnReceived:
    def test_outbound_not_delivered(self, replacement_assignment):
        leg = _outbound(replacement_assignment)
        advance(leg, "shipped")
        ret = start_return(replacement_assignment)
        with pytest.raises(OutboundNotDelivered) as exc:
            confirm_return_received(ret)
        assert exc.value.code == "outbound_not_delivered"
        ret.refresh_from_db()
        assert ret.status == "pending"

    def test_missing_outbound_counts_as_not_delivered(
        self, device, second_device, assignee
    ):
        assignment = open_assignment(
            device,
            "REPLACE",
            assignee,
            replacement_reason="BREAKAGE",
            expects_return=True,
            return_imei=second_device.imei,
        )
        ret = start_return(assignment)
        with pytest.raises(OutboundNotDelivered):
            confirm_return_received(ret)

    def test_marks_returned_device(
        self, device, second_device, replacement_assignment
    ):
        _deliver(_outbound(replacement_assignment))
        ret = start_return(replacement_assignment, "RET-1")
        confirm_return_received(ret, notes="Llegó con pantalla rota")

        ret.refresh_from_db()
        second_device.refresh_from_db()
        device.refresh_from_db()
        assert ret.status == "delivered"
        assert ret.delivered_at is not None
        assert ret.notes == "Llegó con pantalla rota"
        assert second_device.status == Device.STATUS_USED
        # The assignment's own device stays in custody.
        assert device.status == Device.STATUS_ASSIGNED
        replacement_assignment.refresh_from_db()
        assert replacement_assignment.is_active

    def test_returned_status(self, second_device, replacement_assignment):
        _deliver(_outbound(replacement_assignment))
        ret = start_return(replacement_assignment)
        confirm_return_received(
            ret, returned_status=Device.STATUS_NOT_REPAIRED
        )
        second_device.refresh_from_db()
        assert second_device.status == "NOT_REPAIRED"

    def test_returned_status_must_be_terminal(self, replacement_assignment):
        _deliver(_outbound(replacement_assignment))
        ret = start_return(replacement_assignment)
        with pytest.raises(InvalidResultingStatus):
            confirm_return_received(ret, returned_status="NEW")

    def test_closes_custody_of_returned_device(
        self, device, second_device, assignee
    ):
        old = open_assignment(second_device, "ASSIGN", assignee)
        replacement = open_assignment(
            device,
            "REPLACE",
            assignee,
            replacement_reason="BREAKAGE",
            expects_return=True,
            return_imei=second_device.imei,
            voucher_id="VOU-5",
        )
        _deliver(_outbound(replacement))
        confirm_return_received(start_return(replacement))

        old.refresh_from_db()
        second_device.refresh_from_db()
        assert old.status == Assignment.STATUS_COMPLETED
        assert old.resulting_device_status == Device.STATUS_USED
        assert second_device.status == Device.STATUS_USED
        assert not second_device.assignments.filter(status="active").exists()

    def test_unknown_return_device_is_logged(
        self, device, assignee, caplog
    ):
        assignment = open_assignment(
            device,
            "REPLACE",
            assignee,
            replacement_reason="THEFT",
            expects_return=True,
            return_imei="359999999999999",
            voucher_id="VOU-7",
        )
        _deliver(_outbound(assignment))
        ret = start_return(assignment)
        with caplog.at_level(logging.WARNING, logger="devices"):
            confirm_return_received(ret)
        ret.refresh_from_db()
        assert ret.status == "delivered"
        assert "359999999999999" in caplog.text

    def test_confirm_twice(self, replacement_assignment):
        _deliver(_outbound(replacement_assignment))
        ret = start_return(replacement_assignment)
        confirm_return_received(ret)
        with pytest.raises(InvalidTransition):
            confirm_return_received(ret)

    def test_only_return_legs(self, replacement_assignment):
        with pytest.raises(ValidationError):
            confirm_return_received(_outbound(replacement_assignment))

    def test_closed_assignment(self, second_device, replacement_assignment):
        _deliver(_outbound(replacement_assignment))
        ret = start_return(replacement_assignment)
        close_assignment(replacement_assignment, Device.STATUS_USED)
        with pytest.raises(NotActive):
            confirm_return_received(ret)
        ret.refresh_from_db()
        second_device.refresh_from_db()
        assert ret.status == "pending"
        assert second_device.status == Device.STATUS_NEW

    def test_retired_returned_device_is_left_alone(
        self, second_device, replacement_assignment, caplog
    ):
        soft_delete(second_device, Device.STATUS_REPAIRED)
        _deliver(_outbound(replacement_assignment))
        ret = start_return(replacement_assignment)
        with caplog.at_level(logging.WARNING, logger="devices"):
            confirm_return_received(ret)
        ret.refresh_from_db()
        second_device.refresh_from_db()
        assert ret.status == "delivered"
        assert second_device.status == Device.STATUS_REPAIRED
        assert "retired" in caplog.text
