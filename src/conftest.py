"""Shared pytest fixtures for fleet tests."""

import pytest

from devices.factories import (
    DeviceFactory,
    DistributorFactory,
    PhoneModelFactory,
    UserFactory,
)
from devices.services.assignments import Assignee, open_assignment


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def user(db, password):
    return UserFactory(
        username="testuser",
        email="test@example.com",
        password=password,
    )


# --- Core model fixtures ---


@pytest.fixture
def distributor(db):
    return DistributorFactory(name="EDEN")


@pytest.fixture
def other_distributor(db):
    return DistributorFactory(name="EDES")


@pytest.fixture
def phone_model(db):
    return PhoneModelFactory(
        brand="Samsung",
        model="Galaxy A15",
        storage_gb=128,
        color="Negro",
    )


@pytest.fixture
def device(phone_model, distributor):
    return DeviceFactory(
        imei="356789012345678",
        model=phone_model,
        distributor=distributor,
        status="NEW",
    )


@pytest.fixture
def second_device(phone_model, distributor):
    return DeviceFactory(
        imei="356789012345679",
        model=phone_model,
        distributor=distributor,
        status="NEW",
    )


@pytest.fixture
def assignee(distributor):
    return Assignee(
        name="Juan Pérez",
        phone="+54 9 223 555 0101",
        email="jperez@example.com",
        role="Técnico de campo",
        distributor=distributor,
        delivery_location="Mar del Plata",
    )


@pytest.fixture
def active_assignment(device, assignee, user):
    return open_assignment(device, "ASSIGN", assignee, user=user)


@pytest.fixture
def replacement_assignment(device, second_device, assignee, user):
    """A replacement of ``second_device`` by ``device``, with a voucher."""
    return open_assignment(
        device,
        "REPLACE",
        assignee,
        replacement_reason="BREAKAGE",
        expects_return=True,
        return_imei=second_device.imei,
        voucher_id="VOU-000001",
        user=user,
    )
