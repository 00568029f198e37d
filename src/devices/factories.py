"""Factory Boy factories for fleet test data generation."""

import factory
from factory.django import DjangoModelFactory

from django.utils import timezone


class UserFactory(DjangoModelFactory):
    """Factory for the auth user model."""

    class Meta:
        model = "auth.User"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    first_name = factory.Faker("first_name")
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class DistributorFactory(DjangoModelFactory):
    class Meta:
        model = "devices.Distributor"
        django_get_or_create = ("name",)

    name = factory.Sequence(lambda n: f"DISTRIBUIDORA {n}")


class PhoneModelFactory(DjangoModelFactory):
    class Meta:
        model = "devices.PhoneModel"

    brand = "Samsung"
    model = factory.Sequence(lambda n: f"Galaxy A{n}")
    storage_gb = 128
    color = "Negro"


class DeviceFactory(DjangoModelFactory):
    """Factory for Device model.

    IMEIs are 15 digits and unique per sequence value.
    """

    class Meta:
        model = "devices.Device"

    imei = factory.Sequence(lambda n: f"35{n:013d}")
    model = factory.SubFactory(PhoneModelFactory)
    distributor = factory.SubFactory(DistributorFactory)
    status = "NEW"


class AssignmentFactory(DjangoModelFactory):
    """Factory for Assignment model.

    Creates the row directly; use the ledger services when the device
    status must follow.
    """

    class Meta:
        model = "devices.Assignment"

    device = factory.SubFactory(DeviceFactory, status="ASSIGNED")
    type = "ASSIGN"
    status = "active"
    assignee_name = factory.Faker("name")
    assignee_email = factory.Faker("email")
    distributor = factory.SelfAttribute("device.distributor")
    assigned_at = factory.LazyFunction(timezone.now)


class ShipmentFactory(DjangoModelFactory):
    class Meta:
        model = "devices.Shipment"

    assignment = factory.SubFactory(AssignmentFactory)
    leg = "outbound"
    voucher_id = factory.Sequence(lambda n: f"VOU-{n:06d}")
    status = "pending"


class SotiDeviceFactory(DjangoModelFactory):
    class Meta:
        model = "devices.SotiDevice"

    imei = factory.Sequence(lambda n: f"35{n:013d}")
    device_name = factory.Sequence(lambda n: f"MDM-{n}")
    assigned_user = factory.Faker("user_name")
    is_active = True
    last_sync = factory.LazyFunction(timezone.now)
    updated_at = factory.LazyFunction(timezone.now)


class TicketFactory(DjangoModelFactory):
    class Meta:
        model = "devices.Ticket"

    key = factory.Sequence(lambda n: f"TEL-{n}")
    distributor = "EDEN"
    issue_type = "Solicitud"
    title = factory.Faker("sentence")
    created = factory.LazyFunction(timezone.now)
