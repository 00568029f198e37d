"""Boundary forms: validate loosely-typed input before it reaches the core."""

from django import forms

from .models import Distributor
from .services.assignments import Assignee
from .services.demand import TicketRecord
from .services.reconciliation import PresenceRecord


class PresenceRecordForm(forms.Form):
    """One row of the SOTI presence feed."""

    imei = forms.CharField(max_length=20)
    is_active = forms.NullBooleanField(required=False)
    device_name = forms.CharField(max_length=200, required=False)
    assigned_user = forms.CharField(max_length=200, required=False)
    updated_at = forms.DateTimeField(required=False)
    last_sync = forms.DateTimeField(required=False)

    def clean_imei(self):
        imei = self.cleaned_data["imei"].strip()
        if not imei.isdigit():
            raise forms.ValidationError("IMEI must contain only digits.")
        return imei

    def clean_is_active(self):
        # Unknown or missing flags count as not active.
        return bool(self.cleaned_data.get("is_active"))

    def to_record(self) -> PresenceRecord:
        data = self.cleaned_data
        return PresenceRecord(
            imei=data["imei"],
            is_active=data["is_active"],
            updated_at=data.get("updated_at") or data.get("last_sync"),
            device_name=data.get("device_name", ""),
            assigned_user=data.get("assigned_user", ""),
            last_sync=data.get("last_sync"),
        )


class TicketRecordForm(forms.Form):
    """One ticket from the ticket source."""

    key = forms.CharField(max_length=50)
    distributor = forms.CharField(max_length=100)
    created = forms.DateTimeField()
    issue_type = forms.CharField(max_length=100, required=False)
    title = forms.CharField(max_length=300, required=False)
    label = forms.CharField(max_length=100, required=False)

    def clean_distributor(self):
        return " ".join(self.cleaned_data["distributor"].split())

    def to_record(self) -> TicketRecord:
        data = self.cleaned_data
        return TicketRecord(
            key=data["key"],
            distributor=data["distributor"],
            created=data["created"],
            issue_type=data.get("issue_type", ""),
            title=data.get("title", ""),
            label=data.get("label", ""),
        )


class AssigneeForm(forms.Form):
    """Holder details captured when a device is handed over."""

    name = forms.CharField(max_length=200)
    phone = forms.CharField(max_length=50, required=False)
    email = forms.EmailField(required=False)
    role = forms.CharField(max_length=200, required=False)
    distributor = forms.ModelChoiceField(
        queryset=Distributor.objects.filter(is_active=True),
        required=False,
    )
    delivery_location = forms.CharField(max_length=200, required=False)
    contact_details = forms.CharField(
        widget=forms.Textarea, required=False
    )

    def to_assignee(self) -> Assignee:
        data = self.cleaned_data
        return Assignee(
            name=data["name"],
            phone=data.get("phone", ""),
            email=data.get("email", ""),
            role=data.get("role", ""),
            distributor=data.get("distributor"),
            delivery_location=data.get("delivery_location", ""),
            contact_details=data.get("contact_details", ""),
        )
