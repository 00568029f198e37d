"""Ingestion boundary: canonical status codes and raw payload parsing."""

import logging
import re
import unicodedata

from devices.forms import PresenceRecordForm, TicketRecordForm
from devices.models import Device

logger = logging.getLogger(__name__)

# Legacy Spanish labels seen in spreadsheets and older records.
LEGACY_STATUS_MAP = {
    "NUEVO": Device.STATUS_NEW,
    "ASIGNADO": Device.STATUS_ASSIGNED,
    "EN_ANALISIS": Device.STATUS_ASSIGNED,
    "USADO": Device.STATUS_USED,
    "REPARADO": Device.STATUS_REPAIRED,
    "SIN_REPARACION": Device.STATUS_NOT_REPAIRED,
    "NO_REPARADO": Device.STATUS_NOT_REPAIRED,
    "PERDIDO": Device.STATUS_LOST,
    "DESECHADO": Device.STATUS_DISPOSED,
    "CHATARRA": Device.STATUS_SCRAPPED,
    "DONADO": Device.STATUS_DONATED,
}


def _key(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"[\s\-_]+", "_", ascii_only.strip()).upper()


def normalize_status(value) -> str | None:
    """Return the canonical code for ``value``, or None if unknown.

    Accents, case and separators are ignored, so "Sin Reparación",
    "sin-reparacion" and "NOT_REPAIRED" all resolve to NOT_REPAIRED.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    key = _key(value)
    for code, _label in Device.STATUS_CHOICES:
        if key == code:
            return code
    return LEGACY_STATUS_MAP.get(key)


# Field names used by the upstream feeds, mapped to form field names.
PAYLOAD_ALIASES = {
    "enterprise": "distributor",
    "issueType": "issue_type",
    "issuetype": "issue_type",
    "deviceName": "device_name",
    "assignedUser": "assigned_user",
    "isActive": "is_active",
    "lastSync": "last_sync",
    "updatedAt": "updated_at",
}


def _apply_aliases(payload):
    data = {}
    for key, value in payload.items():
        data[PAYLOAD_ALIASES.get(key, key)] = value
    return data


def _parse(payloads, form_class, kind):
    records = []
    for index, payload in enumerate(payloads):
        if not isinstance(payload, dict):
            logger.warning(
                "Dropped %s payload #%d: not a mapping", kind, index
            )
            continue
        form = form_class(data=_apply_aliases(payload))
        if form.is_valid():
            records.append(form.to_record())
        else:
            logger.warning(
                "Dropped %s payload #%d: %s",
                kind,
                index,
                form.errors.as_json(),
            )
    return records


def parse_presence_payloads(payloads):
    """Validate raw SOTI rows into PresenceRecords, dropping bad rows."""
    return _parse(payloads, PresenceRecordForm, "presence")


def parse_ticket_payloads(payloads):
    """Validate raw ticket rows into TicketRecords, dropping bad rows."""
    return _parse(payloads, TicketRecordForm, "ticket")
