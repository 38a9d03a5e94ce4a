"""
Visitor Record Module - Visitor Pass

Data structures that travel between the two halves of the system. A
``VisitorRecord`` is created when the host submits an invitation and is the
only thing carried inside the QR code; a ``CheckInEvent`` wraps a scanned
record at the moment the front desk confirms the visit.

Features:
- Invitation id generation (timestamp plus random suffix)
- Compact JSON projection for the QR payload
- Strict validation of decoded QR payloads
- Check-in projections for the confirmation email and the automation webhook
"""

import json
import re
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from visitor_pass.modules.exceptions import ScanError, ValidationError

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

ID_ALPHABET = string.digits + string.ascii_lowercase
ID_SUFFIX_LENGTH = 9

# Wire name -> attribute name, in payload order.
WIRE_FIELDS = {
    'id': 'id',
    'visitorName': 'visitor_name',
    'visitorCompany': 'visitor_company',
    'visitorEmail': 'visitor_email',
    'purpose': 'purpose',
    'hostEmail': 'host_email',
    'hostName': 'host_name',
    'meetingDate': 'meeting_date',
    'meetingTime': 'meeting_time',
    'createdAt': 'created_at',
}

MINIMAL_FIELDS = ('id', 'visitorName', 'hostEmail')
INVITATION_FIELDS = MINIMAL_FIELDS + ('visitorEmail',)

CHECKIN_ACTION = 'visitor_checked_in'


def utc_now_iso() -> str:
    """Current UTC time in the ``2025-01-31T09:15:00.123Z`` form browsers emit."""
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


def format_local_time(value: str) -> str:
    """Render an ISO timestamp the way the desk staff read it; unparseable input is returned as is."""
    parsed = parse_iso(value)
    if parsed is None:
        return value
    return parsed.strftime('%m/%d/%Y, %I:%M:%S %p')


def generate_visitor_id() -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    suffix = ''.join(secrets.choice(ID_ALPHABET) for _ in range(ID_SUFFIX_LENGTH))
    return f"visitor-{millis}-{suffix}"


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value))


@dataclass(frozen=True)
class VisitorRecord:
    """An invitation as encoded in the visitor's QR code."""
    id: str
    visitor_name: str
    host_email: str
    visitor_company: str = ''
    visitor_email: str = ''
    purpose: str = ''
    host_name: Optional[str] = None
    meeting_date: Optional[str] = None
    meeting_time: Optional[str] = None
    created_at: Optional[str] = field(default_factory=utc_now_iso)

    def to_payload(self) -> Dict[str, str]:
        """Wire form of the record; optional fields that are unset are left out."""
        payload = {}
        for wire_name, attr in WIRE_FIELDS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            payload[wire_name] = value
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), separators=(',', ':'), ensure_ascii=False)

    @property
    def dedup_key(self) -> str:
        return f"{self.visitor_email}_{self.id}"

    @classmethod
    def from_payload(cls, payload: Any,
                     required: Iterable[str] = MINIMAL_FIELDS) -> 'VisitorRecord':
        """
        Build a record from untrusted wire data (a decoded QR code or a request body).

        Args:
            payload: Parsed JSON value
            required: Wire names that must be present and non-empty

        Returns:
            VisitorRecord: The reconstructed record

        Raises:
            ValidationError: If the payload does not have the minimal visitor shape
        """
        if not isinstance(payload, dict):
            raise ValidationError('Invalid visitor data',
                                  details='Visitor data must be a JSON object')

        values = {}
        for wire_name, attr in WIRE_FIELDS.items():
            value = payload.get(wire_name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValidationError('Invalid visitor data',
                                      details=f'{wire_name} must be a string')
            values[attr] = value.strip()

        missing = [name for name in required if not values.get(WIRE_FIELDS[name])]
        if missing:
            raise ValidationError('Invalid visitor data',
                                  details=f"Missing required field(s): {', '.join(missing)}")

        for wire_name in ('hostEmail', 'visitorEmail'):
            value = values.get(WIRE_FIELDS[wire_name])
            if value and not is_valid_email(value):
                raise ValidationError('Invalid visitor data',
                                      details=f'{wire_name} is not a valid email address')

        values.setdefault('created_at', None)
        return cls(**values)


def parse_visitor_payload(text: str) -> VisitorRecord:
    """
    Parse decoded QR text into a visitor record.

    Raises:
        ScanError: If the text is not JSON or lacks id, visitorName or hostEmail
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError):
        raise ScanError('Invalid QR code',
                        details='QR code does not contain visitor data')

    try:
        return VisitorRecord.from_payload(payload)
    except ValidationError as e:
        raise ScanError('Invalid QR code', details=e.details)


@dataclass
class CheckInNotification:
    """What the host confirmation email needs to know about a check-in."""
    host_email: str
    visitor_name: str
    visitor_company: str
    purpose: str = ''
    checked_in_at: str = ''
    identification_notes: Optional[str] = None
    location_notes: Optional[str] = None

    REQUIRED = ('hostEmail', 'visitorName', 'visitorCompany')

    @classmethod
    def from_request(cls, data: Any) -> 'CheckInNotification':
        if not isinstance(data, dict):
            raise ValidationError('Missing required fields')
        for name in cls.REQUIRED:
            value = data.get(name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError('Missing required fields')

        def optional(name):
            value = data.get(name)
            if isinstance(value, str) and value.strip():
                return value.strip()
            return None

        return cls(
            host_email=data['hostEmail'].strip(),
            visitor_name=data['visitorName'].strip(),
            visitor_company=data['visitorCompany'].strip(),
            purpose=optional('purpose') or '',
            checked_in_at=optional('checkedInAt') or utc_now_iso(),
            identification_notes=optional('identificationNotes'),
            location_notes=optional('locationNotes'),
        )

    @property
    def checked_in_time(self) -> str:
        return format_local_time(self.checked_in_at)


@dataclass
class CheckInEvent:
    """A confirmed check-in. Lives only in memory and in the outbound request."""
    record: VisitorRecord
    checked_in_at: str = field(default_factory=utc_now_iso)
    identification_notes: Optional[str] = None
    location_notes: Optional[str] = None
    checked_in_by: Optional[str] = None

    def to_notification(self) -> CheckInNotification:
        return CheckInNotification(
            host_email=self.record.host_email,
            visitor_name=self.record.visitor_name,
            visitor_company=self.record.visitor_company,
            purpose=self.record.purpose,
            checked_in_at=self.checked_in_at,
            identification_notes=self.identification_notes,
            location_notes=self.location_notes,
        )

    def to_webhook_form(self) -> Dict[str, str]:
        return {
            'visitorName': self.record.visitor_name,
            'visitorCompany': self.record.visitor_company,
            'visitorEmail': self.record.visitor_email,
            'purpose': self.record.purpose,
            'hostEmail': self.record.host_email,
            'visitorId': self.record.id,
            'checkedInAt': self.checked_in_at,
            'checkedInTime': format_local_time(self.checked_in_at),
            'identificationNotes': self.identification_notes or '',
            'locationNotes': self.location_notes or '',
            'checkedInBy': self.checked_in_by or '',
            'action': CHECKIN_ACTION,
            'timestamp': self.checked_in_at,
        }
