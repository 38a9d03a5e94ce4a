"""
Invitation Composer Module - Visitor Pass

Turns the host's invitation form into a ``VisitorRecord``. Validation is driven
by the ``FIELD_RULES`` table below and happens before anything leaves the
process: a form with errors never reaches the QR encoder or a mail service.
"""

import logging
import re
from typing import Any, Dict, Mapping, Optional

from visitor_pass.modules.exceptions import ValidationError
from visitor_pass.modules.visitor_record import (
    EMAIL_PATTERN,
    VisitorRecord,
    generate_visitor_id,
    utc_now_iso,
)

DATE_PATTERN = re.compile(r'^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')

# field: (attribute, required, min_length, pattern, message)
FIELD_RULES = {
    'visitorName': ('visitor_name', True, 2, None,
                    'Visitor name must be at least 2 characters'),
    'visitorCompany': ('visitor_company', True, 2, None,
                       'Company name must be at least 2 characters'),
    'visitorEmail': ('visitor_email', True, 1, EMAIL_PATTERN,
                     'Please enter a valid visitor email address'),
    'purpose': ('purpose', True, 5, None,
                'Purpose must be at least 5 characters'),
    'hostEmail': ('host_email', True, 1, EMAIL_PATTERN,
                  'Please enter a valid host email address'),
    'hostName': ('host_name', False, 2, None,
                 'Host name must be at least 2 characters'),
    'meetingDate': ('meeting_date', False, 1, DATE_PATTERN,
                    'Meeting date must be in YYYY-MM-DD format'),
    'meetingTime': ('meeting_time', False, 1, TIME_PATTERN,
                    'Meeting time must be in HH:MM format'),
}


class InvitationComposer:
    """Validates invitation input and stamps new records with an id and creation time."""

    def __init__(self, rules: Optional[Dict[str, tuple]] = None):
        self.rules = rules or FIELD_RULES
        self.logger = logging.getLogger(__name__)

    def _clean(self, form: Mapping[str, Any]) -> Dict[str, Any]:
        """Strip string values; anything else that is present is kept as is and fails validation."""
        cleaned = {}
        for name in self.rules:
            value = form.get(name)
            if value is None:
                cleaned[name] = ''
            elif isinstance(value, str):
                cleaned[name] = value.strip()
            else:
                cleaned[name] = value
        return cleaned

    def validate(self, form: Mapping[str, Any]) -> Dict[str, str]:
        """
        Check every field of an invitation form.

        Args:
            form (Mapping[str, Any]): Raw form or JSON input keyed by wire name

        Returns:
            Dict[str, str]: Field name to error message; empty when the form is valid
        """
        errors = {}
        for name, value in self._clean(form).items():
            _, required, min_length, pattern, message = self.rules[name]
            if not isinstance(value, str):
                errors[name] = message
                continue
            if not value:
                if required:
                    errors[name] = message
                continue
            if len(value) < min_length:
                errors[name] = message
            elif pattern is not None and not pattern.match(value):
                errors[name] = message
        return errors

    def compose(self, form: Mapping[str, Any]) -> VisitorRecord:
        """
        Validate the form and build a new visitor record.

        Raises:
            ValidationError: With a per-field ``fields`` map when input is invalid
        """
        errors = self.validate(form)
        if errors:
            self.logger.info(f"Invitation rejected, invalid fields: {', '.join(sorted(errors))}")
            raise ValidationError('Validation failed', fields=errors)

        values = {}
        for name, value in self._clean(form).items():
            attr = self.rules[name][0]
            if value:
                values[attr] = value

        record = VisitorRecord(
            id=generate_visitor_id(),
            created_at=utc_now_iso(),
            **values
        )
        self.logger.info(f"Invitation {record.id} composed for {record.visitor_email}")
        return record
