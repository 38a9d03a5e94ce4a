"""
Check-In Finalizer Module - Visitor Pass

Records the front desk's confirmation of a scanned visitor and tells the host,
either with a confirmation email or through the check-in automation webhook.
Nothing is stored; a failed notification is retried by finalizing the same
event again, which sends an identical payload.
"""

import logging
from typing import Optional

from visitor_pass.modules.delivery_dispatcher import (
    CHANNEL_EMAIL,
    CHANNEL_WEBHOOK,
    DispatchResult,
    check_channel,
)
from visitor_pass.modules.email_client import unwrap_send_result
from visitor_pass.modules.email_templates import render_checkin_email
from visitor_pass.modules.exceptions import (
    CollaboratorError,
    ConfigurationError,
    ValidationError,
)
from visitor_pass.modules.visitor_record import (
    CheckInEvent,
    CheckInNotification,
    VisitorRecord,
    parse_iso,
    utc_now_iso,
)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class CheckInFinalizer:
    """Notifies the host of a confirmed check-in by email or through the check-in webhook."""

    def __init__(self, email_client=None, webhook_client=None,
                 from_email: str = 'noreply@yourdomain.com', channel: str = CHANNEL_EMAIL):
        self.email_client = email_client
        self.webhook_client = webhook_client
        self.from_email = from_email
        self.channel = check_channel(channel)
        self.logger = logging.getLogger(__name__)

    def create_event(self, record: VisitorRecord, identification_notes: Optional[str] = None,
                     location_notes: Optional[str] = None,
                     checked_in_by: Optional[str] = None,
                     checked_in_at: Optional[str] = None) -> CheckInEvent:
        """
        Stamp a scanned record with the check-in time and the operator's notes.

        ``checked_in_at`` is only passed when rebuilding an event for a retry;
        it must be an ISO timestamp.
        """
        if checked_in_at is not None and parse_iso(checked_in_at) is None:
            raise ValidationError('Invalid check-in time',
                                  details='checkedInAt must be an ISO-8601 timestamp')
        return CheckInEvent(
            record=record,
            checked_in_at=checked_in_at or utc_now_iso(),
            identification_notes=_blank_to_none(identification_notes),
            location_notes=_blank_to_none(location_notes),
            checked_in_by=_blank_to_none(checked_in_by),
        )

    def finalize(self, event: CheckInEvent, channel: Optional[str] = None) -> DispatchResult:
        """
        Notify the host through exactly one collaborator.

        Args:
            event (CheckInEvent): Confirmed check-in
            channel (Optional[str]): Overrides the configured channel

        Returns:
            DispatchResult: Result of the notification

        Raises:
            ConfigurationError: If the selected collaborator is not configured
            CollaboratorError: If the notification failed; call again to retry
        """
        channel = check_channel(channel or self.channel)
        self.logger.info(f"Finalizing check-in of {event.record.id} via {channel}")

        if channel == CHANNEL_WEBHOOK:
            return self._post_to_webhook(event)
        return self.send_confirmation(event.to_notification())

    def send_confirmation(self, notification: CheckInNotification) -> DispatchResult:
        """
        Email the host that their visitor has arrived.

        Raises:
            ConfigurationError: If no email service is configured
            CollaboratorError: If the email service rejected the message
        """
        if self.email_client is None:
            self.logger.error("Confirmation email requested but no email service is configured")
            raise ConfigurationError('Email service not configured')

        content = render_checkin_email(notification)
        message = {
            'from': self.from_email,
            'to': notification.host_email,
            'subject': content['subject'],
            'html': content['html'],
            'text': content['text'],
        }

        self.logger.info(f"Sending check-in confirmation to {notification.host_email}")
        message_id = unwrap_send_result(self.email_client.send(message),
                                        'Failed to send confirmation email')
        return DispatchResult(
            success=True,
            message='Confirmation email sent successfully',
            message_id=message_id,
            channel=CHANNEL_EMAIL
        )

    def _post_to_webhook(self, event: CheckInEvent) -> DispatchResult:
        if self.webhook_client is None:
            self.logger.error("Check-in webhook requested but CHECKIN_WEBHOOK_URL is not set")
            raise ConfigurationError('Check-in webhook URL not configured')

        try:
            self.webhook_client.post_form(event.to_webhook_form())
        except CollaboratorError as e:
            raise CollaboratorError('Failed to send check-in notification', details=e.details)

        return DispatchResult(
            success=True,
            message='Check-in sent to automation webhook',
            channel=CHANNEL_WEBHOOK
        )
