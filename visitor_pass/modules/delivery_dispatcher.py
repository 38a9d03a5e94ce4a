"""
Delivery Dispatcher Module - Visitor Pass

Delivers a freshly generated invitation to the visitor, either as an email
carrying the QR code (inline and as an attachment) or as a multipart post to
the QR issuance automation webhook.

Sends are suppressed for the same visitor and invitation while the duplicate
window is open. The window only starts once a collaborator has accepted the
message, so a failed attempt can be retried straight away.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from visitor_pass.modules.duplicate_cache import DuplicateSuppressionCache
from visitor_pass.modules.email_client import unwrap_send_result
from visitor_pass.modules.email_templates import render_invitation_email
from visitor_pass.modules.exceptions import ConfigurationError, ValidationError
from visitor_pass.modules.qr_generator import png_to_data_url
from visitor_pass.modules.visitor_record import VisitorRecord, utc_now_iso

CHANNEL_EMAIL = 'email'
CHANNEL_WEBHOOK = 'webhook'
CHANNELS = (CHANNEL_EMAIL, CHANNEL_WEBHOOK)

QR_ATTACHMENT_FILENAME = 'visitor-qr-code.png'
INVITED_ACTION = 'visitor_invited'


@dataclass
class DispatchResult:
    """Outcome of a single delivery attempt."""
    success: bool
    message: str
    duplicate: bool = False
    message_id: Optional[str] = None
    channel: str = CHANNEL_EMAIL

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'success': self.success,
            'message': self.message,
            'channel': self.channel,
        }
        if self.duplicate:
            body['duplicate'] = True
        if self.message_id:
            body['messageId'] = self.message_id
        return body


def check_channel(channel: str) -> str:
    channel = (channel or CHANNEL_EMAIL).strip().lower()
    if channel not in CHANNELS:
        raise ValidationError('Invalid delivery channel',
                              details=f"Channel must be one of: {', '.join(CHANNELS)}")
    return channel


class DeliveryDispatcher:
    """
    Sends invitations through the configured collaborator.
    """

    def __init__(self, email_client=None, webhook_client=None,
                 cache: Optional[DuplicateSuppressionCache] = None,
                 from_email: str = 'onboarding@resend.dev'):
        """
        Initialize the dispatcher.

        Args:
            email_client: Object with ``send(message) -> dict``, or None when email is not configured
            webhook_client: ``WebhookClient`` for the QR issuance hook, or None
            cache (DuplicateSuppressionCache): Shared duplicate window
            from_email (str): Sender address for invitation emails
        """
        self.email_client = email_client
        self.webhook_client = webhook_client
        self.cache = cache if cache is not None else DuplicateSuppressionCache()
        self.from_email = from_email
        self.logger = logging.getLogger(__name__)

    def dispatch_invitation(self, record: VisitorRecord, qr_png: bytes,
                            channel: str = CHANNEL_EMAIL) -> DispatchResult:
        """
        Deliver an invitation once per duplicate window.

        Args:
            record (VisitorRecord): Invitation to deliver; must carry a visitor email
            qr_png (bytes): Rendered QR code
            channel (str): ``email`` or ``webhook``

        Returns:
            DispatchResult: ``duplicate=True`` when the send was suppressed

        Raises:
            ValidationError: If the record has no visitor email or the channel is unknown
            ConfigurationError: If the selected collaborator is not configured
            CollaboratorError: If the collaborator rejected the message
        """
        channel = check_channel(channel)
        if not record.visitor_email:
            raise ValidationError('Invalid visitor data',
                                  details='Missing required field(s): visitorEmail')

        key = record.dedup_key
        if self.cache.is_recent(key):
            elapsed = self.cache.seconds_since(key)
            self.logger.info(f"Duplicate invitation blocked for {record.visitor_email} "
                             f"(sent {round(elapsed)}s ago)")
            return DispatchResult(
                success=True,
                duplicate=True,
                message='Email already sent recently',
                channel=channel
            )

        if channel == CHANNEL_WEBHOOK:
            result = self._post_to_webhook(record, qr_png)
        else:
            result = self._send_email(record, qr_png)

        self.cache.mark(key)
        return result

    def _send_email(self, record: VisitorRecord, qr_png: bytes) -> DispatchResult:
        if self.email_client is None:
            raise ConfigurationError('Email service not configured')

        content = render_invitation_email(record, png_to_data_url(qr_png))
        message = {
            'from': self.from_email,
            'to': record.visitor_email,
            'subject': content['subject'],
            'html': content['html'],
            'text': content['text'],
            'attachments': [{
                'filename': QR_ATTACHMENT_FILENAME,
                'content': base64.b64encode(qr_png).decode('ascii'),
            }],
        }

        self.logger.info(f"Sending invitation {record.id} to {record.visitor_email}")
        message_id = unwrap_send_result(self.email_client.send(message),
                                        'Failed to send QR code email')
        self.logger.info(f"Invitation {record.id} sent, message id {message_id}")
        return DispatchResult(
            success=True,
            message='QR code sent successfully to visitor',
            message_id=message_id,
            channel=CHANNEL_EMAIL
        )

    def _post_to_webhook(self, record: VisitorRecord, qr_png: bytes) -> DispatchResult:
        if self.webhook_client is None:
            raise ConfigurationError('QR code webhook URL not configured')

        fields = record.to_payload()
        fields['visitorId'] = record.id
        fields['action'] = INVITED_ACTION
        fields['timestamp'] = utc_now_iso()
        files = {'qrCode': (QR_ATTACHMENT_FILENAME, qr_png, 'image/png')}

        self.webhook_client.post_form(fields, files=files)
        self.logger.info(f"Invitation {record.id} forwarded to the QR code webhook")
        return DispatchResult(
            success=True,
            message='QR code forwarded to automation webhook',
            channel=CHANNEL_WEBHOOK
        )
