import base64
import dataclasses

import pytest

from conftest import FakeEmailClient, FakeWebhookClient
from visitor_pass.modules.delivery_dispatcher import DeliveryDispatcher
from visitor_pass.modules.exceptions import (
    CollaboratorError,
    ConfigurationError,
    ValidationError,
)

PNG = b'\x89PNG\r\n\x1a\nfake-qr'


def test_email_delivery(dispatcher, email_client, cache, record):
    result = dispatcher.dispatch_invitation(record, PNG)

    assert result.success and not result.duplicate
    assert result.message == 'QR code sent successfully to visitor'
    assert result.message_id == 'email-1'

    message = email_client.sent[0]
    assert message['from'] == 'invites@example.com'
    assert message['to'] == 'ada@example.com'
    assert message['subject'] == 'Your Visitor QR Code - Quarterly review'
    assert message['attachments'] == [{
        'filename': 'visitor-qr-code.png',
        'content': base64.b64encode(PNG).decode('ascii'),
    }]
    assert 'data:image/png;base64,' in message['html']
    assert 'Ada Lovelace' in message['text']
    assert cache.is_recent(record.dedup_key)


def test_second_send_within_window_is_suppressed(dispatcher, email_client, record):
    dispatcher.dispatch_invitation(record, PNG)
    result = dispatcher.dispatch_invitation(record, PNG)

    assert result.success and result.duplicate
    assert result.message == 'Email already sent recently'
    assert result.to_dict()['duplicate'] is True
    assert len(email_client.sent) == 1


def test_send_allowed_again_after_window(dispatcher, email_client, clock, record):
    dispatcher.dispatch_invitation(record, PNG)
    clock.advance(61)

    result = dispatcher.dispatch_invitation(record, PNG)

    assert not result.duplicate
    assert len(email_client.sent) == 2


def test_other_invitation_for_same_visitor_is_not_suppressed(dispatcher, email_client, record):
    dispatcher.dispatch_invitation(record, PNG)
    dispatcher.dispatch_invitation(dataclasses.replace(record, id='visitor-2'), PNG)

    assert len(email_client.sent) == 2


def test_failed_send_leaves_window_closed(cache, record):
    email_client = FakeEmailClient(failures=1)
    dispatcher = DeliveryDispatcher(email_client, None, cache)

    with pytest.raises(CollaboratorError) as excinfo:
        dispatcher.dispatch_invitation(record, PNG)

    assert excinfo.value.to_dict() == {
        'error': 'Failed to send QR code email',
        'details': 'Resend API Error: invalid from address',
    }
    assert not cache.is_recent(record.dedup_key)

    result = dispatcher.dispatch_invitation(record, PNG)
    assert result.success and not result.duplicate
    assert len(email_client.sent) == 2


def test_email_not_configured(cache, record):
    dispatcher = DeliveryDispatcher(None, None, cache)

    with pytest.raises(ConfigurationError):
        dispatcher.dispatch_invitation(record, PNG)
    assert len(cache) == 0


def test_webhook_delivery(dispatcher, webhook_client, email_client, record):
    result = dispatcher.dispatch_invitation(record, PNG, channel='webhook')

    assert result.success and result.channel == 'webhook'
    assert email_client.sent == []

    fields, files = webhook_client.posts[0]
    assert fields['action'] == 'visitor_invited'
    assert fields['visitorId'] == record.id
    assert fields['visitorEmail'] == 'ada@example.com'
    assert files == {'qrCode': ('visitor-qr-code.png', PNG, 'image/png')}


def test_webhook_failure_leaves_window_closed(cache, record):
    dispatcher = DeliveryDispatcher(None, FakeWebhookClient(statuses=[502]), cache)

    with pytest.raises(CollaboratorError) as excinfo:
        dispatcher.dispatch_invitation(record, PNG, channel='webhook')

    assert excinfo.value.details == 'Webhook failed with status: 502'
    assert len(cache) == 0


def test_webhook_not_configured(cache, record):
    dispatcher = DeliveryDispatcher(FakeEmailClient(), None, cache)

    with pytest.raises(ConfigurationError):
        dispatcher.dispatch_invitation(record, PNG, channel='webhook')


def test_requires_visitor_email(dispatcher, email_client, record):
    with pytest.raises(ValidationError):
        dispatcher.dispatch_invitation(dataclasses.replace(record, visitor_email=''), PNG)
    assert email_client.sent == []


def test_rejects_unknown_channel(dispatcher, record):
    with pytest.raises(ValidationError):
        dispatcher.dispatch_invitation(record, PNG, channel='sms')
