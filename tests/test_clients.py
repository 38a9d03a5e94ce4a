import base64

import pytest
import requests

from visitor_pass.modules.email_client import (
    ResendEmailClient,
    SMTPEmailClient,
    build_email_client,
    unwrap_send_result,
)
from visitor_pass.modules.exceptions import CollaboratorError
from visitor_pass.modules.webhook_client import WebhookClient


class FakeResponse:

    def __init__(self, status_code, body=None, text=''):
        self.status_code = status_code
        self.body = body
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.body is None:
            raise ValueError('No JSON body')
        return self.body


class FakeSession:

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


MESSAGE = {
    'from': 'invites@example.com',
    'to': 'ada@example.com',
    'subject': 'Your Visitor QR Code - Quarterly review',
    'html': '<p>Hello</p>',
    'text': 'Hello',
    'attachments': [{'filename': 'visitor-qr-code.png',
                     'content': base64.b64encode(b'png-bytes').decode('ascii')}],
}


def test_resend_success():
    session = FakeSession(FakeResponse(200, {'id': 'email-123'}))
    client = ResendEmailClient('re_test_key', session=session, timeout=5)

    assert client.send(MESSAGE) == {'data': {'id': 'email-123'}}

    url, kwargs = session.calls[0]
    assert url == 'https://api.resend.com/emails'
    assert kwargs['json'] == MESSAGE
    assert kwargs['headers']['Authorization'] == 'Bearer re_test_key'
    assert kwargs['timeout'] == 5


def test_resend_api_error():
    session = FakeSession(FakeResponse(422, {'name': 'validation_error',
                                             'message': 'Invalid `from` field.'}))
    result = ResendEmailClient('re_test_key', session=session).send(MESSAGE)

    assert result['error']['message'] == 'Invalid `from` field.'
    assert result['error']['statusCode'] == 422


def test_resend_transport_error():
    session = FakeSession(error=requests.ConnectionError('connection refused'))
    result = ResendEmailClient('re_test_key', session=session).send(MESSAGE)

    assert 'connection refused' in result['error']['message']


def test_unwrap_send_result():
    assert unwrap_send_result({'data': {'id': 'email-1'}}, 'Failed') == 'email-1'

    with pytest.raises(CollaboratorError) as excinfo:
        unwrap_send_result({'error': {'message': 'quota exceeded'}}, 'Failed to send')
    assert excinfo.value.to_dict() == {'error': 'Failed to send', 'details': 'quota exceeded'}


def test_smtp_message_carries_both_bodies_and_attachment():
    client = SMTPEmailClient('smtp.example.com')

    msg = client._build_message(MESSAGE)

    assert msg['To'] == 'ada@example.com'
    assert msg['Message-ID']
    parts = [part.get_content_type() for part in msg.walk()]
    assert 'text/plain' in parts
    assert 'text/html' in parts
    attachment = [part for part in msg.walk() if part.get_filename()][0]
    assert attachment.get_filename() == 'visitor-qr-code.png'
    assert attachment.get_payload(decode=True) == b'png-bytes'


def test_build_email_client():
    assert build_email_client({'EMAIL_BACKEND': 'resend', 'RESEND_API_KEY': None}) is None
    assert isinstance(build_email_client({'EMAIL_BACKEND': 'resend', 'RESEND_API_KEY': 're_x'}),
                      ResendEmailClient)
    assert build_email_client({'EMAIL_BACKEND': 'smtp'}) is None
    assert isinstance(build_email_client({'EMAIL_BACKEND': 'smtp', 'MAIL_SERVER': 'localhost'}),
                      SMTPEmailClient)


def test_webhook_posts_form_fields():
    session = FakeSession(FakeResponse(200))
    client = WebhookClient('https://hooks.example.com/catch/1', timeout=3, session=session)

    assert client.post_form({'action': 'visitor_checked_in'}) == 200

    url, kwargs = session.calls[0]
    assert url == 'https://hooks.example.com/catch/1'
    assert kwargs['data'] == {'action': 'visitor_checked_in'}
    assert kwargs['timeout'] == 3


def test_webhook_non_2xx_is_a_failure():
    client = WebhookClient('https://hooks.example.com/catch/1',
                           session=FakeSession(FakeResponse(404)))

    with pytest.raises(CollaboratorError) as excinfo:
        client.post_form({'action': 'visitor_checked_in'})

    assert excinfo.value.details == 'Webhook failed with status: 404'


def test_webhook_transport_error():
    client = WebhookClient('https://hooks.example.com/catch/1',
                           session=FakeSession(error=requests.Timeout('timed out')))

    with pytest.raises(CollaboratorError) as excinfo:
        client.post_form({})

    assert 'timed out' in excinfo.value.details
