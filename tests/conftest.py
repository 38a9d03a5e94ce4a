import os

os.environ['FLASK_ENV'] = 'testing'

import numpy as np
import pytest

from visitor_pass.modules.checkin_finalizer import CheckInFinalizer
from visitor_pass.modules.delivery_dispatcher import DeliveryDispatcher
from visitor_pass.modules.duplicate_cache import DuplicateSuppressionCache
from visitor_pass.modules.exceptions import CameraPermissionError, CollaboratorError
from visitor_pass.modules.visitor_record import VisitorRecord


class FakeEmailClient:
    """Records messages; fails the first ``failures`` sends with ``error``."""

    def __init__(self, failures=0, error='Resend API Error: invalid from address'):
        self.sent = []
        self.failures = failures
        self.error = error

    def send(self, message):
        self.sent.append(message)
        if self.failures > 0:
            self.failures -= 1
            return {'error': {'message': self.error, 'name': 'validation_error'}}
        return {'data': {'id': f'email-{len(self.sent)}'}}


class FakeWebhookClient:

    def __init__(self, statuses=None):
        self.posts = []
        self.statuses = list(statuses or [])

    def post_form(self, fields, files=None):
        self.posts.append((dict(fields), files))
        status = self.statuses.pop(0) if self.statuses else 200
        if not 200 <= status < 300:
            raise CollaboratorError('Webhook request failed',
                                    details=f'Webhook failed with status: {status}')
        return status


class FakeClock:

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeCamera:

    def __init__(self, frames=None, deny=False):
        self.frames = list(frames or [])
        self.deny = deny
        self.opened = False
        self.released = False

    def __enter__(self):
        if self.deny:
            raise CameraPermissionError(details='Camera access was denied')
        self.opened = True
        return self

    def read(self):
        if self.frames:
            return self.frames.pop(0)
        return None

    def __exit__(self, exc_type, exc, tb):
        self.released = True
        return False


class FakeReader:
    """Returns queued decode results, one per frame."""

    def __init__(self, results=None, on_decode=None):
        self.results = list(results or [])
        self.frames = []
        self.on_decode = on_decode

    def decode_frame(self, frame):
        self.frames.append(frame)
        if self.on_decode:
            self.on_decode()
        if self.results:
            return self.results.pop(0)
        return None

    def decode_image_bytes(self, data):
        return self.decode_frame(data)


def blank_frame(height=480, width=640):
    return np.zeros((height, width, 3), dtype=np.uint8)


@pytest.fixture
def record():
    return VisitorRecord(
        id='visitor-1738314900000-abc123xyz',
        visitor_name='Ada Lovelace',
        visitor_company='Analytical Engines',
        visitor_email='ada@example.com',
        purpose='Quarterly review',
        host_email='host@example.com',
        created_at='2025-01-31T09:15:00.000Z'
    )


@pytest.fixture
def invitation_form():
    return {
        'visitorName': '  Ada Lovelace ',
        'visitorCompany': 'Analytical Engines',
        'visitorEmail': 'ada@example.com',
        'purpose': 'Quarterly review',
        'hostEmail': 'host@example.com',
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return DuplicateSuppressionCache(ttl_seconds=60, clock=clock)


@pytest.fixture
def email_client():
    return FakeEmailClient()


@pytest.fixture
def webhook_client():
    return FakeWebhookClient()


@pytest.fixture
def dispatcher(email_client, webhook_client, cache):
    return DeliveryDispatcher(email_client, webhook_client, cache,
                              from_email='invites@example.com')


@pytest.fixture
def finalizer(email_client, webhook_client):
    return CheckInFinalizer(email_client, webhook_client,
                            from_email='desk@example.com', channel='email')


@pytest.fixture
def app_module(monkeypatch, dispatcher, finalizer):
    import app as app_module

    monkeypatch.setattr(app_module, 'dispatcher', dispatcher)
    monkeypatch.setattr(app_module, 'finalizer', finalizer)
    return app_module


@pytest.fixture
def client(app_module):
    return app_module.app.test_client()
