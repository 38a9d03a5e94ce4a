"""
Email Client Module - Visitor Pass

Email delivery collaborators. Both clients expose the same call:

    send({'from', 'to', 'subject', 'html', 'text', 'attachments'}) -> {'data': {'id': ...}} | {'error': {...}}

``attachments`` is a list of ``{'filename': str, 'content': <base64 str>}``.
Failures are reported in the ``error`` key; ``unwrap_send_result`` turns them
into a ``CollaboratorError``.
"""

import base64
import logging
import smtplib
import ssl
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Any, Dict

import requests

from visitor_pass.modules.exceptions import CollaboratorError

DEFAULT_RESEND_API_URL = 'https://api.resend.com/emails'


def unwrap_send_result(result: Dict[str, Any], error_message: str) -> str:
    """
    Return the message id of a send result.

    Raises:
        CollaboratorError: With the provider's message as details when the send failed
    """
    error = result.get('error')
    if error:
        details = error.get('message') if isinstance(error, dict) else str(error)
        raise CollaboratorError(error_message, details=details or 'Unknown error')
    return (result.get('data') or {}).get('id')


class ResendEmailClient:
    """Sends mail through the Resend HTTP API."""

    def __init__(self, api_key: str, api_url: str = DEFAULT_RESEND_API_URL,
                 timeout: float = 10, session: requests.Session = None):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def send(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send one email.

        Args:
            message (Dict[str, Any]): from, to, subject, html, text and optional attachments

        Returns:
            Dict[str, Any]: ``{'data': {'id': ...}}`` or ``{'error': {'message': ..., 'name': ...}}``
        """
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }
        try:
            response = self.session.post(self.api_url, json=message, headers=headers,
                                         timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(f"Resend request failed: {str(e)}")
            return {'error': {'message': str(e), 'name': 'request_error'}}

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok:
            message_text = body.get('message') or response.text or f'HTTP {response.status_code}'
            self.logger.error(f"Resend API error {response.status_code}: {message_text}")
            return {'error': {
                'message': message_text,
                'name': body.get('name', 'api_error'),
                'statusCode': response.status_code,
            }}

        return {'data': {'id': body.get('id')}}


class SMTPEmailClient:
    """Sends mail through an SMTP relay."""

    def __init__(self, smtp_server: str, smtp_port: int = 587, username: str = '',
                 password: str = '', use_tls: bool = True, timeout: float = 10):
        self.email_config = {
            'smtp_server': smtp_server,
            'smtp_port': smtp_port,
            'username': username,
            'password': password,
            'use_tls': use_tls,
        }
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def _build_message(self, message: Dict[str, Any]) -> MIMEMultipart:
        msg = MIMEMultipart('mixed')
        msg['From'] = message['from']
        msg['To'] = message['to']
        msg['Subject'] = message['subject']
        msg['Message-ID'] = make_msgid()

        body = MIMEMultipart('alternative')
        if message.get('text'):
            body.attach(MIMEText(message['text'], 'plain', 'utf-8'))
        if message.get('html'):
            body.attach(MIMEText(message['html'], 'html', 'utf-8'))
        msg.attach(body)

        for attachment in message.get('attachments') or []:
            part = MIMEBase('application', 'octet-stream')
            part.set_payload(base64.b64decode(attachment['content']))
            encoders.encode_base64(part)
            part.add_header('Content-Disposition', 'attachment',
                            filename=attachment['filename'])
            msg.attach(part)

        return msg

    def send(self, message: Dict[str, Any]) -> Dict[str, Any]:
        msg = self._build_message(message)
        try:
            with smtplib.SMTP(self.email_config['smtp_server'], self.email_config['smtp_port'],
                              timeout=self.timeout) as server:
                if self.email_config['use_tls']:
                    context = ssl.create_default_context()
                    server.starttls(context=context)

                if self.email_config['username']:
                    server.login(self.email_config['username'], self.email_config['password'])
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error(f"SMTP delivery to {message['to']} failed: {str(e)}")
            return {'error': {'message': str(e), 'name': type(e).__name__}}

        return {'data': {'id': msg['Message-ID']}}


def build_email_client(settings):
    """
    Create the email client selected by ``EMAIL_BACKEND``.

    Args:
        settings: Flask config (or any mapping) holding the email settings

    Returns:
        The configured client, or None when the selected backend lacks credentials
    """
    timeout = settings.get('HTTP_TIMEOUT', 10)
    backend = (settings.get('EMAIL_BACKEND') or 'resend').lower()

    if backend == 'smtp':
        if not settings.get('MAIL_SERVER'):
            return None
        return SMTPEmailClient(
            smtp_server=settings['MAIL_SERVER'],
            smtp_port=settings.get('MAIL_PORT', 587),
            username=settings.get('MAIL_USERNAME') or '',
            password=settings.get('MAIL_PASSWORD') or '',
            use_tls=settings.get('MAIL_USE_TLS', True),
            timeout=timeout
        )

    if not settings.get('RESEND_API_KEY'):
        return None
    return ResendEmailClient(
        api_key=settings['RESEND_API_KEY'],
        api_url=settings.get('RESEND_API_URL') or DEFAULT_RESEND_API_URL,
        timeout=timeout
    )
