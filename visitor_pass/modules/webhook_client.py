"""
Automation webhook collaborator.

The receiving end is an operator-configured URL (a Zapier-style catch hook).
Any 2xx status counts as delivered; no response body is expected.
"""

import logging
from typing import Dict, Optional

import requests

from visitor_pass.modules.exceptions import CollaboratorError


class WebhookClient:
    """Posts form data to the check-in automation webhook."""

    def __init__(self, url: str, timeout: float = 10, session: requests.Session = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def post_form(self, fields: Dict[str, str],
                  files: Optional[Dict[str, tuple]] = None) -> int:
        """
        POST form fields (multipart when ``files`` is given).

        Returns:
            int: HTTP status code of the accepted request

        Raises:
            CollaboratorError: On a transport failure or a non-2xx response
        """
        return self._post(data=fields, files=files)

    def _post(self, **kwargs) -> int:
        try:
            response = self.session.post(self.url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            self.logger.error(f"Webhook request failed: {str(e)}")
            raise CollaboratorError('Webhook request failed', details=str(e))

        if not 200 <= response.status_code < 300:
            self.logger.error(f"Webhook answered with status {response.status_code}")
            raise CollaboratorError('Webhook request failed',
                                    details=f'Webhook failed with status: {response.status_code}')

        self.logger.info(f"Webhook accepted request with status {response.status_code}")
        return response.status_code
