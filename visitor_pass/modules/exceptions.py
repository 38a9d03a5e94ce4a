"""
Error types shared by the visitor pass modules.

Each error carries the HTTP status the web layer should answer with and an
optional ``details`` string that is passed back to the client verbatim.
"""

from typing import Dict, Optional


class VisitorPassError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None,
                 status_code: Optional[int] = None):
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {'error': self.message}
        if self.details:
            body['details'] = self.details
        return body


class ValidationError(VisitorPassError):
    """Bad form input or a malformed QR payload. Never reaches a collaborator."""

    status_code = 400

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None,
                 details: Optional[str] = None):
        super().__init__(message, details=details)
        self.fields = fields or {}

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.fields:
            body['fields'] = self.fields
        return body


class ScanError(ValidationError):
    """Decoded QR text that is not a usable visitor payload."""


class EncodingError(ValidationError):
    """The QR encoder could not render the payload."""


class ConfigurationError(VisitorPassError):
    status_code = 500


class CollaboratorError(VisitorPassError):
    """An email or webhook call failed; the operator may retry by hand."""

    status_code = 500


class CameraPermissionError(VisitorPassError):
    status_code = 403

    INSTRUCTIONS = ("Camera permission is required to scan QR codes. "
                    "Please allow camera access and try again.")

    def __init__(self, details: Optional[str] = None):
        super().__init__(self.INSTRUCTIONS, details=details)
