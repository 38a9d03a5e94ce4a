# Visitor Pass - App Package
"""
Main application package for the QR Code Visitor System.
This package contains the business modules and the page templates used by the Flask application.
"""

__version__ = "1.0.0"
__author__ = "Visitor Pass Team"
__description__ = "A Flask-based visitor management system that issues and scans QR code invitations"

# Import core components for easy access
from .modules.invitation_composer import InvitationComposer
from .modules.qr_generator import QRGenerator
from .modules.delivery_dispatcher import DeliveryDispatcher
from .modules.checkpoint_scanner import CheckpointScanner
from .modules.checkin_finalizer import CheckInFinalizer
from .modules.duplicate_cache import DuplicateSuppressionCache
from .modules.visitor_record import VisitorRecord, CheckInEvent

__all__ = [
    'InvitationComposer',
    'QRGenerator',
    'DeliveryDispatcher',
    'CheckpointScanner',
    'CheckInFinalizer',
    'DuplicateSuppressionCache',
    'VisitorRecord',
    'CheckInEvent'
]
