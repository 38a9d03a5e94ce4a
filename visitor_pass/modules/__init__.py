# Visitor Pass - Modules Package
"""
Core business logic modules for the QR Code Visitor System.
Contains the invitation, delivery, scanning and check-in modules.
"""

__version__ = "1.0.0"
__description__ = "Core modules for visitor pass functionality"

# Module descriptions
MODULES = {
    'visitor_record': 'Visitor record and check-in event data structures',
    'invitation_composer': 'Invitation form validation and record creation',
    'qr_generator': 'QR code rendering and data URL helpers',
    'delivery_dispatcher': 'Invitation delivery by email or webhook',
    'duplicate_cache': 'Duplicate-suppression window for invitation sends',
    'email_client': 'Resend and SMTP email delivery',
    'email_templates': 'Invitation and check-in email bodies',
    'webhook_client': 'Automation webhook requests',
    'checkpoint_scanner': 'Camera capture and QR code decoding',
    'checkin_finalizer': 'Check-in confirmation and host notification',
    'exceptions': 'Error types shared by all modules'
}

def get_module_info():
    """Get information about available modules"""
    return MODULES
