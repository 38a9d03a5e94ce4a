"""
Email Templates Module - Visitor Pass

HTML and plain-text bodies for the two emails the system sends: the visitor's
invitation carrying the QR code, and the host's check-in confirmation.
Templates are rendered with jinja2 and autoescaped, since every field comes
from a form or a scanned code.
"""

from typing import Dict

from jinja2 import Template

from visitor_pass.modules.visitor_record import CheckInNotification, VisitorRecord

SYSTEM_NAME = "QR Code Visitor System"
FOOTER_TAGLINE = "QR Code Visitor System • Secure • Professional • Efficient"

CHECKIN_STEPS = [
    "Save this email or take a screenshot of the QR code",
    "Arrive at the designated location",
    "Present your QR code to guest services",
    "Wait for confirmation - your host will be automatically notified",
]


def _get_invitation_html_template() -> str:
    """Get email template for the visitor invitation."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>Your Visitor QR Code</title>
    </head>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: #667eea; color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
            <h1 style="margin: 0; font-size: 28px;">🎫 Your Visitor QR Code</h1>
            <p style="margin: 10px 0 0 0; font-size: 16px;">Ready for your visit</p>
        </div>

        <div style="padding: 30px; border: 1px solid #e1e5e9; border-radius: 0 0 10px 10px;">
            <p>Hello <strong>{{ visitor.visitor_name }}</strong>,</p>
            <p>Your visitor QR code has been generated and is ready for your upcoming visit.
               Please save this email and present the QR code below when you arrive.</p>

            <div style="text-align: center; margin: 30px 0; padding: 30px; background: #f8f9fa; border: 2px dashed #dee2e6; border-radius: 10px;">
                <h3 style="margin-top: 0; color: #495057;">📱 Your QR Code</h3>
                <img src="{{ qr_code_data_url }}" alt="Visitor QR Code" style="max-width: 250px; height: auto; display: block; margin: 20px auto;" />
                <p style="color: #6c757d; font-size: 14px; margin-bottom: 0;">Show this QR code to guest services upon arrival</p>
            </div>

            <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
                <h4 style="margin-top: 0; color: #495057;">📋 Visit Details</h4>
                <p><strong>Visitor Name:</strong> {{ visitor.visitor_name }}</p>
                <p><strong>Company:</strong> {{ visitor.visitor_company }}</p>
                <p><strong>Purpose:</strong> {{ visitor.purpose }}</p>
                <p><strong>Host Contact:</strong> {{ visitor.host_email }}</p>
                {% if visitor.host_name %}<p><strong>Host:</strong> {{ visitor.host_name }}</p>{% endif %}
                {% if visitor.meeting_date %}<p><strong>Date:</strong> {{ visitor.meeting_date }}{% if visitor.meeting_time %} at {{ visitor.meeting_time }}{% endif %}</p>{% endif %}
            </div>

            <div style="background: #e7f3ff; border-left: 4px solid #007bff; padding: 20px; margin: 20px 0;">
                <h4 style="margin-top: 0; color: #007bff;">📍 Check-in Instructions</h4>
                <ol style="margin: 10px 0; padding-left: 20px;">
                {% for step in steps %}
                    <li>{{ step }}</li>
                {% endfor %}
                </ol>
            </div>

            <p style="color: #6c757d; font-size: 14px; margin-top: 30px;">
                <strong>Note:</strong> This QR code contains your visit information and should not be shared with others.
            </p>
        </div>

        <div style="text-align: center; margin-top: 30px; padding-top: 20px; border-top: 1px solid #e1e5e9; color: #6c757d; font-size: 14px;">
            <p>{{ tagline }}</p>
            <p style="font-size: 12px; margin-top: 10px;">This is an automated message. Please do not reply to this email.</p>
        </div>
    </body>
    </html>
    """


def _get_invitation_text_template() -> str:
    return """Your Visitor QR Code

Hello {{ visitor.visitor_name }},

Your visitor QR code has been generated for your upcoming visit.

Visit Details:
- Visitor Name: {{ visitor.visitor_name }}
- Company: {{ visitor.visitor_company }}
- Purpose: {{ visitor.purpose }}
- Host Contact: {{ visitor.host_email }}

Check-in Instructions:
{% for step in steps %}{{ loop.index }}. {{ step }}
{% endfor %}
Note: This QR code contains your visit information and should not be shared with others.

---
{{ tagline }}
This is an automated message. Please do not reply to this email.
"""


def _get_checkin_html_template() -> str:
    """Get email template for host check-in notifications."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>Visitor Check-In Notification</title>
    </head>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; margin: 0; padding: 20px; background-color: #f5f5f5;">
        <div style="max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; overflow: hidden;">
            <div style="background: #667eea; color: white; padding: 30px 20px; text-align: center;">
                <h1 style="margin: 0; font-size: 24px;">✅ Visitor Check-In Notification</h1>
                <p>Your visitor has successfully checked in</p>
            </div>

            <div style="padding: 30px 20px;">
                <div style="background: #d4edda; border: 1px solid #c3e6cb; color: #155724; padding: 15px; border-radius: 6px; margin-bottom: 20px;">
                    <strong>{{ notification.visitor_name }}</strong> from <strong>{{ notification.visitor_company }}</strong> has checked in to the building.
                </div>

                <div style="background: #f8f9fa; border-radius: 6px; padding: 20px; margin: 20px 0;">
                    <h3 style="margin-top: 0; color: #495057;">Visitor Details</h3>
                    <p><strong>Visitor Name:</strong> {{ notification.visitor_name }}</p>
                    <p><strong>Company:</strong> {{ notification.visitor_company }}</p>
                    <p><strong>Check-In Time:</strong> {{ checked_in_time }}</p>
                    <p><strong>Purpose of Visit:</strong> {{ notification.purpose }}</p>
                </div>

                {% if notification.identification_notes or notification.location_notes %}
                <div style="background: #fff3cd; border: 1px solid #ffeaa7; padding: 15px; border-radius: 6px; margin: 15px 0;">
                    <h4 style="margin-top: 0; color: #856404;">Additional Notes:</h4>
                    {% if notification.identification_notes %}<p><strong>Identification:</strong> {{ notification.identification_notes }}</p>{% endif %}
                    {% if notification.location_notes %}<p><strong>Location:</strong> {{ notification.location_notes }}</p>{% endif %}
                </div>
                {% endif %}

                <p style="color: #6c757d; font-size: 14px;">
                    This is an automated notification from the {{ system_name }}.
                    Your visitor has been successfully checked in and should now be able to proceed to your meeting location.
                </p>
            </div>

            <div style="background: #f8f9fa; padding: 20px; text-align: center; font-size: 12px; color: #6c757d;">
                <p>{{ tagline }}</p>
                <p>This email was sent automatically. Please do not reply to this message.</p>
            </div>
        </div>
    </body>
    </html>
    """


def _get_checkin_text_template() -> str:
    return """Visitor Check-In Notification

{{ notification.visitor_name }} from {{ notification.visitor_company }} has checked in to the building.

Visitor Details:
- Name: {{ notification.visitor_name }}
- Company: {{ notification.visitor_company }}
- Check-In Time: {{ checked_in_time }}
- Purpose: {{ notification.purpose }}
{% if notification.identification_notes %}
Identification Notes: {{ notification.identification_notes }}{% endif %}{% if notification.location_notes %}
Location Notes: {{ notification.location_notes }}{% endif %}

This is an automated notification from the {{ system_name }}.

---
{{ tagline }}
"""


def render_invitation_email(record: VisitorRecord, qr_code_data_url: str) -> Dict[str, str]:
    """
    Render the visitor invitation email.

    Args:
        record (VisitorRecord): Invitation being delivered
        qr_code_data_url (str): PNG data URL embedded inline in the HTML body

    Returns:
        Dict[str, str]: ``subject``, ``html`` and ``text``
    """
    context = {
        'visitor': record,
        'qr_code_data_url': qr_code_data_url,
        'steps': CHECKIN_STEPS,
        'tagline': FOOTER_TAGLINE,
    }
    return {
        'subject': f"Your Visitor QR Code - {record.purpose}",
        'html': Template(_get_invitation_html_template(), autoescape=True).render(**context),
        'text': Template(_get_invitation_text_template()).render(**context),
    }


def render_checkin_email(notification: CheckInNotification) -> Dict[str, str]:
    context = {
        'notification': notification,
        'checked_in_time': notification.checked_in_time,
        'system_name': SYSTEM_NAME,
        'tagline': FOOTER_TAGLINE,
    }
    return {
        'subject': f"Visitor Check-In Notification - {notification.visitor_name}",
        'html': Template(_get_checkin_html_template(), autoescape=True).render(**context),
        'text': Template(_get_checkin_text_template()).render(**context),
    }
