"""
Visitor Pass - Main Application

This module serves as the main entry point for the Flask visitor pass system.
It handles application initialization, configuration, and routes coordination.
A host creates an invitation, the visitor receives a QR code by email, and the
front desk scans that code to check the visitor in and notify the host.

Features:
- Invitation form with per-field validation
- QR code generation and delivery by email or automation webhook
- Duplicate suppression for repeated invitation sends
- QR code scanning from uploaded frames or a desk camera (CLI)
- Host notification on check-in with manual retry
"""

from flask import Flask, render_template, request, jsonify, redirect, url_for, flash
import json
import logging

import click

from config import get_config, validate_config, missing_collaborators
from visitor_pass import __version__
from visitor_pass.modules.checkin_finalizer import CheckInFinalizer
from visitor_pass.modules.checkpoint_scanner import CheckpointScanner, QRReader
from visitor_pass.modules.delivery_dispatcher import (
    CHANNELS,
    CHANNEL_EMAIL,
    DeliveryDispatcher,
    check_channel,
)
from visitor_pass.modules.duplicate_cache import DuplicateSuppressionCache
from visitor_pass.modules.email_client import build_email_client
from visitor_pass.modules.exceptions import (
    CameraPermissionError,
    CollaboratorError,
    ConfigurationError,
    ScanError,
    ValidationError,
    VisitorPassError,
)
from visitor_pass.modules.invitation_composer import InvitationComposer
from visitor_pass.modules.qr_generator import QRGenerator, data_url_to_png, is_png_data_url
from visitor_pass.modules.visitor_record import (
    INVITATION_FIELDS,
    CheckInNotification,
    VisitorRecord,
)
from visitor_pass.modules.webhook_client import WebhookClient

# Initialize Flask application
app = Flask(__name__, template_folder='visitor_pass/templates')
app_config = get_config()
app.config.from_object(app_config)
app_config.init_app(app)

# Configure logging
logging.basicConfig(
    level=getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO),
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

config_errors = validate_config(app_config)
if config_errors:
    for error in config_errors:
        logger.error(f"Configuration error: {error}")
    raise RuntimeError("Configuration validation failed")

for warning in missing_collaborators(app_config):
    logger.warning(f"Configuration warning: {warning}")


def _webhook_client(url):
    if not url:
        return None
    return WebhookClient(url, timeout=app.config['HTTP_TIMEOUT'])


# Initialize system components
email_client = build_email_client(app.config)
duplicate_cache = DuplicateSuppressionCache(ttl_seconds=app.config['DUPLICATE_WINDOW_SECONDS'])
composer = InvitationComposer()
qr_generator = QRGenerator(
    error_correction=app.config['QR_CODE_ERROR_CORRECT'],
    size=app.config['QR_CODE_SIZE'],
    margin=app.config['QR_CODE_MARGIN'],
    fill_color=app.config['QR_CODE_FILL_COLOR'],
    back_color=app.config['QR_CODE_BACK_COLOR']
)
dispatcher = DeliveryDispatcher(
    email_client=email_client,
    webhook_client=_webhook_client(app.config['QR_WEBHOOK_URL']),
    cache=duplicate_cache,
    from_email=app.config['INVITATION_FROM_EMAIL']
)
finalizer = CheckInFinalizer(
    email_client=email_client,
    webhook_client=_webhook_client(app.config['CHECKIN_WEBHOOK_URL']),
    from_email=app.config['CONFIRMATION_FROM_EMAIL'],
    channel=app.config['CHECKIN_CHANNEL']
)
scanner = CheckpointScanner(
    reader=QRReader(),
    fps=app.config['SCANNER_FPS'],
    detection_box=app.config['SCANNER_DETECTION_BOX'],
    timeout=app.config['SCANNER_TIMEOUT_SECONDS'],
    camera_index=app.config['CAMERA_INDEX']
)


def _request_data():
    """JSON body or submitted form, as a plain dict."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _deliver(record, qr_image, channel):
    """Dispatch an invitation and report the outcome instead of raising."""
    try:
        result = dispatcher.dispatch_invitation(record, qr_image.png_bytes, channel=channel)
        return result.to_dict()
    except VisitorPassError as e:
        logger.error(f"Invitation delivery failed for {record.id}: {e.message} ({e.details})")
        return dict(e.to_dict(), success=False, channel=channel)
    except Exception as e:
        logger.error(f"Invitation delivery error for {record.id}: {str(e)}")
        return {
            'success': False,
            'channel': channel,
            'error': 'Failed to send QR code email',
            'details': str(e)
        }


def _parse_visitor_json(text):
    try:
        return json.loads(text or '')
    except ValueError:
        raise ValidationError('Invalid visitor data', details='Visitor data is not valid JSON')


@app.errorhandler(VisitorPassError)
def handle_visitor_pass_error(error):
    logger.error(f"Unhandled {type(error).__name__}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@app.route('/')
def index():
    """Main landing page"""
    return render_template('index.html')


@app.route('/create', methods=['GET', 'POST'])
def create_invitation():
    """Invitation form; shows the generated QR code after a valid submission"""
    if request.method == 'GET':
        return render_template('create.html', form={}, errors={})

    form = request.form.to_dict()
    try:
        channel = check_channel(form.get('channel') or app.config['INVITATION_CHANNEL'])
        if form.get('action') == 'resend':
            record = VisitorRecord.from_payload(_parse_visitor_json(form.get('visitorData')),
                                                required=INVITATION_FIELDS)
        else:
            record = composer.compose(form)
        qr_image = qr_generator.generate(record)
    except ValidationError as e:
        if not e.fields:
            flash(f"{e.message}: {e.details}" if e.details else e.message, 'error')
        return render_template('create.html', form=form, errors=e.fields), 400
    except Exception as e:
        logger.error(f"Invitation form error: {str(e)}")
        flash('An error occurred while creating the invitation.', 'error')
        return render_template('create.html', form=form, errors={}), 500

    delivery = _deliver(record, qr_image, channel)
    if delivery['success']:
        flash(delivery['message'], 'success')
    else:
        flash(f"{delivery['error']}: {delivery.get('details', '')}", 'error')

    return render_template(
        'create.html',
        form={},
        errors={},
        visitor=record,
        visitor_json=record.to_json(),
        qr_image=qr_image,
        delivery=delivery,
        channel=channel
    )


@app.route('/checkin', methods=['GET', 'POST'])
def checkin_page():
    """Front desk page: scan an uploaded frame, then confirm the check-in"""
    if request.method == 'GET':
        return render_template('checkin.html')

    action = request.form.get('action', 'scan')
    try:
        if action == 'scan':
            upload = request.files.get('image')
            if upload and upload.filename:
                record = scanner.scan_image(upload.read())
            else:
                record = scanner.scan_text(request.form.get('qrData', ''))
            return render_template('checkin.html', visitor=record,
                                   visitor_json=record.to_json())

        record = VisitorRecord.from_payload(_parse_visitor_json(request.form.get('visitorData')))
        event = finalizer.create_event(
            record,
            identification_notes=request.form.get('identificationNotes'),
            location_notes=request.form.get('locationNotes'),
            checked_in_by=request.form.get('checkedInBy'),
            checked_in_at=request.form.get('checkedInAt') or None
        )
    except ValidationError as e:
        flash(f"{e.message}: {e.details}" if e.details else e.message, 'error')
        return render_template('checkin.html'), 400

    try:
        result = finalizer.finalize(event, channel=request.form.get('channel') or None)
    except VisitorPassError as e:
        logger.error(f"Check-in notification failed for {record.id}: {e.details or e.message}")
        flash(f"{e.message}: {e.details}" if e.details else e.message, 'error')
        return render_template('checkin.html', visitor=record, visitor_json=record.to_json(),
                               event=event, failed=True), e.status_code

    flash(f"{record.visitor_name} checked in. {result.message}", 'success')
    return redirect(url_for('checkin_page'))


@app.route('/api/invitations', methods=['POST'])
def create_invitation_api():
    """Validate an invitation, render its QR code and deliver it"""
    data = _request_data()
    try:
        channel = check_channel(data.get('channel') or app.config['INVITATION_CHANNEL'])
        record = composer.compose(data)
        qr_image = qr_generator.generate(record)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception as e:
        logger.error(f"Invitation creation error: {str(e)}")
        return jsonify({'error': 'An error occurred while creating the invitation'}), 500

    delivery = _deliver(record, qr_image, channel)
    return jsonify({
        'success': True,
        'visitor': record.to_payload(),
        'qrCodeDataUrl': qr_image.data_url,
        'delivery': delivery
    }), 201


@app.route('/api/invitations/resend', methods=['POST'])
def resend_invitation():
    """Manual retry of an invitation delivery"""
    data = _request_data()
    try:
        channel = check_channel(data.get('channel') or app.config['INVITATION_CHANNEL'])
        record = VisitorRecord.from_payload(data.get('visitorData'), required=INVITATION_FIELDS)
        qr_image = qr_generator.generate(record)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception as e:
        logger.error(f"Invitation resend error: {str(e)}")
        return jsonify({'error': 'An error occurred while resending the invitation'}), 500

    delivery = _deliver(record, qr_image, channel)
    return jsonify({
        'success': delivery['success'],
        'visitor': record.to_payload(),
        'qrCodeDataUrl': qr_image.data_url,
        'delivery': delivery
    })


@app.route('/api/send-qr-code', methods=['POST'])
def send_qr_code():
    """Email a visitor their QR code"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    visitor_data = data.get('visitorData')
    qr_code_data_url = data.get('qrCodeDataUrl')

    if not visitor_data or not qr_code_data_url:
        return jsonify({'error': 'Visitor data and QR code are required'}), 400

    if not is_png_data_url(qr_code_data_url):
        return jsonify({'error': 'Invalid QR code format'}), 400

    try:
        record = VisitorRecord.from_payload(visitor_data, required=INVITATION_FIELDS)
        qr_png = data_url_to_png(qr_code_data_url)
        result = dispatcher.dispatch_invitation(record, qr_png, channel=CHANNEL_EMAIL)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except (ConfigurationError, CollaboratorError) as e:
        logger.error(f"QR code email failed: {e.message} ({e.details})")
        return jsonify({
            'error': 'Failed to send QR code email',
            'details': e.details or e.message
        }), 500
    except Exception as e:
        logger.error(f"QR code email error: {str(e)}")
        return jsonify({
            'error': 'Failed to send QR code email',
            'details': str(e)
        }), 500

    if result.duplicate:
        return jsonify({
            'success': True,
            'message': result.message,
            'duplicate': True
        })

    return jsonify({
        'success': True,
        'messageId': result.message_id,
        'message': result.message
    })


@app.route('/api/send-confirmation', methods=['POST'])
def send_confirmation():
    """Email the host that their visitor has checked in"""
    try:
        notification = CheckInNotification.from_request(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        result = finalizer.send_confirmation(notification)
    except ConfigurationError as e:
        return jsonify(e.to_dict()), 500
    except CollaboratorError as e:
        logger.error(f"Confirmation email failed: {e.details}")
        return jsonify(e.to_dict()), 500
    except Exception as e:
        logger.error(f"Confirmation email error: {str(e)}")
        return jsonify({
            'error': 'Failed to send confirmation email',
            'details': str(e)
        }), 500

    return jsonify({
        'success': True,
        'message': result.message,
        'emailId': result.message_id
    })


@app.route('/api/scan', methods=['POST'])
def process_scan():
    """Decode a visitor QR code from an uploaded frame or already-decoded text"""
    try:
        upload = request.files.get('image')
        if upload is not None:
            record = scanner.scan_image(upload.read())
        else:
            data = request.get_json(silent=True)
            qr_data = data.get('qrData') if isinstance(data, dict) else None
            record = scanner.scan_text(qr_data)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception as e:
        logger.error(f"Scan processing error: {str(e)}")
        return jsonify({'error': 'An error occurred while processing the scan'}), 500

    return jsonify({
        'success': True,
        'visitor': record.to_payload()
    })


@app.route('/api/checkin', methods=['POST'])
def process_checkin():
    """Confirm a scanned visitor and notify the host"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    try:
        record = VisitorRecord.from_payload(data.get('visitorData'))
        event = finalizer.create_event(
            record,
            identification_notes=data.get('identificationNotes'),
            location_notes=data.get('locationNotes'),
            checked_in_by=data.get('checkedInBy'),
            checked_in_at=data.get('checkedInAt') or None
        )
        result = finalizer.finalize(event, channel=data.get('channel') or None)
    except VisitorPassError as e:
        if e.status_code >= 500:
            logger.error(f"Check-in failed: {e.message} ({e.details})")
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Check-in error: {str(e)}")
        return jsonify({
            'error': 'Failed to complete check-in',
            'details': str(e)
        }), 500

    body = result.to_dict()
    body['checkedInAt'] = event.checked_in_at
    body['visitor'] = record.to_payload()
    return jsonify(body)


@app.route('/api/health')
def health():
    """Service status and which collaborators are configured"""
    return jsonify({
        'status': 'healthy',
        'version': __version__,
        'emailBackend': app.config['EMAIL_BACKEND'],
        'emailConfigured': email_client is not None,
        'qrWebhookConfigured': dispatcher.webhook_client is not None,
        'checkinWebhookConfigured': finalizer.webhook_client is not None,
        'invitationChannel': app.config['INVITATION_CHANNEL'],
        'checkinChannel': finalizer.channel,
        'qrCode': qr_generator.describe()
    })


@app.cli.command('scan-desk')
@click.option('--channel', type=click.Choice(CHANNELS), default=None,
              help='Notify the host by email or through the check-in webhook.')
@click.option('--camera', 'camera_index', type=int, default=None,
              help='Capture device index.')
@click.option('--timeout', type=float, default=None,
              help='Give up after this many seconds without a code.')
def scan_desk(channel, camera_index, timeout):
    """Scan one visitor QR code with the desk camera and check the visitor in."""
    desk_scanner = CheckpointScanner(
        reader=scanner.reader,
        fps=app.config['SCANNER_FPS'],
        detection_box=app.config['SCANNER_DETECTION_BOX'],
        timeout=timeout,
        camera_index=app.config['CAMERA_INDEX'] if camera_index is None else camera_index
    )

    click.echo('Hold the visitor QR code up to the camera (Ctrl+C to stop)...')
    try:
        record = desk_scanner.scan()
    except CameraPermissionError as e:
        raise click.ClickException(f"{e.message} ({e.details})")
    except ScanError as e:
        raise click.ClickException(f"{e.message}: {e.details}")
    except KeyboardInterrupt:
        click.echo('\nScanner stopped.')
        return

    if record is None:
        click.echo('No QR code scanned.')
        return

    click.echo(f"Visitor: {record.visitor_name} ({record.visitor_company or 'no company'})")
    click.echo(f"Purpose: {record.purpose}")
    click.echo(f"Host:    {record.host_email}")
    if not click.confirm('Check this visitor in?', default=True):
        return

    event = finalizer.create_event(
        record,
        identification_notes=click.prompt('Identification notes', default='', show_default=False),
        location_notes=click.prompt('Location notes', default='', show_default=False),
        checked_in_by=click.prompt('Checked in by', default='', show_default=False)
    )

    while True:
        try:
            result = finalizer.finalize(event, channel=channel)
        except ConfigurationError as e:
            raise click.ClickException(e.message)
        except CollaboratorError as e:
            click.echo(f"{e.message}: {e.details}", err=True)
            if not click.confirm('Retry?', default=True):
                raise click.ClickException('Host was not notified')
            continue
        click.echo(result.message)
        return


if __name__ == '__main__':
    # Run the application
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=5000)
