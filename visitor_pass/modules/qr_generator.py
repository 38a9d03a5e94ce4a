"""
QR Code Generator Module - Visitor Pass

This module renders visitor invitations as QR code images. The QR code is the
only thing that carries an invitation from the host to the front desk, so the
payload is the record's compact JSON and the image is always a fixed square
PNG that mail clients and printers display consistently.

Features:
- Configurable error correction level, size, margin and colors
- Fixed pixel dimensions regardless of payload length
- Deterministic output for identical input and settings
- PNG data URL helpers for the HTTP API
"""

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass

import qrcode
from PIL import Image
from qrcode.exceptions import DataOverflowError

from visitor_pass.modules.exceptions import EncodingError, ValidationError
from visitor_pass.modules.visitor_record import VisitorRecord

PNG_DATA_URL_PREFIX = 'data:image/png;base64,'

ERROR_CORRECTION_LEVELS = {
    'L': qrcode.constants.ERROR_CORRECT_L,  # ~7% error correction
    'M': qrcode.constants.ERROR_CORRECT_M,  # ~15% error correction
    'Q': qrcode.constants.ERROR_CORRECT_Q,  # ~25% error correction
    'H': qrcode.constants.ERROR_CORRECT_H,  # ~30% error correction
}


def is_png_data_url(value) -> bool:
    return isinstance(value, str) and value.startswith(PNG_DATA_URL_PREFIX)


def png_to_data_url(png_bytes: bytes) -> str:
    return PNG_DATA_URL_PREFIX + base64.b64encode(png_bytes).decode('ascii')


def data_url_to_png(data_url: str) -> bytes:
    """
    Extract PNG bytes from a ``data:image/png;base64,`` URL.

    Raises:
        ValidationError: If the URL is not a base64 PNG data URL
    """
    if not is_png_data_url(data_url):
        raise ValidationError('Invalid QR code format')
    try:
        return base64.b64decode(data_url[len(PNG_DATA_URL_PREFIX):], validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError('Invalid QR code format',
                              details='QR code data URL is not valid base64')


def slugify(value: str) -> str:
    return re.sub(r'\s+', '-', value.strip()).lower()


@dataclass(frozen=True)
class QRCodeImage:
    """A rendered visitor QR code."""
    payload: str
    png_bytes: bytes
    size: int
    filename: str

    @property
    def data_url(self) -> str:
        return png_to_data_url(self.png_bytes)


class QRGenerator:
    """
    Renders visitor records into fixed-size QR code PNGs.
    """

    def __init__(self, error_correction: str = 'H', size: int = 300, margin: int = 2,
                 fill_color: str = '#000000', back_color: str = '#FFFFFF'):
        """
        Initialize the QR code generator.

        Args:
            error_correction (str): One of L, M, Q, H
            size (int): Width and height of the output image in pixels
            margin (int): Quiet zone around the code, in modules
            fill_color (str): Module color
            back_color (str): Background color
        """
        self.logger = logging.getLogger(__name__)

        level = error_correction.upper()
        if level not in ERROR_CORRECTION_LEVELS:
            raise ValueError(f"Unknown error correction level: {error_correction}")
        if size < 1:
            raise ValueError("QR code size must be positive")

        self.error_correction_level = level
        self.settings = {
            'error_correction': ERROR_CORRECTION_LEVELS[level],
            'size': size,
            'border': margin,
            'fill_color': fill_color,
            'back_color': back_color,
        }

    def generate(self, record: VisitorRecord) -> QRCodeImage:
        """
        Generate the QR code for a visitor invitation.

        Args:
            record (VisitorRecord): Invitation to encode

        Returns:
            QRCodeImage: Rendered PNG plus the encoded payload

        Raises:
            EncodingError: If the payload does not fit in the configured size
        """
        payload = record.to_json()
        png_bytes = self.render(payload)
        filename = f"visitor-qr-{slugify(record.visitor_name)}.png"
        self.logger.info(f"QR code generated for visitor {record.id}")
        return QRCodeImage(
            payload=payload,
            png_bytes=png_bytes,
            size=self.settings['size'],
            filename=filename
        )

    def render(self, data: str) -> bytes:
        size = self.settings['size']
        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=self.settings['error_correction'],
                box_size=1,
                border=self.settings['border']
            )
            qr.add_data(data)
            qr.make(fit=True)
        except (DataOverflowError, ValueError):
            # Newer qrcode releases report an oversized payload as an invalid version
            self.logger.error(f"QR payload too large to encode ({len(data)} characters)")
            raise EncodingError('Failed to generate QR code',
                                details='Visitor data is too large for a QR code')

        # Largest whole-pixel module size that fits, then centered on the canvas.
        modules = qr.modules_count + 2 * self.settings['border']
        box_size = size // modules
        if box_size < 1:
            self.logger.error(f"QR code needs {modules}px but only {size}px are configured")
            raise EncodingError('Failed to generate QR code',
                                details=f'Visitor data does not fit in a {size}px QR code')

        qr.box_size = box_size
        try:
            img = qr.make_image(
                fill_color=self.settings['fill_color'],
                back_color=self.settings['back_color']
            ).get_image().convert('RGB')
        except (ValueError, OSError) as e:
            self.logger.error(f"QR code rendering failed: {str(e)}")
            raise EncodingError('Failed to generate QR code', details=str(e))

        canvas = Image.new('RGB', (size, size), self.settings['back_color'])
        offset = (size - img.size[0]) // 2
        canvas.paste(img, (offset, offset))

        buffer = io.BytesIO()
        canvas.save(buffer, format='PNG')
        return buffer.getvalue()

    def describe(self) -> dict:
        return {
            'errorCorrectionLevel': self.error_correction_level,
            'size': self.settings['size'],
            'margin': self.settings['border'],
        }
