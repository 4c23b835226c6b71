"""
QR Code Generator Module - School Portal

Renders the QR code an admin displays for an attendance session. The code
encodes the session id; a caption with the course and expiry is drawn under
it so the projected image is readable without a scanner.
"""

import qrcode
import io
import base64
from PIL import Image, ImageDraw, ImageFont
import logging
from typing import Any, Dict, List


class QRGenerator:
    """
    QR code renderer for attendance sessions.
    """

    def __init__(self, box_size: int = 10, border: int = 4):
        self.logger = logging.getLogger(__name__)
        self.default_settings = {
            'version': 1,
            'error_correction': qrcode.constants.ERROR_CORRECT_M,
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def generate_session_qr_code(self, session_id: str, caption_lines: List[str] = None) -> Dict[str, Any]:
        """
        Generate a PNG QR code for an attendance session.

        Args:
            session_id (str): Session id to encode
            caption_lines (List[str]): Text drawn under the code

        Returns:
            Dict[str, Any]: ``qr_data``, ``image_base64``, ``image_size`` and ``filename``
        """
        settings = self.default_settings
        qr = qrcode.QRCode(
            version=settings['version'],
            error_correction=settings['error_correction'],
            box_size=settings['box_size'],
            border=settings['border']
        )
        qr.add_data(session_id)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=settings['fill_color'],
            back_color=settings['back_color']
        ).convert('RGB')

        if caption_lines:
            img = self._add_caption(img, caption_lines)

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        img_base64 = base64.b64encode(buffer.getvalue()).decode()

        self.logger.info(f"QR code generated for session {session_id}")
        return {
            'qr_data': session_id,
            'image_base64': img_base64,
            'image_size': img.size,
            'filename': f"qr_{session_id}.png"
        }

    def _add_caption(self, qr_img: Image.Image, lines: List[str]) -> Image.Image:
        """Extend the canvas and draw centered caption lines under the code."""
        line_height = 20
        width, height = qr_img.size
        canvas = Image.new('RGB', (width, height + 10 + line_height * len(lines)), 'white')
        canvas.paste(qr_img, (0, 0))

        draw = ImageDraw.Draw(canvas)
        font = ImageFont.load_default()

        y = height
        for line in lines:
            bbox = draw.textbbox((0, 0), line, font=font)
            text_width = bbox[2] - bbox[0]
            draw.text(((width - text_width) // 2, y), line, fill='black', font=font)
            y += line_height

        return canvas
