"""
Tests for attendance session QR codes.
"""
import base64
import io
import unittest

from PIL import Image

from portal.modules.qr_generator import QRGenerator


class QRGeneratorTest(unittest.TestCase):

    def setUp(self):
        self.generator = QRGenerator()

    def _image(self, result):
        return Image.open(io.BytesIO(base64.b64decode(result['image_base64'])))

    def test_encodes_session_id(self):
        result = self.generator.generate_session_qr_code('SESS_ABC123XYZ')
        self.assertEqual(result['qr_data'], 'SESS_ABC123XYZ')
        self.assertEqual(result['filename'], 'qr_SESS_ABC123XYZ.png')
        self.assertEqual(self._image(result).format, 'PNG')

    def test_caption_extends_canvas(self):
        plain = self.generator.generate_session_qr_code('SESS_ABC123XYZ')
        captioned = self.generator.generate_session_qr_code(
            'SESS_ABC123XYZ', ['Course: MATH201', 'Expires: 2026-03-10 09:15']
        )
        self.assertEqual(captioned['image_size'][0], plain['image_size'][0])
        self.assertGreater(captioned['image_size'][1], plain['image_size'][1])
        self.assertEqual(self._image(captioned).size, tuple(captioned['image_size']))

    def test_box_size_scales_image(self):
        small = QRGenerator(box_size=2).generate_session_qr_code('SESS_ABC123XYZ')
        large = QRGenerator(box_size=8).generate_session_qr_code('SESS_ABC123XYZ')
        self.assertGreater(large['image_size'][0], small['image_size'][0])


if __name__ == '__main__':
    unittest.main()
