"""Image uploads stored under the upload directory and referenced by relative URL"""

import re
import uuid
import base64
import binascii
import logging
from pathlib import Path

from werkzeug.utils import secure_filename

from .errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp', 'svg'}
URL_PREFIX = '/uploads'

DATA_URL_RE = re.compile(r'^data:image/(?P<subtype>[a-zA-Z0-9.+-]+);base64,(?P<payload>.+)$', re.DOTALL)
SUBTYPE_EXTENSIONS = {'jpeg': 'jpg', 'svg+xml': 'svg'}


def is_data_url(value):
    return isinstance(value, str) and value.startswith('data:image/')


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


class UploadManager:
    def __init__(self, upload_dir):
        self.upload_dir = Path(upload_dir)

    def _target(self, folder, filename):
        target_dir = self.upload_dir / folder
        target_dir.mkdir(parents=True, exist_ok=True)
        unique_filename = f"{uuid.uuid4().hex[:8]}_{filename}"
        return target_dir / unique_filename, f"{URL_PREFIX}/{folder}/{unique_filename}"

    def save_file(self, file_storage, folder):
        """Save a multipart upload and return its relative URL"""
        if not file_storage or not file_storage.filename:
            raise ValidationError('No file selected')

        filename = secure_filename(file_storage.filename)
        if not allowed_file(filename):
            raise ValidationError('File must be an image (png, jpg, jpeg, gif, webp, svg)')

        file_path, url = self._target(folder, filename)
        file_storage.save(str(file_path))
        logger.info(f"Image uploaded: {file_path}")
        return url

    def save_data_url(self, data_url, folder):
        """Decode a base64 data: URL (as sent by the dashboard) and save it"""
        match = DATA_URL_RE.match(data_url)
        if not match:
            raise ValidationError('Invalid image data')

        subtype = match.group('subtype').lower()
        extension = SUBTYPE_EXTENSIONS.get(subtype, subtype)
        if extension not in ALLOWED_EXTENSIONS:
            raise ValidationError('File must be an image (png, jpg, jpeg, gif, webp, svg)')

        try:
            content = base64.b64decode(match.group('payload'), validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError('Invalid image data')

        file_path, url = self._target(folder, f"image.{extension}")
        file_path.write_bytes(content)
        logger.info(f"Image uploaded: {file_path}")
        return url

    def path_for_url(self, url):
        """Map a stored relative URL back to a file inside the upload dir"""
        if not isinstance(url, str) or not url.startswith(f"{URL_PREFIX}/"):
            return None
        relative = url[len(URL_PREFIX) + 1:]
        file_path = (self.upload_dir / relative).resolve()
        if self.upload_dir.resolve() not in file_path.parents:
            return None
        return file_path

    def delete(self, url):
        """Best-effort removal of a previously uploaded file"""
        file_path = self.path_for_url(url)
        if file_path is None:
            return False
        try:
            file_path.unlink()
            logger.info(f"Removed image: {file_path}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove image {file_path}: {e}")
            return False
