"""
Local-disk blob store for uploaded images.

Files land in ``UPLOAD_DIR/<folder>/`` under a random name and are served by
the ``StaticFiles`` mount at ``UPLOAD_URL_PREFIX``.
"""
import logging
import os
import uuid
from pathlib import Path

import magic

from wellness_api import config
from wellness_api.errors import NotFoundError, UpstreamFailure, ValidationFailure

logger = logging.getLogger(__name__)

# ==================== CONFIG ====================

ALLOWED_FOLDERS = ("users", "medicines", "doctors", "labs")

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

# Bytes handed to libmagic for sniffing
SNIFF_BYTES = 2048

SIGNATURES = {
    ".jpg": [b"\xFF\xD8\xFF"],
    ".jpeg": [b"\xFF\xD8\xFF"],
    ".png": [b"\x89\x50\x4E\x47\x0D\x0A\x1A\x0A"],
    ".gif": [b"GIF87a", b"GIF89a"],
}


def detect_mime(content: bytes) -> str:
    """MIME type sniffed from the content itself, ignoring the filename"""
    return magic.Magic(mime=True).from_buffer(content[:SNIFF_BYTES])


def is_valid_signature(content: bytes, extension: str) -> bool:
    """
    Validate file signature vs extension
    Prevents fake extensions
    """
    if extension == ".webp":
        return content[:4] == b"RIFF" and content[8:12] == b"WEBP"
    return any(content.startswith(signature) for signature in SIGNATURES.get(extension, []))


class LocalBlobStore:
    def __init__(self, root=None, url_prefix=None, max_size=None):
        self.root = Path(root or config.UPLOAD_DIR)
        self.url_prefix = (url_prefix or config.UPLOAD_URL_PREFIX).rstrip("/")
        self.max_size = max_size or config.MAX_UPLOAD_SIZE

    def validate(self, content: bytes, filename: str, folder: str) -> str:
        """Return the normalized extension, or raise ``ValidationFailure``"""
        if folder not in ALLOWED_FOLDERS:
            raise ValidationFailure(f"Unknown upload folder: {folder}")
        if not content:
            raise ValidationFailure("Please upload a file")
        if len(content) > self.max_size:
            raise ValidationFailure(
                f"File size {len(content) / 1024 / 1024:.1f}MB exceeds maximum "
                f"{self.max_size / 1024 / 1024:.1f}MB"
            )

        name = Path(filename or "").name
        if not name or ".." in name:
            raise ValidationFailure("Invalid filename")

        extension = Path(name).suffix.lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise ValidationFailure(f"Extension {extension or '(none)'} not allowed")

        detected_mime = detect_mime(content)
        if detected_mime not in ALLOWED_MIME_TYPES:
            raise ValidationFailure(f"MIME type {detected_mime} not allowed")
        if not is_valid_signature(content, extension):
            raise ValidationFailure(f"File signature doesn't match extension {extension}")
        return extension

    def save(self, content: bytes, filename: str, folder: str) -> str:
        """Store ``content`` and return its public URL"""
        extension = self.validate(content, filename, folder)
        target_dir = self.root / folder
        stored_name = f"{uuid.uuid4().hex}{extension}"

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with open(target_dir / stored_name, "wb") as f:
                f.write(content)
            if os.name != "nt":
                os.chmod(target_dir / stored_name, 0o644)
        except OSError as exc:
            logger.error("Could not store upload %s: %s", filename, exc)
            raise UpstreamFailure("File could not be stored") from exc

        url = f"{self.url_prefix}/{folder}/{stored_name}"
        logger.info("Stored upload %s as %s", filename, url)
        return url

    def _path_for(self, url: str) -> Path:
        prefix = f"{self.url_prefix}/"
        if not url or not url.startswith(prefix):
            raise NotFoundError("File not found")
        parts = url[len(prefix):].split("/")
        if len(parts) != 2 or parts[0] not in ALLOWED_FOLDERS or parts[1] in ("", ".", ".."):
            raise NotFoundError("File not found")
        return self.root / parts[0] / parts[1]

    def delete(self, url: str) -> None:
        path = self._path_for(url)
        if not path.is_file():
            raise NotFoundError("File not found")
        try:
            path.unlink()
        except OSError as exc:
            logger.error("Could not delete %s: %s", url, exc)
            raise UpstreamFailure("File could not be deleted") from exc
        logger.info("Deleted upload %s", url)


def get_blob_store() -> LocalBlobStore:
    """FastAPI dependency; overridden in tests to point at a temp directory"""
    return LocalBlobStore()
