import smtplib

import pytest

from wellness_api.errors import NotFoundError, UpstreamFailure, ValidationFailure
from wellness_api.integrations import blob_store as blob_store_module
from wellness_api.integrations import notifier as notifier_module
from wellness_api.integrations.blob_store import LocalBlobStore, is_valid_signature
from wellness_api.integrations.credentials import hash_password, verify_password
from wellness_api.integrations.notifier import EmailNotifier

JPEG = b"\xFF\xD8\xFF\xE0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + b"\x00" * 16
WEBP = b"RIFF\x00\x00\x00\x00WEBPVP8 "


# ==================== CREDENTIALS ====================

def test_password_hashing():
    hashed = hash_password("secret123")
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", "not-a-bcrypt-hash")


# ==================== BLOB STORE ====================

def test_signatures():
    assert is_valid_signature(JPEG, ".jpg")
    assert is_valid_signature(WEBP, ".webp")
    assert not is_valid_signature(JPEG, ".png")


def test_save_writes_under_folder(tmp_path):
    store = LocalBlobStore(root=tmp_path, url_prefix="/uploads")

    url = store.save(JPEG, "photo.JPG", "doctors")

    stored = tmp_path / "doctors" / url.rsplit("/", 1)[-1]
    assert url.startswith("/uploads/doctors/")
    assert stored.read_bytes() == JPEG


@pytest.mark.parametrize("content, filename, folder", [
    (JPEG, "photo.jpg", "secrets"),
    (b"", "photo.jpg", "users"),
    (JPEG, "script.exe", "users"),
    (JPEG, "photo", "users"),
    (b"GIF89a", "photo.jpg", "users"),
])
def test_rejected_uploads(tmp_path, content, filename, folder):
    with pytest.raises(ValidationFailure):
        LocalBlobStore(root=tmp_path).save(content, filename, folder)


def test_content_is_sniffed_for_an_image_mime_type(tmp_path):
    store = LocalBlobStore(root=tmp_path)

    assert blob_store_module.detect_mime(JPEG) == "image/jpeg"
    with pytest.raises(ValidationFailure, match="MIME type"):
        store.save(b"<html><body>not an image</body></html>", "photo.png", "users")


def test_mime_check_applies_even_when_signature_matches(tmp_path, monkeypatch):
    monkeypatch.setattr(blob_store_module, "detect_mime", lambda content: "application/x-dosexec")

    with pytest.raises(ValidationFailure, match="application/x-dosexec"):
        LocalBlobStore(root=tmp_path).save(JPEG, "photo.jpg", "users")
    assert not (tmp_path / "users").exists()


def test_size_limit(tmp_path):
    store = LocalBlobStore(root=tmp_path, max_size=10)
    with pytest.raises(ValidationFailure):
        store.save(JPEG, "photo.jpg", "users")


def test_delete_only_known_urls(tmp_path):
    store = LocalBlobStore(root=tmp_path, url_prefix="/uploads")
    url = store.save(JPEG, "photo.jpg", "labs")

    for bogus in ("/elsewhere/labs/x.jpg", "/uploads/../etc/passwd", "/uploads/labs/.."):
        with pytest.raises(NotFoundError):
            store.delete(bogus)

    store.delete(url)
    assert list((tmp_path / "labs").iterdir()) == []


# ==================== NOTIFIER ====================

class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, username, password):
        self.credentials = (username, password)

    def send_message(self, message):
        self.messages.append(message)


class BrokenSMTP(FakeSMTP):
    def send_message(self, message):
        raise smtplib.SMTPServerDisconnected("gone")


def test_notifier_sends_over_smtp(monkeypatch):
    FakeSMTP.instances.clear()
    monkeypatch.setattr(notifier_module.smtplib, "SMTP", FakeSMTP)

    EmailNotifier(host="smtp.test", port=2525, username="u", password="p").send(
        "to@example.com", "Hello", "Body text",
    )

    smtp = FakeSMTP.instances[-1]
    assert (smtp.host, smtp.port) == ("smtp.test", 2525)
    assert smtp.credentials == ("u", "p")
    assert smtp.messages[0]["To"] == "to@example.com"
    assert smtp.messages[0]["Subject"] == "Hello"


def test_notifier_failures_are_upstream(monkeypatch):
    monkeypatch.setattr(notifier_module.smtplib, "SMTP", BrokenSMTP)
    with pytest.raises(UpstreamFailure):
        EmailNotifier(host="smtp.test").send("to@example.com", "Hello", "Body")


def test_notifier_without_host_is_upstream_failure(monkeypatch):
    monkeypatch.setattr(notifier_module.config, "SMTP_HOST", None)
    with pytest.raises(UpstreamFailure):
        EmailNotifier().send("to@example.com", "Hello", "Body")
