import io
from unittest.mock import patch

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from core.errors import ValidationFailed
from routes import storage as storage_routes
from security.auth import AuthUser

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def test_shopper_upload_goes_to_payment_proofs(client, user_headers):
    with patch("routes.storage.cloudinary_service.upload", return_value=(True, "https://cdn.example.com/p.png", None)) as upload:
        r = client.post("/storage/upload", files={"file": ("proof.png", PNG, "image/png")}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["url"] == "https://cdn.example.com/p.png"
    assert upload.call_args.args[1] == "payment-proofs/user-1"


def test_admin_upload_goes_to_products(client, admin_headers):
    with patch("routes.storage.cloudinary_service.upload", return_value=(True, "https://cdn.example.com/x.png", None)) as upload:
        client.post("/storage/upload", files={"file": ("x.png", PNG, "image/png")}, headers=admin_headers)
    assert upload.call_args.args[1] == "products"


def test_rejects_non_images(client, user_headers):
    r = client.post("/storage/upload", files={"file": ("notes.txt", b"hello", "text/plain")}, headers=user_headers)
    assert r.status_code == 400
    assert r.json()["field"] == "file"


def test_rejects_oversized_files(client, user_headers, test_settings):
    test_settings.MAX_UPLOAD_BYTES = 10
    try:
        r = client.post("/storage/upload", files={"file": ("big.png", PNG, "image/png")}, headers=user_headers)
    finally:
        test_settings.MAX_UPLOAD_BYTES = 5 * 1024 * 1024
    assert r.status_code == 400


def test_upstream_failure_is_502(client, user_headers):
    with patch("routes.storage.cloudinary_service.upload", return_value=(False, None, "timeout")):
        r = client.post("/storage/upload", files={"file": ("p.png", PNG, "image/png")}, headers=user_headers)
    assert r.status_code == 502
    assert r.json() == {"detail": "Failed to upload image"}


class _CountingStream(io.BytesIO):
    def __init__(self, data):
        super().__init__(data)
        self.requested = []

    def read(self, size=-1):
        self.requested.append(size)
        return super().read(size)


def test_oversized_upload_is_read_only_up_to_limit(test_settings):
    test_settings.MAX_UPLOAD_BYTES = 16
    stream = _CountingStream(b"\x00" * 4096)
    upload = UploadFile(file=stream, filename="big.png", headers=Headers({"content-type": "image/png"}))
    try:
        with patch("routes.storage.cloudinary_service.upload") as cloud_upload:
            with pytest.raises(ValidationFailed):
                storage_routes.upload_image(file=upload, user=AuthUser(id="user-1"))
    finally:
        test_settings.MAX_UPLOAD_BYTES = 5 * 1024 * 1024
    assert stream.requested == [17]
    cloud_upload.assert_not_called()
