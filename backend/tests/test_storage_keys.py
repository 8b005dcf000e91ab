import re

import pytest

from app.core.config import settings
from app.core.storage import (
    InMemoryStorageClient,
    build_storage_client,
    extract_extension,
    generate_safe_key,
    sanitize_path,
)

KEY_RE = re.compile(r"^users/u1/avatars/\d{13}-[0-9a-f-]{36}\.jpg$")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("../../etc", "etc"),
        ("a/b\\c", "abc"),
        ("nul\0byte", "nulbyte"),
        ("", ""),
        (None, ""),
    ],
)
def test_sanitize_path(raw, expected):
    assert sanitize_path(raw) == expected


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("photo.JPG", ".jpg"),
        ("archive.tar.gz", ".gz"),
        ("noext", ""),
        ("trailing.", ""),
        ("weird.p$p", ""),
    ],
)
def test_extract_extension(filename, expected):
    assert extract_extension(filename) == expected


def test_generate_safe_key_layout():
    key = generate_safe_key("users", "u1", "avatars", "me.JPG")
    assert KEY_RE.match(key), key


def test_generate_safe_key_skips_empty_subfolder():
    key = generate_safe_key("projects", "p1", "", "../../evil")
    parts = key.split("/")
    assert parts[:2] == ["projects", "p1"]
    assert len(parts) == 3
    assert "evil" not in key


def test_generated_keys_are_unique():
    keys = {generate_safe_key("users", "u1", "docs", "a.pdf") for _ in range(50)}
    assert len(keys) == 50


def test_in_memory_client_records_deletes():
    client = InMemoryStorageClient()
    assert "op=put" in client.presign_put("k", "image/png", 10, 60)
    assert "expires=3600" in client.presign_get("k")
    client.delete_file("k")
    assert client.deleted == ["k"]


@pytest.mark.parametrize(
    ("provider", "bucket", "endpoint"),
    [
        ("r2", "r2-assets", "https://acct.r2.cloudflarestorage.com"),
        ("s3", "s3-assets", None),
    ],
)
def test_build_storage_client_picks_provider_bucket(monkeypatch, provider, bucket, endpoint):
    monkeypatch.setattr(settings, "STORAGE_PROVIDER", provider)
    monkeypatch.setattr(settings, "R2_BUCKET", "r2-assets")
    monkeypatch.setattr(settings, "R2_ACCOUNT_ID", "acct")
    monkeypatch.setattr(settings, "S3_BUCKET", "s3-assets")
    for name in ("R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"):
        monkeypatch.setattr(settings, name, "test-key")
    client = build_storage_client()
    assert client.bucket == bucket
    assert client.endpoint == endpoint
    url = client.presign_get("users/u1/documents/file.pdf", expires_in=60)
    assert "users/u1/documents/file.pdf" in url
