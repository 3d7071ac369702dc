import hashlib

import pytest

from oauth2_store.common.exceptions import AuthFailureError, HashError
from oauth2_store.common.hasher import BCryptHasher


@pytest.fixture
def hasher():
    return BCryptHasher(work_factor=4)


def test_hash_never_returns_plaintext(hasher):
    digest = hasher.hash("s3cr3t")

    assert digest != "s3cr3t"
    assert digest.startswith("$2")


def test_hash_is_salted(hasher):
    assert hasher.hash("s3cr3t") != hasher.hash("s3cr3t")


def test_compare_accepts_matching_secret(hasher):
    hasher.compare(hasher.hash("s3cr3t"), "s3cr3t")


def test_compare_rejects_wrong_secret(hasher):
    with pytest.raises(AuthFailureError):
        hasher.compare(hasher.hash("s3cr3t"), "wrong")


def test_compare_rejects_legacy_digest(hasher):
    legacy = hashlib.md5(b"s3cr3t").hexdigest()

    with pytest.raises(AuthFailureError):
        hasher.compare(legacy, "s3cr3t")


def test_hash_failure_is_reported_without_secret():
    hasher = BCryptHasher(work_factor=2)

    with pytest.raises(HashError) as exc_info:
        hasher.hash("s3cr3t")

    assert "s3cr3t" not in str(exc_info.value)
