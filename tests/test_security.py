from userapi.app.core.security import hash_password, hash_password_with_salt, verify_password


def test_hash_password_roundtrip():
    encoded = hash_password("Password123")

    assert encoded.startswith("pbkdf2_sha256$")
    assert "Password123" not in encoded
    assert verify_password("Password123", encoded) is True
    assert verify_password("wrong-password", encoded) is False


def test_hashes_are_salted():
    assert hash_password("Password123") != hash_password("Password123")


def test_same_salt_same_digest():
    assert hash_password_with_salt("pw", "salt") == hash_password_with_salt("pw", "salt")


def test_malformed_hash_does_not_verify():
    assert verify_password("pw", "not-a-hash") is False
    assert verify_password("pw", "md5$1$salt$abc") is False
