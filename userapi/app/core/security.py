import hashlib
import secrets

PBKDF2_ITERATIONS = 100000
_ALGORITHM = "pbkdf2_sha256"


def hash_password_with_salt(password: str, salt: str | None = None) -> tuple[str, str]:
    """Hash a password using PBKDF2 with SHA256.

    Args:
        password: The plain text password
        salt: Optional salt. If not provided, a random salt will be generated.

    Returns:
        A tuple of (salt, hex digest)
    """
    if salt is None:
        salt = secrets.token_hex(16)

    hashed = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
    ).hex()

    return salt, hashed


def hash_password(password: str) -> str:
    """Hash a password into a single storable string.

    Format: ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``.
    """
    salt, hashed = hash_password_with_salt(password)
    return f"{_ALGORITHM}${PBKDF2_ITERATIONS}${salt}${hashed}"


def verify_password(password: str, encoded: str) -> bool:
    """Verify a plain text password against a value from hash_password().

    Returns False for malformed stored values instead of raising.
    """
    try:
        algorithm, iterations, salt, hashed = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != _ALGORITHM or not iterations.isdigit():
        return False

    computed = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    ).hex()
    return secrets.compare_digest(computed, hashed)
