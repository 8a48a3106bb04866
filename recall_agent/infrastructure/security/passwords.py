import hashlib
import hmac
import secrets

_ITERATIONS = 100000


def hash_password(password: str, salt: str = None) -> str:
    """Hash a password as ``salt$hexdigest`` using PBKDF2-HMAC-SHA256"""
    if salt is None:
        salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac('sha256', password.encode(), salt.encode(), _ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Check a password against a value produced by hash_password"""
    salt, _, expected = stored.partition("$")
    if not expected:
        return False
    _, _, actual = hash_password(password, salt).partition("$")
    return hmac.compare_digest(actual, expected)
