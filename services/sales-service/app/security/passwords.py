"""Password hashing helpers."""

from __future__ import annotations

from passlib.context import CryptContext

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

# bcrypt only considers the first 72 bytes of a secret.
_BCRYPT_MAX_BYTES = 72


def _truncate(password: str) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) <= _BCRYPT_MAX_BYTES:
        return password
    return encoded[:_BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore")


def hash_password(password: str) -> str:
    return _pwd_context.hash(_truncate(password))


def verify_password(password: str, hashed: str) -> bool:
    return _pwd_context.verify(_truncate(password), hashed)


def password_policy_violation(password: str) -> str | None:
    """Return why ``password`` is too weak for self-registration, or None."""
    if len(password) < 8:
        return "Password must be at least 8 characters long"
    if not (
        any(ch.islower() for ch in password)
        and any(ch.isupper() for ch in password)
        and any(ch.isdigit() for ch in password)
    ):
        return "Password must contain at least one uppercase letter, one lowercase letter, and one number"
    return None
