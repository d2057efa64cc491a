# petship/utils/passwords.py
from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash


# =========================
# Password hashing / verify
# =========================
def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using a strong KDF.
    Werkzeug's scrypt is memory-hard and suitable for production.
    """
    if not isinstance(plain_password, str) or not plain_password.strip():
        raise ValueError("Password must be a non-empty string.")
    return generate_password_hash(plain_password, method="scrypt")


def verify_password(
    password_hash: str | None,
    plain_password: str | None,
    *,
    allow_missing_hash: bool = False,
) -> bool:
    """
    Verify plaintext password against stored hash.

    Accounts without a hash (seeded/demo users) only get in when the caller
    allows it, i.e. with demo login enabled.
    """
    if not password_hash:
        return allow_missing_hash
    if not plain_password:
        return False
    return check_password_hash(password_hash, plain_password)


# =========================
# Password policy
# =========================
MIN_PASSWORD_LENGTH = 8


def validate_password(plain_password: str) -> tuple[bool, str]:
    """
    Returns (ok, message). If ok is False, message explains what to fix.
    """
    if not isinstance(plain_password, str):
        return False, "Password must be text."
    pw = plain_password.strip()
    if not pw:
        return False, "Password cannot be empty."
    if len(pw) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    return True, ""
