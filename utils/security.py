"""Security helpers: token hashing, one-time codes and user-text sanitation."""
import hashlib
import secrets

import bleach
from flask import request

MIN_PASSWORD_LENGTH = 6


def clean_text(value) -> str:
    """Strip every HTML tag from user-supplied text and trim surrounding whitespace."""
    if value is None:
        return ""
    return bleach.clean(str(value), tags=[], attributes={}, strip=True).strip()


def generate_otp(length: int = 6) -> str:
    digits = "0123456789"
    return "".join(secrets.choice(digits) for _ in range(length))


def hash_value(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def password_meets_policy(password: str) -> tuple[bool, str | None]:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return False, f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres."
    if password.strip() != password:
        return False, "A senha não pode começar ou terminar com espaços."
    return True, None


def client_ip() -> str | None:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr
