"""Bearer token and one-time password helpers."""

import hashlib
import secrets
import time
from dataclasses import dataclass
from typing import Literal

import jwt

from courier.config import get_settings
from courier.errors import AuthenticationError

Role = Literal["driver", "admin", "restaurant", "customer"]

ROLES: tuple[str, ...] = ("driver", "admin", "restaurant", "customer")


@dataclass(frozen=True)
class Principal:
    """Authenticated actor as seen by the core: an identity id and a role."""

    sub: str
    role: Role


def create_access_token(*, sub: str, role: Role) -> str:
    settings = get_settings()
    now = int(time.time())
    payload = {
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + settings.access_token_expire_minutes * 60,
        "sub": sub,
        "role": role,
    }
    return jwt.encode(payload, settings.secret_key, algorithm="HS256")


def decode_access_token(token: str) -> Principal:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid token") from exc

    role = payload.get("role")
    if role not in ROLES:
        raise AuthenticationError("Token carries an unknown role")
    return Principal(sub=str(payload["sub"]), role=role)


def generate_otp() -> str:
    length = get_settings().otp_length
    upper = 10**length
    lower = 10 ** (length - 1)
    return str(secrets.randbelow(upper - lower) + lower)


def hash_otp(subject: str, otp: str) -> str:
    raw = f"{get_settings().secret_key}:{subject}:{otp}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def verify_otp_hash(subject: str, otp: str, expected_hash: str) -> bool:
    return secrets.compare_digest(hash_otp(subject, otp), expected_hash)
