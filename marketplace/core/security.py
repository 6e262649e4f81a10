import time
from dataclasses import dataclass

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from marketplace.core.config import settings

_JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    issued_at: int
    expires_at: int


def _peppered(plain: str) -> str:
    return plain + settings.password_pepper.get_secret_value()


def hash_password(plain: str) -> str:
    # Stored as werkzeug's "pbkdf2:sha256:<rounds>$<salt>$<digest>"
    method = f"pbkdf2:sha256:{settings.password_hash_rounds}"
    return generate_password_hash(_peppered(plain), method=method, salt_length=16)


def verify_password(plain: str, hashed: str) -> bool:
    return check_password_hash(hashed, _peppered(plain))


def create_access_token(user_id: str, ttl_seconds: int | None = None) -> str:
    now = int(time.time())
    ttl = ttl_seconds if ttl_seconds is not None else settings.jwt_ttl_seconds
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + ttl,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret.get_secret_value(), algorithm=_JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims | None:
    """Return the claims of a valid access token, or None when it is invalid or expired."""
    try:
        payload = jwt.decode(token, settings.jwt_secret.get_secret_value(), algorithms=[_JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None
    if payload.get("type") != "access" or not payload.get("sub"):
        return None
    return TokenClaims(user_id=str(payload["sub"]), issued_at=int(payload["iat"]), expires_at=int(payload["exp"]))
