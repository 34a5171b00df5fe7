# src/aegis/server/security.py
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from ..core.errors import ExpiredToken, InvalidToken
from .config import Settings, settings as default_settings

SESSION_TOKEN = "session"
SECOND_FACTOR_TOKEN = "second_factor"

# bcrypt only reads the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


# --- Login password hashing ---

def get_password_hash(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("ascii")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time bcrypt comparison. Oversized input never matches."""
    password_bytes = plain_password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("ascii"))
    except ValueError:
        # malformed stored hash
        return False


@lru_cache
def _dummy_hash(rounds: int) -> str:
    return get_password_hash(uuid.uuid4().hex, rounds)


def burn_password_check(plain_password: str, rounds: int = 10) -> None:
    """Spend one bcrypt comparison when there is no user to compare against."""
    verify_password(plain_password, _dummy_hash(rounds))


# --- Signed tokens (JWT) ---

def create_access_token(
    subject: int,
    token_type: str = SESSION_TOKEN,
    expires_delta: Optional[timedelta] = None,
    settings: Settings = default_settings,
) -> str:
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        if token_type == SECOND_FACTOR_TOKEN:
            expires_delta = timedelta(minutes=settings.SECOND_FACTOR_TOKEN_EXPIRE_MINUTES)
        else:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    claims = {
        "sub": str(subject),
        "typ": token_type,
        "iat": now,
        "exp": now + expires_delta,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(
    token: str,
    token_type: str = SESSION_TOKEN,
    settings: Settings = default_settings,
) -> int:
    """
    Verify signature, expiry and token type; return the user id in ``sub``.

    Raises ExpiredToken for an expired token and InvalidToken for anything
    else that does not verify.
    """
    if not token or not token.strip():
        raise InvalidToken("missing token")

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise ExpiredToken("token expired")
    except JWTError:
        raise InvalidToken("token did not verify")

    if payload.get("typ") != token_type:
        raise InvalidToken(f"expected a {token_type} token")

    subject = payload.get("sub")
    if subject is None:
        raise InvalidToken("token has no subject")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise InvalidToken("token subject is not a user id")
