import base64
import os
import time
from typing import Optional

from cryptography.hazmat.primitives import constant_time
from cryptography.hazmat.primitives.hashes import SHA1
from cryptography.hazmat.primitives.twofactor.totp import TOTP

SECOND_FACTOR_SECRET_BYTES = 20  # 160 bits, RFC 4226 recommendation


def generate_encryption_salt(size: int = 16) -> str:
    """
    Random per-user salt, hex encoded.
    The client derives its local encryption key from it; the server never does.
    """
    return os.urandom(size).hex()


# --- TOTP (RFC 6238) ---

def generate_second_factor_secret() -> str:
    secret = os.urandom(SECOND_FACTOR_SECRET_BYTES)
    return base64.b32encode(secret).decode("ascii").rstrip("=")


def _decode_secret(secret_b32: str) -> bytes:
    padding = "=" * (-len(secret_b32) % 8)
    return base64.b32decode(secret_b32.upper() + padding)


def _totp(secret_b32: str, digits: int, interval: int) -> TOTP:
    return TOTP(_decode_secret(secret_b32), digits, SHA1(), interval)


def provisioning_uri(secret_b32: str, account_name: str, issuer: str,
                     digits: int = 6, interval: int = 30) -> str:
    """otpauth:// URI that authenticator apps scan to enroll the secret."""
    return _totp(secret_b32, digits, interval).get_provisioning_uri(account_name, issuer)


def generate_code(secret_b32: str, at: Optional[float] = None,
                  digits: int = 6, interval: int = 30) -> str:
    now = time.time() if at is None else at
    return _totp(secret_b32, digits, interval).generate(int(now)).decode("ascii")


def match_time_step(secret_b32: str, code: str, at: Optional[float] = None,
                    digits: int = 6, interval: int = 30, window: int = 1) -> Optional[int]:
    """
    Return the time step the code belongs to, or None when it matches no step
    inside the +/- window around ``at``.
    """
    code = (code or "").strip()
    if len(code) != digits or not (code.isascii() and code.isdigit()):
        return None

    totp = _totp(secret_b32, digits, interval)
    now = time.time() if at is None else at
    current = int(now // interval)
    candidate = code.encode("ascii")

    matched = None
    for step in range(current - window, current + window + 1):
        # no early exit
        if constant_time.bytes_eq(totp.generate(step * interval), candidate):
            matched = step
    return matched
