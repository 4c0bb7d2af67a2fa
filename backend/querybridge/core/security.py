import logging
from functools import lru_cache
from typing import Any

import jwt

from querybridge.core.config import settings

_logger = logging.getLogger(__name__)


ALGORITHM = "RS256"

# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


@lru_cache
def _read_key(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def create_access_token(private_key: bytes | str, subject: str | None = None) -> str:
    """Sign a token whose ``id`` claim is *subject* (default SECRET_KEY)."""
    payload = {"id": subject if subject is not None else settings.SECRET_KEY}
    return jwt.encode(payload, private_key, algorithm=ALGORITHM)


def decode_access_token(token: str, public_key: bytes | str) -> dict[str, Any]:
    """Verify *token*; raises jwt.InvalidTokenError when it does not check out."""
    return jwt.decode(token, public_key, algorithms=[ALGORITHM])


def token_from_header(value: str | None) -> str | None:
    """Accept ``Authorization: <token>`` and ``Authorization: Bearer <token>``."""
    if not value:
        return None
    scheme, _, rest = value.strip().partition(" ")
    if rest and scheme.lower() == "bearer":
        return rest.strip() or None
    return value.strip()


def verification_key() -> bytes | None:
    """Public key used to verify tokens, or None when auth is disabled."""
    if not settings.JWT_PUBLIC_KEY_PATH:
        return None
    return _read_key(settings.JWT_PUBLIC_KEY_PATH)


def log_operator_token() -> None:
    """Sign and log a token for SECRET_KEY when a private key is configured."""
    if not settings.JWT_PRIVATE_KEY_PATH:
        return
    try:
        token = create_access_token(_read_key(settings.JWT_PRIVATE_KEY_PATH))
    except (OSError, ValueError, jwt.PyJWTError) as e:
        _logger.error("Could not sign operator token: %s", e)
        return
    _logger.info("Add authorization to Headers")
    _logger.info("authorization: %s", token)
