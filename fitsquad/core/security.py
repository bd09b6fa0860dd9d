"""Security utilities for PIN hashing and OAuth state signing."""

import hashlib
import hmac

import bcrypt

from fitsquad.core.config import get_settings

settings = get_settings()


def verify_pin(plain_pin: str, hashed_pin: str) -> bool:
    """Verify a plain PIN against a bcrypt hash.

    Args:
        plain_pin: PIN as entered.
        hashed_pin: Stored bcrypt hash.

    Returns:
        True if the PIN matches, False otherwise.
    """
    return bcrypt.checkpw(
        plain_pin.encode("utf-8"),
        hashed_pin.encode("utf-8"),
    )


def get_pin_hash(pin: str) -> str:
    """Hash a PIN.

    Args:
        pin: Plain text PIN.

    Returns:
        Hashed PIN.
    """
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(pin.encode("utf-8"), salt).decode("utf-8")


def _state_signature(friend_id: int) -> str:
    return hmac.new(
        settings.session_secret.encode("utf-8"),
        str(friend_id).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()[:32]


def sign_oauth_state(friend_id: int) -> str:
    """Build an OAuth ``state`` value bound to a friend."""
    return f"{friend_id}.{_state_signature(friend_id)}"


def verify_oauth_state(state: str | None, friend_id: int) -> bool:
    """Check that ``state`` was issued for ``friend_id``."""
    if not state or "." not in state:
        return False
    raw_id, signature = state.split(".", 1)
    if raw_id != str(friend_id):
        return False
    return hmac.compare_digest(signature, _state_signature(friend_id))
