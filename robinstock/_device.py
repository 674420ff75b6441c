"""Device token generation.

A device token is a per-login fingerprint sent with the password grant.
It is shaped like a UUID (8-4-4-4-12 lowercase hex) but is formatted
straight from random bytes and carries no version or variant bits.
"""

import secrets

from .errors import DeviceTokenError

_GROUPS = ((0, 4), (4, 6), (6, 8), (8, 10), (10, 16))


def format_device_token(raw: bytes) -> str:
    """Format 16 bytes as five hyphen-separated hex groups."""
    if len(raw) != 16:
        raise ValueError(f"device token needs 16 bytes, got {len(raw)}")
    return "-".join(raw[start:end].hex() for start, end in _GROUPS)


def generate_device_token() -> str:
    """Generate a fresh device token from the OS random source.

    Raises:
        DeviceTokenError: If the secure random source is unavailable.
    """
    try:
        raw = secrets.token_bytes(16)
    except (OSError, NotImplementedError) as e:
        raise DeviceTokenError(f"secure random source failed: {e}") from e
    return format_device_token(raw)
