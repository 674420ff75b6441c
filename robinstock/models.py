"""Data models shared by the transport and authentication layers."""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are written by older files; assume UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(
    issued_at: Optional[datetime],
    expires_in: int,
    now: Optional[datetime] = None,
) -> bool:
    """Check whether a grant issued at ``issued_at`` has lapsed.

    A zero ``expires_in`` marks a long-lived token that never expires.
    A grant with a lifetime but no issuance time is treated as expired.
    """
    if expires_in == 0:
        return False
    if issued_at is None:
        return True
    now = _as_utc(now) if now is not None else _utcnow()
    return now >= _as_utc(issued_at) + timedelta(seconds=expires_in)


def coerce_int(value: Any) -> int:
    """Best-effort int conversion for numeric JSON fields."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return int(float(value))
    except (ValueError, OverflowError):
        # NaN, infinities and out-of-range strings
        return 0
    return 0


@dataclass(frozen=True)
class Credential:
    """An issued access grant.

    Credentials are immutable. A refresh produces a new value, and
    ``with_issued_at`` returns a stamped copy.
    """
    access_token: str
    refresh_token: str = ""
    token_type: str = "Bearer"
    device_token: str = ""
    expires_in: int = 0
    issued_at: Optional[datetime] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        """Absolute expiry, or None for non-expiring or unstamped grants."""
        if self.expires_in == 0 or self.issued_at is None:
            return None
        return _as_utc(self.issued_at) + timedelta(seconds=self.expires_in)

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        return f"{self.token_type or 'Bearer'} {self.access_token}"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return is_expired(self.issued_at, self.expires_in, now=now)

    def expires_within(self, seconds: float, now: Optional[datetime] = None) -> bool:
        """True if the credential lapses in fewer than ``seconds`` seconds."""
        if self.expires_in == 0:
            return False
        expires_at = self.expires_at
        if expires_at is None:
            return True
        now = _as_utc(now) if now is not None else _utcnow()
        return (expires_at - now).total_seconds() < seconds

    def with_issued_at(self, issued_at: Optional[datetime] = None) -> "Credential":
        return replace(self, issued_at=issued_at or _utcnow())

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "device_token": self.device_token,
            "expires_in": self.expires_in,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        """Build a credential from its stored JSON form.

        Raises:
            ValueError: If the record is not an object, has no access
                token, or carries an unparseable ``issued_at`` or a
                non-finite ``expires_in``.
        """
        if not isinstance(data, dict):
            raise ValueError("credential record must be a JSON object")

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("credential record has no access token")

        issued_at = data.get("issued_at")
        if isinstance(issued_at, str) and issued_at:
            issued_at = _as_utc(datetime.fromisoformat(issued_at))
        elif issued_at is not None:
            raise ValueError("credential record has an invalid issued_at")

        expires_in = data.get("expires_in")
        if isinstance(expires_in, float) and not math.isfinite(expires_in):
            raise ValueError("credential record has a non-finite expires_in")

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or "",
            token_type=data.get("token_type") or "Bearer",
            device_token=data.get("device_token") or "",
            expires_in=coerce_int(expires_in),
            issued_at=issued_at,
        )


@dataclass
class Session:
    """Caller-owned authentication state.

    One session per user identity. The transport holds no credential of
    its own; authenticated calls read it from the session passed in.
    """
    username: str = ""
    credential: Optional[Credential] = None

    @property
    def is_authenticated(self) -> bool:
        return self.credential is not None and bool(self.credential.access_token)

    def set_credential(self, credential: Optional[Credential]) -> None:
        self.credential = credential

    def clear(self) -> None:
        self.credential = None


@dataclass
class Response:
    """Decoded API response."""
    status_code: int
    data: dict = field(default_factory=dict)
    results: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def is_empty(self) -> bool:
        return not self.data

    @property
    def next_url(self) -> Optional[str]:
        next_url = self.data.get("next")
        if isinstance(next_url, str) and next_url:
            return next_url
        return None
