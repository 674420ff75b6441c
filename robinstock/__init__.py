"""
robinstock - Client for Robinhood's private brokerage API.

Usage:
    from robinstock import RobinhoodClient, Session, login

    client = RobinhoodClient()
    session = Session()

    # Reuses ~/.tokens/robinhood_alice.json when it is still valid,
    # otherwise logs in (running identity verification if asked to)
    login(client, session, "alice", password, mfa_code="123456")

    accounts = client.load_accounts(session)
    quotes = client.get_quotes(session, ["AAPL", "MSFT"])

    # Drop the stored credential
    logout(session)

Cancellation:
    cancel = CancelToken(timeout=180)
    login(client, session, "alice", password, cancel=cancel)
"""

__version__ = "0.1.0"

from robinstock._config import VerificationConfig
from robinstock._credentials import delete_credential, load_credential, save_credential
from robinstock._device import generate_device_token
from robinstock.auth import ensure_fresh, login, logout, refresh
from robinstock.client import RobinhoodClient
from robinstock.errors import (
    AuthenticationError,
    ChallengeRequiredError,
    ChallengeTimeoutError,
    CredentialStoreError,
    DeadlineExceededError,
    DeviceTokenError,
    InquiryTimeoutError,
    MfaRequiredError,
    NotAuthenticatedError,
    OperationCancelledError,
    RobinstockError,
    TokenRefreshError,
    TransportError,
    VerificationError,
    VerificationTimeoutError,
)
from robinstock.models import Credential, Response, Session, is_expired
from robinstock.polling import CancelToken
from robinstock.verification import IdentityVerifier, VerificationState

__all__ = [
    # Client
    "RobinhoodClient",
    "Session",
    "Credential",
    "Response",
    "CancelToken",
    "VerificationConfig",
    # Auth
    "login",
    "logout",
    "refresh",
    "ensure_fresh",
    "IdentityVerifier",
    "VerificationState",
    # Storage
    "load_credential",
    "save_credential",
    "delete_credential",
    "generate_device_token",
    "is_expired",
    # Errors
    "RobinstockError",
    "TransportError",
    "NotAuthenticatedError",
    "OperationCancelledError",
    "DeadlineExceededError",
    "CredentialStoreError",
    "DeviceTokenError",
    "AuthenticationError",
    "MfaRequiredError",
    "ChallengeRequiredError",
    "TokenRefreshError",
    "VerificationError",
    "VerificationTimeoutError",
    "InquiryTimeoutError",
    "ChallengeTimeoutError",
]
