"""Login, refresh and logout.

The token endpoint answers a password grant in one of several shapes,
often with an error-like status even when it wants more from the
client. ``decode_login_response`` turns the body into exactly one
``LoginOutcome`` so the login flow can act on it without probing the
raw JSON in several places.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from . import urls
from ._config import CLIENT_ID, VerificationConfig
from ._credentials import delete_credential, load_credential, save_credential
from ._device import generate_device_token
from .client import RobinhoodClient
from .errors import (
    AuthenticationError,
    ChallengeRequiredError,
    MfaRequiredError,
    NotAuthenticatedError,
    TokenRefreshError,
    VerificationError,
)
from .models import Credential, Response, Session, coerce_int
from .polling import CancelToken, SystemClock
from .verification import verify_identity

logger = logging.getLogger(__name__)

# Requested token lifetime, in seconds
TOKEN_LIFETIME = 86400

# Refresh when less than 5 minutes remain
REFRESH_THRESHOLD_SECONDS = 300


# =============================================================================
# Login response outcomes
# =============================================================================

@dataclass(frozen=True)
class TokenGranted:
    """The server issued a token."""
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationRequired:
    """The server opened an identity verification workflow."""
    workflow_id: str


@dataclass(frozen=True)
class MfaRequired:
    """An MFA code is needed."""
    pass


@dataclass(frozen=True)
class ChallengeRequired:
    """The server wants a challenge answered."""
    challenge_id: str


@dataclass(frozen=True)
class LoginRejected:
    """The server refused the grant outright."""
    status_code: int
    detail: Optional[str] = None


LoginOutcome = Union[
    TokenGranted, VerificationRequired, MfaRequired, ChallengeRequired, LoginRejected
]


def decode_login_response(response: Response) -> LoginOutcome:
    """Classify a token endpoint response.

    Checked in this order regardless of status code, since verification
    and challenge demands arrive with 4xx statuses.
    """
    data = response.data

    workflow = data.get("verification_workflow")
    if isinstance(workflow, dict):
        workflow_id = workflow.get("id")
        if isinstance(workflow_id, str) and workflow_id:
            return VerificationRequired(workflow_id=workflow_id)

    if data.get("mfa_required") is True:
        return MfaRequired()

    challenge = data.get("challenge")
    if isinstance(challenge, dict):
        challenge_id = challenge.get("id")
        return ChallengeRequired(challenge_id=challenge_id if isinstance(challenge_id, str) else "")

    if response.status_code >= 400:
        detail = data.get("detail")
        return LoginRejected(
            status_code=response.status_code,
            detail=detail if isinstance(detail, str) and detail else None,
        )

    return TokenGranted(data=data)


def build_login_payload(
    username: str,
    password: str,
    mfa_code: str,
    device_token: str,
) -> dict:
    return {
        "username": username,
        "password": password,
        "mfa_code": mfa_code,
        "device_token": device_token,
        "client_id": CLIENT_ID,
        "grant_type": "password",
        "scope": "internal",
        "expires_in": str(TOKEN_LIFETIME),
        "challenge_type": "email",
    }


def build_refresh_payload(refresh_token: str, device_token: str) -> dict:
    return {
        "client_id": CLIENT_ID,
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "device_token": device_token,
        "scope": "internal",
    }


def _credential_from_grant(data: dict, device_token: str) -> Credential:
    def text(key: str) -> str:
        value = data.get(key)
        return value if isinstance(value, str) else ""

    return Credential(
        access_token=text("access_token"),
        refresh_token=text("refresh_token"),
        token_type=text("token_type") or "Bearer",
        device_token=device_token,
        expires_in=coerce_int(data.get("expires_in")),
        issued_at=datetime.now(timezone.utc),
    )


# =============================================================================
# Public API
# =============================================================================

def login(
    client: RobinhoodClient,
    session: Session,
    username: str,
    password: str,
    mfa_code: str = "",
    *,
    token_dir: Optional[str] = None,
    verification_config: Optional[VerificationConfig] = None,
    clock: Optional[SystemClock] = None,
    cancel: Optional[CancelToken] = None,
) -> Credential:
    """
    Log in and install the resulting credential on ``session``.

    A stored, unexpired credential for ``username`` is reused without
    touching the network. Otherwise a password grant is posted; if the
    server opens a verification workflow it is driven to approval and
    the grant is posted once more.

    Args:
        client: Transport to use
        session: Caller-owned session that receives the credential
        username: Login identity
        password: Account password
        mfa_code: Current MFA code, if the account uses one
        token_dir: Credential directory override
        verification_config: Polling timings for identity verification
        clock: Clock used by the verification polling loops
        cancel: Cancellation token for every request and wait

    Returns:
        The active credential

    Raises:
        MfaRequiredError: The account needs ``mfa_code``
        ChallengeRequiredError: The server issued a challenge
        VerificationError: Identity verification failed or timed out
        AuthenticationError: The server rejected the login
        TransportError: A request failed
        CredentialStoreError: The credential could not be saved
    """
    stored = load_credential(username, token_dir)
    if stored is not None:
        logger.info(f"Using stored credential for {username}")
        session.username = username
        session.set_credential(stored)
        return stored

    device_token = generate_device_token()
    payload = build_login_payload(username, password, mfa_code, device_token)
    login_url = urls.login_url(client.base_url)

    response = client.post(login_url, payload, cancel=cancel)
    outcome = decode_login_response(response)

    if isinstance(outcome, VerificationRequired):
        logger.info("Identity verification required, starting workflow")
        verify_identity(
            client,
            device_token,
            outcome.workflow_id,
            config=verification_config,
            clock=clock,
            cancel=cancel,
        )
        logger.info("Retrying login after identity verification")
        response = client.post(login_url, payload, cancel=cancel)
        outcome = decode_login_response(response)
        if isinstance(outcome, VerificationRequired):
            raise VerificationError(
                "server requested verification again after approval"
            )

    if isinstance(outcome, MfaRequired):
        raise MfaRequiredError("MFA required but not provided")

    if isinstance(outcome, ChallengeRequired):
        raise ChallengeRequiredError(
            f"challenge required: {outcome.challenge_id}",
            challenge_id=outcome.challenge_id,
        )

    if isinstance(outcome, LoginRejected):
        if outcome.detail:
            message = f"login failed: {outcome.detail}"
        else:
            message = f"login failed: status {outcome.status_code}"
        raise AuthenticationError(message, status_code=outcome.status_code)

    credential = _credential_from_grant(outcome.data, device_token)
    if not credential.access_token:
        raise AuthenticationError("no access token in response", status_code=response.status_code)

    credential = save_credential(username, credential, token_dir)
    session.username = username
    session.set_credential(credential)
    logger.info(f"Logged in as {username}")
    return credential


def refresh(
    client: RobinhoodClient,
    session: Session,
    refresh_token: str,
    device_token: str,
    *,
    token_dir: Optional[str] = None,
    cancel: Optional[CancelToken] = None,
) -> Credential:
    """
    Exchange a refresh token for a new credential.

    The new credential replaces the session's, and is stored when the
    session knows its username.

    Raises:
        TokenRefreshError: The server refused the refresh
        TransportError: The request failed
    """
    response = client.post(
        urls.login_url(client.base_url),
        build_refresh_payload(refresh_token, device_token),
        cancel=cancel,
    )

    if response.status_code >= 400:
        detail = response.data.get("detail")
        raise TokenRefreshError(
            f"refresh failed: {detail}" if detail else f"refresh failed: status {response.status_code}",
            status_code=response.status_code,
        )

    credential = _credential_from_grant(response.data, device_token)
    if not credential.access_token:
        raise TokenRefreshError("no access token in refresh response")

    if session.username:
        credential = save_credential(session.username, credential, token_dir)
    session.set_credential(credential)
    logger.info("Access token refreshed")
    return credential


def ensure_fresh(
    client: RobinhoodClient,
    session: Session,
    *,
    threshold: float = REFRESH_THRESHOLD_SECONDS,
    token_dir: Optional[str] = None,
    cancel: Optional[CancelToken] = None,
) -> Credential:
    """
    Return the session's credential, refreshing it first if it is close
    to expiry and a refresh token is available.

    Raises:
        NotAuthenticatedError: The session has no credential
    """
    credential = session.credential
    if credential is None or not credential.access_token:
        raise NotAuthenticatedError("not authenticated")

    if credential.refresh_token and credential.expires_within(threshold):
        return refresh(
            client,
            session,
            credential.refresh_token,
            credential.device_token,
            token_dir=token_dir,
            cancel=cancel,
        )
    return credential


def logout(
    session: Session,
    username: Optional[str] = None,
    *,
    token_dir: Optional[str] = None,
) -> None:
    """Forget the stored credential and clear the session."""
    identity = username or session.username
    if identity and delete_credential(identity, token_dir):
        logger.info(f"Removed stored credential for {identity}")
    session.clear()
