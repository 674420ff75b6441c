"""
Exception classes for robinstock.
"""

from typing import Optional


class RobinstockError(Exception):
    """Base exception for robinstock errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(RobinstockError):
    """Request could not be completed or the response could not be decoded."""
    pass


class NotAuthenticatedError(RobinstockError):
    """An authenticated call was attempted without a credential."""
    pass


class OperationCancelledError(RobinstockError):
    """The operation was cancelled through its cancel token."""
    pass


class DeadlineExceededError(OperationCancelledError):
    """The cancel token's deadline passed before the operation finished."""
    pass


class CredentialStoreError(RobinstockError):
    """Failed to persist a credential."""
    pass


class DeviceTokenError(RobinstockError):
    """The secure random source failed while generating a device token."""
    pass


class AuthenticationError(RobinstockError):
    """Login was rejected by the server."""
    pass


class MfaRequiredError(AuthenticationError):
    """The account requires an MFA code that was not supplied."""
    pass


class ChallengeRequiredError(AuthenticationError):
    """The server asked for a challenge response before issuing a token."""

    def __init__(self, message: str, challenge_id: Optional[str] = None):
        super().__init__(message)
        self.challenge_id = challenge_id


class TokenRefreshError(AuthenticationError):
    """Failed to refresh the access token."""
    pass


class VerificationError(AuthenticationError):
    """The identity verification workflow did not complete."""

    def __init__(
        self,
        message: str,
        challenge_id: Optional[str] = None,
        status: Optional[str] = None,
    ):
        super().__init__(message)
        self.challenge_id = challenge_id
        self.status = status


class VerificationTimeoutError(VerificationError):
    """A verification polling loop ran out of time."""

    stage = "verification"

    def __init__(
        self,
        message: str,
        timeout: float,
        challenge_id: Optional[str] = None,
        status: Optional[str] = None,
    ):
        super().__init__(message, challenge_id=challenge_id, status=status)
        self.timeout = timeout


class InquiryTimeoutError(VerificationTimeoutError):
    """No inquiry data arrived within the inquiry budget."""

    stage = "inquiry"


class ChallengeTimeoutError(VerificationTimeoutError):
    """The challenge was not validated within the challenge budget."""

    stage = "challenge"
