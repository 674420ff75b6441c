"""Identity verification ("Sheriff") workflow.

Risky logins come back with a ``verification_workflow`` instead of a
token. Clearing it takes four steps, each its own state:

    STARTING            POST pathfinder/user_machine/       -> machine id
    AWAITING_INQUIRY    GET  pathfinder/inquiries/<id>/...  -> challenge id
    AWAITING_CHALLENGE  GET  push/<challenge>/get_prompts_status/
                        until the user approves the prompt
    COMPLETING          POST the inquiry URL with "continue"

The inquiry and challenge loops each have their own wall-clock budget,
measured from the moment the loop is entered. A verifier runs once; it
cannot be resumed.
"""

import logging
from enum import Enum
from typing import Any, Optional

from . import urls
from ._config import VerificationConfig
from .client import RobinhoodClient
from .errors import (
    ChallengeTimeoutError,
    InquiryTimeoutError,
    TransportError,
    VerificationError,
)
from .models import Response
from .polling import Budget, CancelToken, SystemClock

logger = logging.getLogger(__name__)

CHALLENGE_ISSUED = "issued"
CHALLENGE_VALIDATED = "validated"
WORKFLOW_APPROVED = "workflow_status_approved"


class VerificationState(str, Enum):
    """Verification workflow states."""
    PENDING = "pending"
    STARTING = "starting"
    AWAITING_INQUIRY = "awaiting_inquiry"
    AWAITING_CHALLENGE = "awaiting_challenge"
    VALIDATED = "validated"
    COMPLETING = "completing"
    APPROVED = "approved"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def _get_str(data: Any, key: str) -> str:
    if isinstance(data, dict):
        value = data.get(key)
        if isinstance(value, str):
            return value
    return ""


def build_machine_payload(device_token: str, workflow_id: str) -> dict:
    return {
        "device_id": device_token,
        "flow": "suv",
        "input": {"workflow_id": workflow_id},
    }


def build_continue_payload() -> dict:
    return {"sequence": 0, "user_input": {"status": "continue"}}


class IdentityVerifier:
    """
    Drives one verification workflow to approval or failure.

    Example:
        verifier = IdentityVerifier(client)
        verifier.run(device_token, workflow_id)

    Raises from ``run``:
        VerificationError: Missing ids, malformed inquiry, unexpected
            challenge status, or approval failure
        InquiryTimeoutError: No inquiry data within the inquiry budget
        ChallengeTimeoutError: Challenge not validated within its budget
        OperationCancelledError: The cancel token fired
    """

    def __init__(
        self,
        client: RobinhoodClient,
        config: Optional[VerificationConfig] = None,
        clock: Optional[SystemClock] = None,
    ):
        self.client = client
        self.config = config or VerificationConfig.from_env()
        self.clock = clock or SystemClock()
        self.state = VerificationState.PENDING
        self.machine_id: Optional[str] = None
        self.challenge_id: Optional[str] = None
        self.last_status: Optional[str] = None

    def run(
        self,
        device_token: str,
        workflow_id: str,
        cancel: Optional[CancelToken] = None,
    ) -> None:
        """Run the workflow to approval."""
        if self.state != VerificationState.PENDING:
            raise RuntimeError(f"verifier already ran (state: {self.state.value})")

        logger.info(f"Starting identity verification workflow {workflow_id}")
        try:
            self.machine_id = self._start(device_token, workflow_id, cancel)
            inquiry_url = urls.inquiry_url(self.machine_id, self.client.base_url)
            self.challenge_id = self._await_inquiry(inquiry_url, cancel)
            self._await_challenge(self.challenge_id, cancel)
            self._complete(inquiry_url, cancel)
        except (InquiryTimeoutError, ChallengeTimeoutError):
            self._transition(VerificationState.TIMED_OUT)
            raise
        except Exception:
            self._transition(VerificationState.FAILED)
            raise

    def _transition(self, state: VerificationState) -> None:
        logger.debug(f"Verification state {self.state.value} -> {state.value}")
        self.state = state

    def _start(
        self,
        device_token: str,
        workflow_id: str,
        cancel: Optional[CancelToken],
    ) -> str:
        self._transition(VerificationState.STARTING)
        try:
            response = self.client.post(
                urls.user_machine_url(self.client.base_url),
                build_machine_payload(device_token, workflow_id),
                cancel=cancel,
            )
        except TransportError as e:
            raise VerificationError(f"failed to start verification: {e}") from e

        if response.is_empty:
            raise VerificationError("no data in verification start response")

        machine_id = _get_str(response.data, "id")
        if not machine_id:
            raise VerificationError("no machine ID in verification start response")
        return machine_id

    def _await_inquiry(self, inquiry_url: str, cancel: Optional[CancelToken]) -> str:
        self._transition(VerificationState.AWAITING_INQUIRY)
        config = self.config
        budget = Budget(config.inquiry_timeout, self.clock)
        inquiry: Optional[dict] = None

        while not budget.exhausted:
            try:
                response = self.client.get(inquiry_url, cancel=cancel)
            except TransportError as e:
                logger.debug(f"Inquiry poll failed, retrying: {e}")
            else:
                if not response.is_empty:
                    inquiry = response.data
                    break
                logger.debug("Inquiry not ready, retrying")
            self.clock.sleep(config.inquiry_poll_interval, cancel)

        if inquiry is None:
            raise InquiryTimeoutError(
                f"no inquiry data within {config.inquiry_timeout:g}s",
                timeout=config.inquiry_timeout,
            )

        context = inquiry.get("context")
        if not isinstance(context, dict):
            raise VerificationError("no context in inquiry data")

        challenge = context.get("sheriff_challenge")
        if not isinstance(challenge, dict):
            raise VerificationError("no sheriff_challenge in inquiry context")

        challenge_id = _get_str(challenge, "id")
        if not challenge_id:
            raise VerificationError("no challenge ID in inquiry context")
        return challenge_id

    def _await_challenge(self, challenge_id: str, cancel: Optional[CancelToken]) -> None:
        self._transition(VerificationState.AWAITING_CHALLENGE)
        config = self.config
        status_url = urls.challenge_status_url(challenge_id, self.client.base_url)
        budget = Budget(config.challenge_timeout, self.clock)

        while not budget.exhausted:
            try:
                response: Optional[Response] = self.client.get(status_url, cancel=cancel)
            except TransportError as e:
                logger.debug(f"Challenge status poll failed, retrying: {e}")
                response = None

            if response is None or response.is_empty:
                self.clock.sleep(config.challenge_retry_interval, cancel)
                continue

            status = _get_str(response.data, "challenge_status")
            self.last_status = status
            logger.debug(f"Challenge {challenge_id} status: {status}")

            if status == CHALLENGE_VALIDATED:
                logger.info(f"Challenge {challenge_id} validated")
                self._transition(VerificationState.VALIDATED)
                return
            if status == CHALLENGE_ISSUED:
                self.clock.sleep(config.challenge_pending_interval, cancel)
                continue

            logger.warning(f"Unexpected challenge status for {challenge_id}: {status!r}")
            raise VerificationError(
                f"unexpected challenge status: {status!r}",
                challenge_id=challenge_id,
                status=status,
            )

        raise ChallengeTimeoutError(
            f"challenge {challenge_id} not validated within {config.challenge_timeout:g}s",
            timeout=config.challenge_timeout,
            challenge_id=challenge_id,
            status=self.last_status,
        )

    def _complete(self, inquiry_url: str, cancel: Optional[CancelToken]) -> None:
        self._transition(VerificationState.COMPLETING)
        try:
            response = self.client.post(inquiry_url, build_continue_payload(), cancel=cancel)
        except TransportError as e:
            raise VerificationError(
                f"workflow approval failed after validation: {e}",
                challenge_id=self.challenge_id,
                status=self.last_status,
            ) from e

        result = _get_str(response.data.get("type_context"), "result")
        if result != WORKFLOW_APPROVED:
            raise VerificationError(
                "workflow approval failed after validation",
                challenge_id=self.challenge_id,
                status=result or None,
            )

        logger.info("Verification workflow approved")
        self._transition(VerificationState.APPROVED)


def verify_identity(
    client: RobinhoodClient,
    device_token: str,
    workflow_id: str,
    *,
    config: Optional[VerificationConfig] = None,
    clock: Optional[SystemClock] = None,
    cancel: Optional[CancelToken] = None,
) -> IdentityVerifier:
    """Run a verification workflow and return the finished verifier."""
    verifier = IdentityVerifier(client, config=config, clock=clock)
    verifier.run(device_token, workflow_id, cancel=cancel)
    return verifier
