"""Pytest fixtures for robinstock tests."""

from typing import Optional

import pytest

from robinstock._config import VerificationConfig
from robinstock.models import Response

BASE_URL = "https://api.robinhood.com"
LOGIN_URL = f"{BASE_URL}/oauth2/token/"
MACHINE_URL = f"{BASE_URL}/pathfinder/user_machine/"


def inquiry_url(machine_id: str) -> str:
    return f"{BASE_URL}/pathfinder/inquiries/{machine_id}/user_view/"


def status_url(challenge_id: str) -> str:
    return f"{BASE_URL}/push/{challenge_id}/get_prompts_status/"


class FakeClock:
    """Clock whose sleeps advance time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float, cancel=None) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedTransport:
    """Stands in for RobinhoodClient, answering requests by method and URL.

    Each route holds a queue of answers; the last answer repeats once the
    queue runs dry. An exception instance in the queue is raised.
    """

    def __init__(self, clock: Optional[FakeClock] = None, request_cost: float = 0.0):
        self.base_url = BASE_URL
        self.calls = []
        self._routes = {}
        self._clock = clock
        self._request_cost = request_cost

    def add(self, method: str, url: str, *answers):
        self._routes.setdefault((method, url), []).extend(answers)
        return self

    def get(self, url, params=None, **kwargs):
        return self._answer("GET", url, None, kwargs)

    def post(self, url, payload=None, **kwargs):
        return self._answer("POST", url, payload, kwargs)

    def count(self, method: str, url: str) -> int:
        return sum(1 for m, u, _ in self.calls if m == method and u == url)

    def payloads(self, method: str, url: str) -> list:
        return [p for m, u, p in self.calls if m == method and u == url]

    def _answer(self, method, url, payload, kwargs):
        cancel = kwargs.get("cancel")
        if cancel is not None:
            cancel.raise_if_cancelled()
        self.calls.append((method, url, payload))
        if self._clock is not None:
            self._clock.now += self._request_cost

        queue = self._routes.get((method, url))
        if not queue:
            raise AssertionError(f"unexpected request: {method} {url}")
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


def ok(data: Optional[dict] = None, status: int = 200) -> Response:
    return Response(status_code=status, data=data or {})


@pytest.fixture
def token_dir(tmp_path):
    """Private credential directory for one test."""
    return str(tmp_path / "tokens")


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def transport(fake_clock):
    return ScriptedTransport(clock=fake_clock)


@pytest.fixture
def verification_config():
    """Default verification timings."""
    return VerificationConfig()


@pytest.fixture
def token_grant():
    """Successful password grant body."""
    return {
        "access_token": "access-abc",
        "refresh_token": "refresh-xyz",
        "token_type": "Bearer",
        "expires_in": 86400,
        "scope": "internal",
    }


@pytest.fixture
def verification_transport(transport, token_grant):
    """Transport scripted for a full verification round trip.

    The challenge is reported as issued once, then validated.
    """
    transport.add(
        "POST", LOGIN_URL,
        ok({"verification_workflow": {"id": "wf-1", "workflow_status": "internal_pending"}}, 403),
        ok(token_grant),
    )
    transport.add("POST", MACHINE_URL, ok({"id": "machine-1"}))
    transport.add(
        "GET", inquiry_url("machine-1"),
        ok({"context": {"sheriff_challenge": {"id": "challenge-1", "type": "prompt"}}}),
    )
    transport.add(
        "GET", status_url("challenge-1"),
        ok({"challenge_status": "issued"}),
        ok({"challenge_status": "validated"}),
    )
    transport.add(
        "POST", inquiry_url("machine-1"),
        ok({"type_context": {"result": "workflow_status_approved"}}),
    )
    return transport
