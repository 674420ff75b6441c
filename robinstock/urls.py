"""Endpoint URLs for the Robinhood API."""

from typing import Optional

from ._config import get_base_url


def _base(base_url: Optional[str]) -> str:
    return (base_url or get_base_url()).rstrip("/")


# Authentication

def login_url(base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/oauth2/token/"


def user_machine_url(base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/pathfinder/user_machine/"


def inquiry_url(machine_id: str, base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/pathfinder/inquiries/{machine_id}/user_view/"


def challenge_status_url(challenge_id: str, base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/push/{challenge_id}/get_prompts_status/"


# Account and market data

def accounts_url(base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/accounts/"


def positions_url(base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/positions/"


def quotes_url(base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/quotes/"


def user_profile_url(base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/user/"


def markets_url(base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/markets/"
