"""
robinstock configuration - environment variables with built-in defaults.

Configuration Priority:
1. Environment variables (highest priority)
2. Default values (lowest priority)

Environment Variables:
    ROBINSTOCK_BASE_URL        - API base URL (default: https://api.robinhood.com)
    ROBINSTOCK_TOKEN_DIR       - Directory for stored credentials (default: ~/.tokens)
    ROBINSTOCK_TIMEOUT         - Request timeout in seconds (default: 10)
    ROBINSTOCK_USERNAME        - Default login identity for the CLI
    ROBINSTOCK_PASSWORD        - Default password for the CLI
    ROBINSTOCK_MFA_CODE        - Default MFA code for the CLI

Verification timing (seconds):
    ROBINSTOCK_INQUIRY_TIMEOUT             - Inquiry wait budget (default: 20)
    ROBINSTOCK_INQUIRY_POLL_INTERVAL       - Inquiry poll cadence (default: 4)
    ROBINSTOCK_CHALLENGE_TIMEOUT           - Challenge resolution budget (default: 120)
    ROBINSTOCK_CHALLENGE_PENDING_INTERVAL  - Wait while challenge is "issued" (default: 15)
    ROBINSTOCK_CHALLENGE_RETRY_INTERVAL    - Wait after an empty/failed poll (default: 5)
"""

import os
from dataclasses import dataclass
from typing import Optional

API_BASE_URL = "https://api.robinhood.com"
CLIENT_ID = "c82SH0WZOsabOXGP2sxqcj34FxkvfnWRZBKlBjFS"
API_VERSION = "1.431.4"

_DEFAULT_CONFIG = {
    "base_url": API_BASE_URL,
    "token_dir": os.path.join("~", ".tokens"),
    "timeout": 10.0,
    "username": None,
    "password": None,
    "mfa_code": None,
}


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, ignoring unparseable values."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _load_config() -> dict:
    """
    Load configuration from environment variables with default fallback.
    """
    config = _DEFAULT_CONFIG.copy()

    if env_url := os.getenv("ROBINSTOCK_BASE_URL"):
        config["base_url"] = env_url.rstrip("/")

    if env_dir := os.getenv("ROBINSTOCK_TOKEN_DIR"):
        config["token_dir"] = env_dir

    config["timeout"] = _env_float("ROBINSTOCK_TIMEOUT", config["timeout"])

    if env_username := os.getenv("ROBINSTOCK_USERNAME"):
        config["username"] = env_username

    if env_password := os.getenv("ROBINSTOCK_PASSWORD"):
        config["password"] = env_password

    if env_mfa := os.getenv("ROBINSTOCK_MFA_CODE"):
        config["mfa_code"] = env_mfa

    return config


CONFIG = _load_config()


@dataclass
class VerificationConfig:
    """Timing for the identity verification polling loops.

    The defaults reflect observed service behavior and can drift, so
    every value may be overridden per call or through the environment.
    """
    inquiry_timeout: float = 20.0
    inquiry_poll_interval: float = 4.0
    challenge_timeout: float = 120.0
    challenge_pending_interval: float = 15.0
    challenge_retry_interval: float = 5.0

    @classmethod
    def from_env(cls) -> "VerificationConfig":
        defaults = cls()
        return cls(
            inquiry_timeout=_env_float(
                "ROBINSTOCK_INQUIRY_TIMEOUT", defaults.inquiry_timeout
            ),
            inquiry_poll_interval=_env_float(
                "ROBINSTOCK_INQUIRY_POLL_INTERVAL", defaults.inquiry_poll_interval
            ),
            challenge_timeout=_env_float(
                "ROBINSTOCK_CHALLENGE_TIMEOUT", defaults.challenge_timeout
            ),
            challenge_pending_interval=_env_float(
                "ROBINSTOCK_CHALLENGE_PENDING_INTERVAL",
                defaults.challenge_pending_interval,
            ),
            challenge_retry_interval=_env_float(
                "ROBINSTOCK_CHALLENGE_RETRY_INTERVAL",
                defaults.challenge_retry_interval,
            ),
        )


def get_base_url() -> str:
    """Get the API base URL."""
    return CONFIG.get("base_url", API_BASE_URL)


def get_token_dir() -> str:
    """Get the credential directory with ``~`` expanded."""
    return os.path.expanduser(CONFIG.get("token_dir") or _DEFAULT_CONFIG["token_dir"])


def get_timeout() -> float:
    """Get the request timeout in seconds."""
    return CONFIG.get("timeout", _DEFAULT_CONFIG["timeout"])


def get_default_username() -> Optional[str]:
    """Get the login identity configured in the environment."""
    return CONFIG.get("username")


def get_default_password() -> Optional[str]:
    """Get the password configured in the environment."""
    return CONFIG.get("password")


def get_default_mfa_code() -> Optional[str]:
    """Get the MFA code configured in the environment."""
    return CONFIG.get("mfa_code")


def reload_config():
    """Reload configuration from environment variables."""
    global CONFIG
    CONFIG = _load_config()
