"""
Local credential storage for robinstock.

Stores issued credentials locally to avoid logging in (and possibly
triggering identity verification) on every run. One JSON file per
identity in ~/.tokens/ unless ROBINSTOCK_TOKEN_DIR says otherwise.

There is no file locking: concurrent logins for the same identity
race on the file and the last write wins.
"""

import json
import logging
import os
from typing import Optional

from ._config import get_token_dir
from .errors import CredentialStoreError
from .models import Credential

logger = logging.getLogger(__name__)


def _get_tokens_dir(directory: Optional[str] = None) -> str:
    """Get path to the credentials directory."""
    return os.path.expanduser(directory) if directory else get_token_dir()


def _ensure_tokens_dir(directory: Optional[str] = None) -> str:
    """Create the credentials directory owner-only. Only writes call this."""
    tokens_dir = _get_tokens_dir(directory)
    os.makedirs(tokens_dir, mode=0o700, exist_ok=True)
    os.chmod(tokens_dir, 0o700)
    return tokens_dir


def credential_path(identity: str, directory: Optional[str] = None) -> str:
    """Get path to the credential file for an identity."""
    # Sanitize identity for filename
    safe_name = identity.replace("/", "_").replace("\\", "_").replace(":", "_")
    filename = f"robinhood_{safe_name}.json"
    return os.path.join(_get_tokens_dir(directory), filename)


def load_credential(identity: str, directory: Optional[str] = None) -> Optional[Credential]:
    """Load the stored credential for an identity.

    An expired credential is deleted from disk.

    Returns:
        The credential, or None if nothing usable is stored.
    """
    path = credential_path(identity, directory)
    if not os.path.exists(path):
        return None

    try:
        with open(path, "r") as f:
            credential = Credential.from_dict(json.load(f))
        expired = credential.is_expired()
    except (OSError, ValueError, OverflowError) as e:
        logger.debug(f"Ignoring unreadable credential file {path}: {e}")
        return None

    if expired:
        logger.info(f"Stored credential for {identity} has expired, removing it")
        try:
            _remove(path)
        except OSError as e:
            logger.warning(f"Could not remove expired credential {path}: {e}")
        return None

    return credential


def save_credential(
    identity: str,
    credential: Credential,
    directory: Optional[str] = None,
) -> Credential:
    """Save a credential, replacing any earlier one for the identity.

    Returns:
        The credential as written, with ``issued_at`` stamped if it was unset.

    Raises:
        CredentialStoreError: If the file cannot be written.
    """
    if credential.issued_at is None:
        credential = credential.with_issued_at()

    try:
        _ensure_tokens_dir(directory)
        path = credential_path(identity, directory)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(credential.to_dict(), f, indent=2)
        os.chmod(path, 0o600)  # Restrict permissions
    except OSError as e:
        raise CredentialStoreError(f"failed to save credential for {identity}: {e}") from e

    logger.debug(f"Saved credential for {identity} to {path}")
    return credential


def delete_credential(identity: str, directory: Optional[str] = None) -> bool:
    """Delete the stored credential for an identity."""
    return _remove(credential_path(identity, directory))


def _remove(path: str) -> bool:
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
