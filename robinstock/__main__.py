"""
robinstock CLI - Run with: python -m robinstock

Commands:
    login     - Log in and store the credential
    logout    - Remove the stored credential
    status    - Show the stored credential for a user
"""

import getpass
import logging
import sys
from typing import Optional

from robinstock._config import (
    get_default_mfa_code,
    get_default_password,
    get_default_username,
)
from robinstock._credentials import credential_path, load_credential
from robinstock.auth import login, logout
from robinstock.client import RobinhoodClient
from robinstock.errors import (
    ChallengeRequiredError,
    MfaRequiredError,
    RobinstockError,
    VerificationError,
)
from robinstock.models import Session


def _pop_option(args: list[str], name: str) -> Optional[str]:
    """Remove ``name VALUE`` from args and return VALUE."""
    if name in args:
        index = args.index(name)
        if index + 1 >= len(args):
            raise ValueError(f"{name} needs a value")
        value = args[index + 1]
        del args[index:index + 2]
        return value
    return None


def _pop_flag(args: list[str], name: str) -> bool:
    if name in args:
        args.remove(name)
        return True
    return False


def _resolve_username(args: list[str]) -> Optional[str]:
    if args:
        return args[0]
    return get_default_username()


def cmd_login(args: list[str]) -> int:
    """Log in, running identity verification if the server asks for it."""
    mfa_code = _pop_option(args, "--mfa") or get_default_mfa_code() or ""
    username = _resolve_username(args)
    if not username:
        print("Username required: python -m robinstock login <username>")
        return 1

    password = get_default_password()
    if password is None:
        try:
            password = getpass.getpass(f"Password for {username}: ")
        except (EOFError, KeyboardInterrupt):
            print()
            return 1

    session = Session(username=username)
    with RobinhoodClient() as client:
        try:
            credential = login(client, session, username, password, mfa_code)
        except MfaRequiredError:
            print("MFA code required. Re-run with --mfa CODE.")
            return 1
        except ChallengeRequiredError as e:
            print(f"Challenge required (id: {e.challenge_id}).")
            return 1
        except VerificationError as e:
            print(f"Identity verification failed: {e}")
            return 1
        except RobinstockError as e:
            print(f"Login failed: {e}")
            return 1

    print(f"Logged in as {username}")
    _print_credential(credential)
    return 0


def cmd_logout(args: list[str]) -> int:
    """Remove the stored credential."""
    username = _resolve_username(args)
    if not username:
        print("Username required: python -m robinstock logout <username>")
        return 1

    logout(Session(username=username))
    print(f"Logged out {username}")
    return 0


def cmd_status(args: list[str]) -> int:
    """Show the stored credential."""
    username = _resolve_username(args)
    if not username:
        print("Username required: python -m robinstock status <username>")
        return 1

    credential = load_credential(username)
    if credential is None:
        print(f"No valid stored credential for {username}")
        return 1

    print(f"Stored credential for {username}")
    print(f"  File: {credential_path(username)}")
    _print_credential(credential)
    return 0


def _print_credential(credential) -> None:
    expires_at = credential.expires_at
    print(f"  Token type: {credential.token_type}")
    print(f"  Device: {credential.device_token or '-'}")
    print(f"  Expires: {expires_at.isoformat() if expires_at else 'never'}")


def cmd_help(args: Optional[list[str]] = None) -> int:
    """Show help."""
    print(__doc__)
    print("Usage: python -m robinstock [--verbose] <command> [username]\n")
    print("Commands:")
    print("  login [username] [--mfa CODE]   Log in and store the credential")
    print("  logout [username]               Remove the stored credential")
    print("  status [username]               Show the stored credential")
    print("  help                            Show this help message")
    print("\nUsername, password and MFA code fall back to ROBINSTOCK_USERNAME,")
    print("ROBINSTOCK_PASSWORD and ROBINSTOCK_MFA_CODE.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = list(sys.argv[1:] if argv is None else argv)

    if _pop_flag(args, "--verbose") or _pop_flag(args, "-v"):
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    if not args:
        cmd_help()
        return 0

    command = args.pop(0).lower()

    commands = {
        "login": cmd_login,
        "logout": cmd_logout,
        "status": cmd_status,
        "help": cmd_help,
        "--help": cmd_help,
        "-h": cmd_help,
    }

    if command not in commands:
        print(f"Unknown command: {command}")
        cmd_help()
        return 1

    try:
        return commands[command](args)
    except ValueError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
