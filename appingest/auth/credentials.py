import base64
import getpass
import os
from typing import Optional

from dotenv import load_dotenv


def basic_auth_header(username: str, password: str) -> str:
    """
    Build the value of an HTTP Basic Authorization header.

    :param username: UEM console account (may include a domain prefix).
    :param password: Account password.
    :return: "Basic <base64(username:password)>"
    """
    token = base64.b64encode(f"{username}:{password}".encode("utf-8"))
    return f"Basic {token.decode('ascii')}"


class CredentialManager:
    """
    Loads UEM_* environment variables (optionally from .env) and falls back
    to interactive prompts for anything missing. The password is read with
    getpass and never echoed.
    """

    def __init__(self, env_prefix: str = "UEM_", interactive: bool = True) -> None:
        """
        :param env_prefix: Prefix used for environment variables.
        :param interactive: Prompt for missing values instead of returning None.
        """
        load_dotenv()
        self.env_prefix = env_prefix
        self.interactive = interactive

    # --------------------------------------------------------------------- #
    # Helper: read optional env var
    # --------------------------------------------------------------------- #
    def env(self, key: str) -> Optional[str]:
        value = os.getenv(f"{self.env_prefix}{key}")
        if value is None or not value.strip():
            return None
        return value.strip()

    # --------------------------------------------------------------------- #
    # Prompts
    # --------------------------------------------------------------------- #
    def prompt(self, label: str) -> Optional[str]:
        if not self.interactive:
            return None
        value = input(f"Enter {label}: ").strip()
        return value or None

    def get_password(self) -> Optional[str]:
        password = self.env("PASSWORD")
        if password is not None:
            return password
        if not self.interactive:
            return None
        return getpass.getpass("Enter password: ") or None
