from __future__ import annotations

import getpass
from typing import Protocol

from pydantic import SecretStr

from spconnect.credentials.store import Credential

DEFAULT_PROMPT_TITLE = "Enter your credentials"


class CredentialPrompt(Protocol):
    """Asks the user for a credential; returns ``None`` when cancelled."""

    def __call__(self, title: str) -> Credential | None:
        raise NotImplementedError


class ConsolePrompt:
    """Prompt on the terminal; an empty username or Ctrl+C/Ctrl+D cancels."""

    def __call__(self, title: str) -> Credential | None:
        print(title)
        try:
            username = input("User name: ").strip()
            if not username:
                return None
            password = getpass.getpass("Password: ")
        except (EOFError, KeyboardInterrupt):
            return None
        return Credential(username=username, password=SecretStr(password))
