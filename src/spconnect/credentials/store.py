"""Local secret stores queried by address.

A store maps a free-form key (normally a site address or a label) to a
username/password pair. Stores are read-only from the point of view of the
connect path; ``save`` exists for provisioning.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Protocol

import keyring
from azure.core.exceptions import ResourceNotFoundError
from azure.identity import AzureCliCredential, DefaultAzureCredential, ManagedIdentityCredential
from azure.keyvault.secrets import SecretClient
from pydantic import BaseModel, ConfigDict, SecretStr

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

logger = logging.getLogger(__name__)


class Credential(BaseModel):
    """An explicit username/password pair."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: SecretStr


class SecretStore(Protocol):
    """Anything that can look up a credential by key."""

    def lookup(self, key: str) -> Credential | None:
        """Return the credential stored under ``key`` or ``None``."""
        raise NotImplementedError


class KeyringSecretStore:
    """Secret store backed by the operating system keyring.

    On Windows this reads generic credentials from the Credential Manager,
    where the key is the credential's target name; elsewhere it uses the
    platform keyring (Keychain, Secret Service).
    """

    def __init__(self, username: str | None = None) -> None:
        """
        Args:
            username: Restrict lookups to this account. ``None`` accepts any
                account stored for the key.
        """
        self._username = username

    def lookup(self, key: str) -> Credential | None:
        stored = keyring.get_credential(key, self._username)
        if stored is None or stored.password is None:
            return None
        return Credential(username=stored.username, password=SecretStr(stored.password))

    def save(self, key: str, credential: Credential) -> None:
        keyring.set_password(
            key, credential.username, credential.password.get_secret_value()
        )


_INVALID_SECRET_NAME_CHARS = re.compile(r"[^0-9A-Za-z-]+")


def secret_name_from_key(key: str) -> str:
    """Map an address to a valid Key Vault secret name.

    Key Vault names only allow alphanumerics and dashes, so every other run of
    characters becomes a single dash: ``https://contoso.example/sites/a`` maps
    to ``https-contoso-example-sites-a``.
    """
    name = _INVALID_SECRET_NAME_CHARS.sub("-", key).strip("-")
    if not name:
        raise ValueError(f"Cannot derive a secret name from {key!r}")
    return name[:127]


class KeyVaultSecretStore:
    """Secret store backed by an Azure Key Vault.

    Each credential is one secret whose value is a JSON object with
    ``username`` and ``password`` members.
    """

    CONTENT_TYPE = "application/json"

    def __init__(
        self,
        keyvault_url: str,
        local_run: bool = True,
        managed_identity_client_id: str | None = None,
        client: SecretClient | None = None,
    ) -> None:
        """
        Args:
            keyvault_url: The URL of the Key Vault.
            local_run: Use the Azure CLI login instead of a managed identity.
            managed_identity_client_id: Client id for ManagedIdentityCredential.
            client: Pre-built secret client, mostly for tests.
        """
        self.keyvault_url = keyvault_url
        self.local_run = local_run
        self.managed_identity_client_id = managed_identity_client_id
        self.client = client or SecretClient(
            vault_url=keyvault_url, credential=self._get_credential()
        )

    def _get_credential(self) -> "TokenCredential":
        if self.local_run:
            return AzureCliCredential()
        if self.managed_identity_client_id is not None:
            return ManagedIdentityCredential(client_id=self.managed_identity_client_id)
        return DefaultAzureCredential()

    def lookup(self, key: str) -> Credential | None:
        try:
            secret = self.client.get_secret(secret_name_from_key(key))
        except ResourceNotFoundError:
            return None
        if not secret.value:
            return None
        try:
            payload = json.loads(secret.value)
            return Credential(
                username=payload["username"], password=SecretStr(payload["password"])
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring malformed credential secret %s", secret.name)
            return None

    def save(self, key: str, credential: Credential) -> None:
        value = json.dumps(
            {
                "username": credential.username,
                "password": credential.password.get_secret_value(),
            }
        )
        self.client.set_secret(
            secret_name_from_key(key), value, content_type=self.CONTENT_TYPE
        )
