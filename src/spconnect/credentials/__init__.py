"""Stored credential lookup.

Public API:
- SecretStore (protocol), KeyringSecretStore, KeyVaultSecretStore
- CredentialResolver, ResolvedCredential
"""

from .resolver import CredentialResolver, ResolvedCredential, candidates
from .store import Credential, KeyringSecretStore, KeyVaultSecretStore, SecretStore

__all__ = [
    "Credential",
    "CredentialResolver",
    "KeyringSecretStore",
    "KeyVaultSecretStore",
    "ResolvedCredential",
    "SecretStore",
    "candidates",
]
