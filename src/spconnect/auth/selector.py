"""Map a :class:`ConnectRequest` to exactly one :data:`AuthStrategy`.

Selection happens in three steps:

1. Work out which input groups the request touches and reject combinations
   that belong to different strategies.
2. Pick the first matching group in priority order: app token, web login,
   ADFS, management shell, native AAD, app-only AAD, high trust, and finally
   the user credential group.
3. Check the chosen strategy's required fields and build it.

No network activity happens here. The only collaborators consulted are the
credential resolver (a local store) and, as a last resort, the prompt.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import SecretStr

from spconnect.credentials.resolver import CredentialResolver, ResolvedCredential
from spconnect.credentials.store import Credential
from spconnect.exceptions import (
    AuthFailed,
    ConflictingInputsError,
    CredentialUnresolved,
    ValidationError,
)

from .config import AuthenticationMode, ConnectRequest
from .prompt import DEFAULT_PROMPT_TITLE, CredentialPrompt
from .strategies import (
    Adfs,
    AppOnlyAAD,
    AppToken,
    AuthStrategy,
    CurrentUser,
    HighTrustCertificate,
    InteractiveCredential,
    ManagementShell,
    NativeAppAAD,
    StrategyKind,
    WebLogin,
)

logger = logging.getLogger(__name__)

CREDENTIAL_GROUP = "credential"

_AAD_KINDS = (
    StrategyKind.NATIVE_AAD,
    StrategyKind.APP_ONLY_AAD,
    StrategyKind.MANAGEMENT_SHELL,
)


def triggered_groups(request: ConnectRequest) -> list[str]:
    """Return the input groups ``request`` touches, highest priority first."""
    app_only = bool(
        request.tenant or request.certificate_path or request.certificate_password
    )
    high_trust = bool(
        request.high_trust_certificate_path
        or request.high_trust_certificate_password
        or request.high_trust_certificate_issuer_id
    )
    native = bool(request.redirect_uri) or bool(
        request.client_id and not app_only and not high_trust
    )
    app_token = bool(request.app_id or request.app_secret or request.realm)
    credential = (
        request.credentials is not None
        or request.current_user
        or request.authentication_mode is not AuthenticationMode.DEFAULT
    )

    flags = [
        (StrategyKind.APP_TOKEN.value, app_token),
        (StrategyKind.WEB_LOGIN.value, request.use_web_login),
        (StrategyKind.ADFS.value, request.use_adfs),
        (StrategyKind.MANAGEMENT_SHELL.value, request.management_shell),
        (StrategyKind.NATIVE_AAD.value, native),
        (StrategyKind.APP_ONLY_AAD.value, app_only),
        (StrategyKind.HIGH_TRUST.value, high_trust),
        (CREDENTIAL_GROUP, credential),
    ]
    return [name for name, on in flags if on]


def check_conflicts(request: ConnectRequest) -> list[str]:
    """Raise if ``request`` mixes inputs of different strategies.

    ADFS shares the explicit ``credentials`` input with the credential group;
    every other pairing is a conflict.

    Returns:
        The triggered groups, highest priority first.

    Raises:
        ConflictingInputsError: If the request touches more than one group.
    """
    groups = triggered_groups(request)
    exclusive = [g for g in groups if g != CREDENTIAL_GROUP]

    if len(exclusive) > 1:
        raise ConflictingInputsError(exclusive)

    if CREDENTIAL_GROUP in groups and exclusive:
        adfs_with_credentials = exclusive == [StrategyKind.ADFS.value] and not (
            request.current_user
            or request.authentication_mode is not AuthenticationMode.DEFAULT
        )
        if not adfs_with_credentials:
            raise ConflictingInputsError([*exclusive, CREDENTIAL_GROUP])

    if request.clear_token_cache and exclusive not in (
        [StrategyKind.NATIVE_AAD.value],
        [StrategyKind.MANAGEMENT_SHELL.value],
    ):
        raise ConflictingInputsError(
            [*(groups or [CREDENTIAL_GROUP]), "clear_token_cache"]
        )

    return groups


def _is_empty(value: Any) -> bool:
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if isinstance(value, str):
        return not value.strip()
    return value is None


def _require(kind: StrategyKind, request: ConnectRequest, *fields: str) -> None:
    for name in fields:
        if _is_empty(getattr(request, name)):
            raise ValidationError(kind.value, name)


def _check_build_flavour(kind: StrategyKind, request: ConnectRequest) -> None:
    if kind in _AAD_KINDS and request.on_premises:
        raise ValidationError(
            kind.value, message=f"{kind.value} is not available on premises."
        )
    if kind is StrategyKind.HIGH_TRUST and not request.on_premises:
        raise ValidationError(
            kind.value, message="high_trust is only available on premises."
        )


def _stored(found: ResolvedCredential) -> Credential:
    return Credential(username=found.username, password=found.password)


def _known_credential(
    request: ConnectRequest, resolver: CredentialResolver | None
) -> Credential | None:
    """Return the explicit or stored credential for ``request``, if any."""
    supplied = request.credentials
    if isinstance(supplied, Credential):
        return supplied
    if isinstance(supplied, str):
        found = resolver.lookup_label(supplied) if resolver is not None else None
        if found is None:
            raise CredentialUnresolved(supplied)
        return _stored(found)
    found = resolver.resolve(request.url) if resolver is not None else None
    return _stored(found) if found is not None else None


def _prompted_credential(
    request: ConnectRequest, prompt: CredentialPrompt | None
) -> Credential:
    if prompt is None:
        raise AuthFailed(f"no credential available for {request.url}")
    prompted = prompt(DEFAULT_PROMPT_TITLE)
    if prompted is None:
        raise AuthFailed("credential prompt was cancelled")
    return prompted


def _checked(kind: StrategyKind, credential: Credential) -> Credential:
    if _is_empty(credential.username):
        raise ValidationError(kind.value, "username")
    return credential


def _user_credential(
    request: ConnectRequest,
    kind: StrategyKind,
    resolver: CredentialResolver | None,
    prompt: CredentialPrompt | None,
) -> Credential:
    """Return the explicit, stored or prompted credential, in that order."""
    credential = _known_credential(request, resolver)
    if credential is None:
        credential = _prompted_credential(request, prompt)
    return _checked(kind, credential)


def select(
    request: ConnectRequest,
    *,
    resolver: CredentialResolver | None = None,
    prompt: CredentialPrompt | None = None,
) -> AuthStrategy:
    """Choose the authentication strategy described by ``request``.

    Args:
        request: Caller inputs.
        resolver: Stored credential lookup for the ADFS and credential
            strategies. ``None`` skips the store.
        prompt: Called when no explicit or stored credential exists.
            ``None`` turns that case into :class:`AuthFailed`.

    Returns:
        A fully populated strategy.

    Raises:
        ConflictingInputsError: Inputs of several strategies were supplied.
        ValidationError: A required input of the chosen strategy is missing.
        CredentialUnresolved: A credential label was not found in the store.
        AuthFailed: The credential prompt was cancelled or unavailable.
    """
    groups = check_conflicts(request)
    chosen = groups[0] if groups else CREDENTIAL_GROUP

    if chosen == CREDENTIAL_GROUP:
        kind = StrategyKind.INTERACTIVE_CREDENTIAL
        credential = _known_credential(request, resolver)
        if credential is None and request.current_user:
            strategy: AuthStrategy = CurrentUser()
        else:
            if credential is None:
                credential = _prompted_credential(request, prompt)
            credential = _checked(kind, credential)
            strategy = InteractiveCredential(
                username=credential.username,
                password=credential.password,
                authentication_mode=request.authentication_mode,
            )
        logger.info("Selected %s authentication", strategy.kind.value)
        return strategy

    kind = StrategyKind(chosen)
    _check_build_flavour(kind, request)

    match kind:
        case StrategyKind.APP_TOKEN:
            _require(kind, request, "app_id", "app_secret")
            strategy = AppToken(
                app_id=request.app_id,
                app_secret=request.app_secret,
                realm=request.realm or None,
            )
        case StrategyKind.WEB_LOGIN:
            strategy = WebLogin()
        case StrategyKind.ADFS:
            credential = _user_credential(request, kind, resolver, prompt)
            strategy = Adfs(username=credential.username, password=credential.password)
        case StrategyKind.MANAGEMENT_SHELL:
            strategy = ManagementShell(
                azure_environment=request.azure_environment,
                clear_cache=request.clear_token_cache,
            )
        case StrategyKind.NATIVE_AAD:
            _require(kind, request, "client_id", "redirect_uri")
            strategy = NativeAppAAD(
                client_id=request.client_id,
                redirect_uri=request.redirect_uri,
                azure_environment=request.azure_environment,
                clear_cache=request.clear_token_cache,
            )
        case StrategyKind.APP_ONLY_AAD:
            _require(
                kind,
                request,
                "client_id",
                "tenant",
                "certificate_path",
                "certificate_password",
            )
            strategy = AppOnlyAAD(
                client_id=request.client_id,
                tenant=request.tenant,
                certificate_path=request.certificate_path,
                certificate_password=request.certificate_password,
                azure_environment=request.azure_environment,
            )
        case StrategyKind.HIGH_TRUST:
            _require(
                kind,
                request,
                "client_id",
                "high_trust_certificate_path",
                "high_trust_certificate_password",
                "high_trust_certificate_issuer_id",
            )
            strategy = HighTrustCertificate(
                client_id=request.client_id,
                certificate_path=request.high_trust_certificate_path,
                certificate_password=request.high_trust_certificate_password,
                issuer_id=request.high_trust_certificate_issuer_id,
            )
        case _:
            raise ValidationError(kind.value, message=f"Unsupported strategy: {kind!r}")

    logger.info("Selected %s authentication", strategy.kind.value)
    return strategy
