from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from pdcall.errors import AuthError, NoCredentialError

ACCEPT_HEADER = "application/vnd.pagerduty+json;version=2"


class CredentialKind(str, Enum):
    """How a token authenticates against the API."""

    BEARER = "bearer"  # OAuth access token
    LEGACY = "legacy"  # REST API key


@dataclass(frozen=True)
class Credential:
    """
    One stored credential.

    Attributes:
        token (str): Secret value
        kind (CredentialKind): Bearer (OAuth) token or legacy API key
        alias (str): Name the credential is stored under
        subdomain (str | None): PagerDuty subdomain the credential belongs to
        is_default (bool): Whether this is the default credential
    """

    token: str
    kind: CredentialKind = CredentialKind.BEARER
    alias: str = "default"
    subdomain: str | None = None
    is_default: bool = False

    @property
    def is_legacy(self) -> bool:
        return self.kind is CredentialKind.LEGACY

    def __repr__(self) -> str:
        return (
            f"Credential(kind={self.kind.value!r}, alias={self.alias!r}, "
            f"subdomain={self.subdomain!r}, is_default={self.is_default})"
        )


class CredentialSet:
    """
    In-memory collection of credentials with alias and default resolution.

    At most one credential may carry the default designation.
    """

    def __init__(self, credentials: Iterable[Credential] = ()) -> None:
        self._by_alias: dict[str, Credential] = {}
        for credential in credentials:
            self.add(credential)

    def add(self, credential: Credential) -> None:
        if credential.alias in self._by_alias:
            raise ValueError(f"Alias already exists: {credential.alias}")
        if credential.is_default and self.default_alias() is not None:
            raise ValueError(
                f"Cannot add {credential.alias!r} as default: "
                f"{self.default_alias()!r} is already the default"
            )
        self._by_alias[credential.alias] = credential

    def has(self, alias: str) -> bool:
        return alias in self._by_alias

    def all(self) -> list[Credential]:
        return list(self._by_alias.values())

    def default_alias(self) -> str | None:
        for alias, credential in self._by_alias.items():
            if credential.is_default:
                return alias
        return None

    def resolve(self, alias: str | None = None) -> Credential:
        """
        Return the credential for `alias`, or the default one.

        Falls back to the only stored credential when none is marked default.

        Raises:
            NoCredentialError: If nothing is stored or no default can be chosen
            AuthError: If `alias` is not stored
        """
        if not self._by_alias:
            raise NoCredentialError("No credentials are configured")
        if alias is not None:
            if alias not in self._by_alias:
                raise AuthError(f"Alias {alias!r} doesn't exist")
            return self._by_alias[alias]
        default = self.default_alias()
        if default is not None:
            return self._by_alias[default]
        if len(self._by_alias) == 1:
            return next(iter(self._by_alias.values()))
        raise NoCredentialError("Several credentials are configured but none is the default")

    def delete(self, alias: str) -> bool:
        return self._by_alias.pop(alias, None) is not None


class Authenticator:
    """
    Turns an already-resolved credential into request headers.

    The credential is passed in at construction; nothing is looked up from
    ambient configuration.
    """

    def __init__(self, credential: Credential | None) -> None:
        self.credential = credential

    def headers(self) -> dict[str, str]:
        return headers_for(self.credential)


def headers_for(credential: Credential | None) -> dict[str, str]:
    """
    Build the authentication headers for a credential.

    Bearer tokens use "Authorization: Bearer <token>", legacy API keys use
    "Authorization: Token token=<key>".

    Args:
        credential (Credential | None): Resolved credential

    Returns:
        dict[str, str]: Authorization and Accept headers

    Raises:
        NoCredentialError: If no credential (or an empty token) is given
    """
    if credential is None or not credential.token:
        raise NoCredentialError("No credential is configured")
    if credential.kind is CredentialKind.LEGACY:
        authorization = f"Token token={credential.token}"
    else:
        authorization = f"Bearer {credential.token}"
    return {
        "Authorization": authorization,
        "Accept": ACCEPT_HEADER,
    }
