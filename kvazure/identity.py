import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any

import msal
from azure.core.credentials import AccessToken
from azure.identity import ClientSecretCredential
from loguru import logger as log

from kvcontext.config import WorkflowConfig
from kvutil.error_handling import AuthenticationError

MANAGEMENT_AUDIENCE = "https://management.azure.com"


def scope_for(audience: str) -> str:
    """'https://vault.azure.net' -> 'https://vault.azure.net/.default'"""
    return f"{audience.rstrip('/')}/.default"


def audience_for(scope: str) -> str:
    """Inverse of scope_for; scopes without the .default suffix are returned unchanged."""
    if scope.endswith("/.default"):
        return scope[: -len("/.default")]
    return scope


@dataclass(frozen=True)
class Credential:
    """A bearer token bound to one audience. Never persisted."""
    token_type: str
    access_token: str
    audience: str
    expires_on: int = 0

    def header(self) -> str:
        """Value for the HTTP Authorization header: '<tokenType> <accessToken>'."""
        return f"{self.token_type} {self.access_token}"

    def __repr__(self) -> str:
        return f"Credential(token_type={self.token_type!r}, audience={self.audience!r}, expires_on={self.expires_on})"


class TokenProvider(ABC):
    """
    Capability that exchanges the configured principal's credentials for a bearer token.

    Implementations must perform a fresh exchange on every call.
    """

    @abstractmethod
    def acquire(self, audience: str, authority: Optional[str] = None) -> Credential:
        ...


class MsalTokenProvider(TokenProvider):
    """
    Client-credentials token exchange through MSAL.

    A new ConfidentialClientApplication is built for every call so no token cache
    outlives the request that filled it.
    """

    def __init__(self, config: WorkflowConfig, app_factory=None):
        self.client_id = config.client_id
        self._secret = config.secret
        self.default_authority = config.authority
        self.authority_host = config.authority_host
        self._app_factory = app_factory or msal.ConfidentialClientApplication

    def acquire(self, audience: str, authority: Optional[str] = None) -> Credential:
        """
        Args:
            audience (str): Resource URI the token is for, e.g. https://vault.azure.net.
            authority (str): Authorization endpoint from a challenge; defaults to the configured tenant.

        Returns:
            Credential: Token bound to `audience`.

        Raises:
            AuthenticationError: If the identity provider rejects the exchange.
        """
        authority = authority or self.default_authority
        log.debug(f"[Identity] Requesting token for {audience} from {authority}")

        app = self._app_factory(
            client_id=self.client_id,
            authority=authority,
            client_credential=self._secret,
        )
        result: Dict[str, Any] = app.acquire_token_for_client(scopes=[scope_for(audience)]) or {}

        if "access_token" not in result:
            raise AuthenticationError(
                audience,
                error=result.get("error"),
                error_description=result.get("error_description"),
            )

        expires_in = int(result.get("expires_in") or 0)
        return Credential(
            token_type=result.get("token_type") or "Bearer",
            access_token=result["access_token"],
            audience=audience,
            expires_on=int(time.time()) + expires_in,
        )


def management_credential(config: WorkflowConfig) -> ClientSecretCredential:
    """Management-plane credential handed to the resource and vault management clients."""
    return ClientSecretCredential(
        tenant_id=config.domain,
        client_id=config.client_id,
        client_secret=config.secret,
        authority=config.authority_host,
    )


_CHALLENGE_PARAM = re.compile(r'(\w+)\s*=\s*"([^"]*)"')


@dataclass(frozen=True)
class Challenge:
    """
    Parameters of a WWW-Authenticate bearer challenge sent by the vault data plane.

    `authorization` is the token endpoint (authority); `resource` or `scope`
    names the audience.
    """
    authorization: str
    resource: Optional[str] = None
    scope: Optional[str] = None

    @property
    def audience(self) -> str:
        if self.resource:
            return self.resource
        if self.scope:
            return audience_for(self.scope)
        raise ValueError("[Challenge] Challenge names neither a resource nor a scope")

    @classmethod
    def parse(cls, header: str) -> "Challenge":
        """
        Parses 'Bearer authorization="https://login.windows.net/<tenant>", resource="https://vault.azure.net"'.

        Raises:
            ValueError: If the header is not a bearer challenge or has no authorization endpoint.
        """
        if not header or not header.strip().lower().startswith("bearer"):
            raise ValueError(f"[Challenge] Not a bearer challenge: {header!r}")

        params = {k.lower(): v for k, v in _CHALLENGE_PARAM.findall(header)}
        authorization = params.get("authorization") or params.get("authorization_uri")
        if not authorization:
            raise ValueError(f"[Challenge] Challenge has no authorization endpoint: {header!r}")

        return cls(
            authorization=authorization,
            resource=params.get("resource"),
            scope=params.get("scope"),
        )


class ChallengeAuthenticator:
    """
    Bridges the vault data plane's challenge/response authentication to a TokenProvider.

    The Key Vault SDK clients drive it through `get_token(...)`, the azure-core
    TokenCredential protocol: their challenge policy parses the 401 challenge and
    passes its scope and tenant here. The SDK always sends the result as a Bearer
    header, so `get_token` rejects any other token type instead of dropping it.

    `authorize(challenge)` performs the same exchange for a challenge parsed by
    `Challenge.parse`, for callers that build the Authorization header
    themselves. Every invocation performs its own token request.
    """

    def __init__(self, provider: TokenProvider, authority_host: Optional[str] = None):
        self.provider = provider
        self.authority_host = (authority_host or getattr(provider, "authority_host", None) or "").rstrip("/")

    def authorize(self, challenge: Challenge) -> str:
        credential = self.provider.acquire(challenge.audience, authority=challenge.authorization)
        return credential.header()

    def get_token(self, *scopes: str, claims: Optional[str] = None, tenant_id: Optional[str] = None, **kwargs) -> AccessToken:
        if not scopes:
            raise ValueError("[ChallengeAuthenticator] get_token requires at least one scope")

        audience = audience_for(scopes[0])
        authority = f"{self.authority_host}/{tenant_id}" if tenant_id and self.authority_host else None
        credential = self.provider.acquire(audience, authority=authority)
        if credential.token_type.lower() != "bearer":
            raise AuthenticationError(
                audience,
                error="unsupported_token_type",
                error_description=f"expected a Bearer token, got {credential.token_type!r}",
            )
        return AccessToken(credential.access_token, credential.expires_on)

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
