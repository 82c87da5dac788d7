from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from .cache import TtlCache
from .cli_shared import AuthError, _basic_auth_header, _jwt_payload, _log_json
from .config import CognitoConfig, MachineUserConfig

logger = logging.getLogger(__name__)

# Cached tokens are treated as expired this many seconds before the real expiry.
EXPIRY_BUFFER_SECONDS = 300
DEFAULT_EXPIRES_IN = 3600


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    expires_in: int
    token_type: str = "Bearer"
    id_token: str | None = None
    refresh_token: str | None = None


class TokenProvider(Protocol):
    async def bearer_token(self) -> str: ...


def _cache_ttl(expires_in: int) -> float:
    return float(max(0, int(expires_in) - EXPIRY_BUFFER_SECONDS))


def token_claims(token: str) -> dict[str, Any]:
    payload = _jwt_payload(token)
    return {
        "sub": payload.get("sub"),
        "username": payload.get("username") or payload.get("cognito:username"),
        "exp": payload.get("exp"),
        "iat": payload.get("iat"),
        "iss": payload.get("iss"),
        "aud": payload.get("aud") or payload.get("client_id"),
    }


class CognitoUserAuth:
    """USER_PASSWORD_AUTH against a Cognito user pool app client."""

    def __init__(
        self,
        config: CognitoConfig,
        *,
        cache: TtlCache[AuthResult] | None = None,
        client: Any = None,
    ) -> None:
        self.config = config
        self._cache: TtlCache[AuthResult] = cache if cache is not None else TtlCache()
        self._client = client

    def _cognito(self) -> Any:
        if self._client is None:
            self._client = boto3.client("cognito-idp", region_name=self.config.region)
        return self._client

    @property
    def cache_key(self) -> str:
        return f"{self.config.user_pool_id}:{self.config.username}"

    def fetch_token(self) -> AuthResult:
        try:
            resp = self._cognito().initiate_auth(
                AuthFlow="USER_PASSWORD_AUTH",
                ClientId=self.config.client_id,
                AuthParameters={
                    "USERNAME": self.config.username,
                    "PASSWORD": self.config.password,
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise AuthError(f"cognito authentication failed: {e}") from e
        result = resp.get("AuthenticationResult") or {}
        access_token = str(result.get("AccessToken") or "")
        if not access_token:
            raise AuthError("cognito authentication failed: no access token in response")
        return AuthResult(
            access_token=access_token,
            expires_in=int(result.get("ExpiresIn") or DEFAULT_EXPIRES_IN),
            token_type=str(result.get("TokenType") or "Bearer"),
            id_token=result.get("IdToken"),
            refresh_token=result.get("RefreshToken"),
        )

    async def get_token(self) -> AuthResult:
        cached = self._cache.get(self.cache_key)
        if cached is not None:
            return cached
        token = await asyncio.to_thread(self.fetch_token)
        self._cache.set(self.cache_key, token, ttl=_cache_ttl(token.expires_in))
        _log_json(logger, logging.DEBUG, "cognito_token_issued", username=self.config.username)
        return token

    async def bearer_token(self) -> str:
        return (await self.get_token()).access_token


class MachineUserAuth:
    """OAuth2 client-credentials flow against the Cognito domain token endpoint."""

    def __init__(
        self,
        config: MachineUserConfig,
        *,
        cache: TtlCache[AuthResult] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.config = config
        self._cache: TtlCache[AuthResult] = cache if cache is not None else TtlCache()
        self._transport = transport
        self._timeout_seconds = timeout_seconds

    @property
    def cache_key(self) -> str:
        return f"{self.config.cognito_domain}:{self.config.client_id}"

    @property
    def token_url(self) -> str:
        return f"https://{self.config.cognito_domain}/oauth2/token"

    async def fetch_token(self) -> AuthResult:
        form = {"grant_type": "client_credentials"}
        if self.config.scope:
            form["scope"] = self.config.scope
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": _basic_auth_header(self.config.client_id, self.config.client_secret),
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout_seconds) as http:
                resp = await http.post(self.token_url, data=form, headers=headers)
        except httpx.HTTPError as e:
            raise AuthError(f"machine user authentication failed: {e}") from e
        if resp.status_code < 200 or resp.status_code >= 300:
            raise AuthError(
                f"machine user authentication failed: token request returned "
                f"{resp.status_code} {resp.reason_phrase}: {resp.text}"
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError(f"machine user authentication failed: invalid token response: {e}") from e
        access_token = str((data or {}).get("access_token") or "")
        if not access_token:
            raise AuthError("machine user authentication failed: no access_token in response")
        return AuthResult(
            access_token=access_token,
            expires_in=int(data.get("expires_in") or DEFAULT_EXPIRES_IN),
            token_type=str(data.get("token_type") or "Bearer"),
        )

    async def get_token(self) -> AuthResult:
        cached = self._cache.get(self.cache_key)
        if cached is not None:
            return cached
        token = await self.fetch_token()
        self._cache.set(self.cache_key, token, ttl=_cache_ttl(token.expires_in))
        _log_json(logger, logging.DEBUG, "machine_token_issued", client_id=self.config.client_id)
        return token

    async def bearer_token(self) -> str:
        return (await self.get_token()).access_token
