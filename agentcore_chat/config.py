from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from dotenv import load_dotenv

from .cli_shared import (
    AGENTCORE_ENDPOINT,
    AGENTCORE_MEMORY_ID,
    AGENTCORE_MEMORY_REGION,
    AGENTCORE_REGION,
    AGENTCORE_RUNTIME_ARN,
    AUTH_MODE,
    BACKEND_API_URL,
    COGNITO_CLIENT_ID,
    COGNITO_DOMAIN,
    COGNITO_PASSWORD,
    COGNITO_REGION,
    COGNITO_SCOPE,
    COGNITO_USER_POOL_ID,
    COGNITO_USERNAME,
    MACHINE_CLIENT_ID,
    MACHINE_CLIENT_SECRET,
    TARGET_USER_ID,
    UsageError,
    _env_or_none,
)

AUTH_MODE_USER = "user"
AUTH_MODE_MACHINE = "machine"

DEFAULT_REGION = "us-east-1"
DEFAULT_LOCAL_ENDPOINT = "http://localhost:8080"
DEFAULT_BACKEND_API_URL = "http://localhost:3000"

_MASK = "*" * 8
_UNSET = "<unset>"


@dataclass(frozen=True)
class CognitoConfig:
    user_pool_id: str = ""
    client_id: str = ""
    username: str = ""
    password: str = ""
    region: str = DEFAULT_REGION

    def is_complete(self) -> bool:
        return bool(self.user_pool_id and self.client_id and self.username and self.password)


@dataclass(frozen=True)
class MachineUserConfig:
    cognito_domain: str
    client_id: str
    client_secret: str
    target_user_id: str
    scope: str | None = None


@dataclass(frozen=True)
class ClientConfig:
    endpoint: str
    is_aws_runtime: bool
    auth_mode: str = AUTH_MODE_USER
    cognito: CognitoConfig = CognitoConfig()
    machine_user: MachineUserConfig | None = None
    timeout_seconds: float = 300.0


@dataclass(frozen=True)
class MemoryConfig:
    memory_id: str
    region: str = DEFAULT_REGION


def _bootstrap_env() -> None:
    # Discover and load .env without overriding already-exported values.
    load_dotenv()


def is_aws_runtime(endpoint: str) -> bool:
    return "bedrock-agentcore" in endpoint and "/invocations" in endpoint


def build_agentcore_endpoint(runtime_arn: str, region: str = DEFAULT_REGION) -> str:
    encoded_arn = quote(runtime_arn, safe="")
    return f"https://bedrock-agentcore.{region}.amazonaws.com/runtimes/{encoded_arn}/invocations?qualifier=DEFAULT"


def _determine_endpoint() -> str:
    runtime_arn = _env_or_none(AGENTCORE_RUNTIME_ARN)
    if runtime_arn:
        return build_agentcore_endpoint(runtime_arn, _env_or_none(AGENTCORE_REGION) or DEFAULT_REGION)
    return _env_or_none(AGENTCORE_ENDPOINT) or DEFAULT_LOCAL_ENDPOINT


def _determine_auth_mode() -> str:
    mode = (_env_or_none(AUTH_MODE) or "").lower()
    return AUTH_MODE_MACHINE if mode == AUTH_MODE_MACHINE else AUTH_MODE_USER


def load_config() -> ClientConfig:
    endpoint = _determine_endpoint()
    auth_mode = _determine_auth_mode()
    cognito = CognitoConfig(
        user_pool_id=_env_or_none(COGNITO_USER_POOL_ID) or "",
        client_id=_env_or_none(COGNITO_CLIENT_ID) or "",
        username=_env_or_none(COGNITO_USERNAME) or "",
        password=os.environ.get(COGNITO_PASSWORD) or "",
        region=_env_or_none(COGNITO_REGION) or DEFAULT_REGION,
    )
    machine_user = None
    if auth_mode == AUTH_MODE_MACHINE:
        machine_user = MachineUserConfig(
            cognito_domain=_env_or_none(COGNITO_DOMAIN) or "",
            client_id=_env_or_none(MACHINE_CLIENT_ID) or "",
            client_secret=os.environ.get(MACHINE_CLIENT_SECRET) or "",
            target_user_id=_env_or_none(TARGET_USER_ID) or "",
            scope=_env_or_none(COGNITO_SCOPE),
        )
    return ClientConfig(
        endpoint=endpoint,
        is_aws_runtime=is_aws_runtime(endpoint),
        auth_mode=auth_mode,
        cognito=cognito,
        machine_user=machine_user,
    )


def load_memory_config() -> MemoryConfig:
    memory_id = _env_or_none(AGENTCORE_MEMORY_ID)
    if not memory_id:
        raise UsageError(f"missing memory id (set {AGENTCORE_MEMORY_ID})")
    region = _env_or_none(AGENTCORE_MEMORY_REGION, "AWS_REGION") or DEFAULT_REGION
    return MemoryConfig(memory_id=memory_id, region=region)


def backend_api_url() -> str:
    return (_env_or_none(BACKEND_API_URL) or DEFAULT_BACKEND_API_URL).rstrip("/")


def validate_config(config: ClientConfig) -> list[str]:
    errors: list[str] = []
    if not config.endpoint:
        errors.append("endpoint is not configured")

    if config.auth_mode == AUTH_MODE_MACHINE:
        mu = config.machine_user
        if mu is None or not mu.cognito_domain:
            errors.append(f"{COGNITO_DOMAIN} is not set")
        if mu is None or not mu.client_id:
            errors.append(f"{MACHINE_CLIENT_ID} is not set")
        if mu is None or not mu.client_secret:
            errors.append(f"{MACHINE_CLIENT_SECRET} is not set")
        if mu is None or not mu.target_user_id:
            errors.append(f"{TARGET_USER_ID} is not set")
    elif config.is_aws_runtime:
        if not config.cognito.user_pool_id:
            errors.append(f"{COGNITO_USER_POOL_ID} is not set")
        if not config.cognito.client_id:
            errors.append(f"{COGNITO_CLIENT_ID} is not set")
        if not config.cognito.username:
            errors.append(f"{COGNITO_USERNAME} is not set")
        if not config.cognito.password:
            errors.append(f"{COGNITO_PASSWORD} is not set")
    return errors


def format_config_for_display(config: ClientConfig) -> dict[str, Any]:
    display: dict[str, Any] = {
        "endpoint": config.endpoint,
        "runtime": "AWS AgentCore Runtime" if config.is_aws_runtime else "local",
        "authMode": (
            "Machine User (Client Credentials)"
            if config.auth_mode == AUTH_MODE_MACHINE
            else "User (Password)"
        ),
        "cognito": {
            "userPoolId": config.cognito.user_pool_id,
            "clientId": config.cognito.client_id,
            "username": config.cognito.username,
            "password": _MASK if config.cognito.password else _UNSET,
            "region": config.cognito.region,
        },
    }
    if config.auth_mode == AUTH_MODE_MACHINE and config.machine_user is not None:
        mu = config.machine_user
        display["machineUser"] = {
            "cognitoDomain": mu.cognito_domain,
            "clientId": mu.client_id,
            "clientSecret": _MASK if mu.client_secret else _UNSET,
            "scope": mu.scope,
            "targetUserId": mu.target_user_id,
        }
    return display
