from __future__ import annotations

import base64
import json
import logging
import os
import sys
from typing import Any


class AgentCoreChatError(Exception):
    pass


class UsageError(AgentCoreChatError):
    pass


class OpError(AgentCoreChatError):
    pass


class AuthError(OpError):
    pass


class InvocationError(OpError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServerEventError(OpError):
    def __init__(self, message: str, *, request_id: str = "") -> None:
        super().__init__(message)
        self.request_id = request_id


AGENTCORE_RUNTIME_ARN = "AGENTCORE_RUNTIME_ARN"
AGENTCORE_REGION = "AGENTCORE_REGION"
AGENTCORE_ENDPOINT = "AGENTCORE_ENDPOINT"
AGENTCORE_MEMORY_ID = "AGENTCORE_MEMORY_ID"
AGENTCORE_MEMORY_REGION = "AGENTCORE_MEMORY_REGION"
AUTH_MODE = "AUTH_MODE"
COGNITO_USER_POOL_ID = "COGNITO_USER_POOL_ID"
COGNITO_CLIENT_ID = "COGNITO_CLIENT_ID"
COGNITO_USERNAME = "COGNITO_USERNAME"
COGNITO_PASSWORD = "COGNITO_PASSWORD"
COGNITO_REGION = "COGNITO_REGION"
COGNITO_DOMAIN = "COGNITO_DOMAIN"
COGNITO_SCOPE = "COGNITO_SCOPE"
MACHINE_CLIENT_ID = "MACHINE_CLIENT_ID"
MACHINE_CLIENT_SECRET = "MACHINE_CLIENT_SECRET"
TARGET_USER_ID = "TARGET_USER_ID"
BACKEND_API_URL = "BACKEND_API_URL"

SESSION_ID_HEADER = "X-Amzn-Bedrock-AgentCore-Runtime-Session-Id"
TRACE_ID_HEADER = "X-Amzn-Trace-Id"
TARGET_USER_ID_HEADER = "X-Target-User-Id"


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _print_json(obj: Any, *, pretty: bool) -> None:
    if pretty:
        sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False) + "\n")
    else:
        sys.stdout.write(json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False) + "\n")


def _log_json(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    if not logger.isEnabledFor(level):
        return
    record: dict[str, Any] = {"event": event}
    record.update(fields)
    logger.log(level, json.dumps(record, separators=(",", ":"), sort_keys=True, default=str))


def _jwt_payload(token: str) -> dict[str, Any]:
    parts = (token or "").split(".")
    if len(parts) < 2:
        raise OpError("invalid JWT: expected at least 2 dot-separated parts")
    payload_b64 = parts[1]
    payload_b64 += "=" * (-len(payload_b64) % 4)
    try:
        raw = base64.urlsafe_b64decode(payload_b64.encode("utf-8"))
        val = json.loads(raw.decode("utf-8"))
    except Exception as e:
        raise OpError(f"invalid JWT payload: {e}") from e
    if not isinstance(val, dict):
        raise OpError("invalid JWT payload: expected JSON object")
    return val


def _basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _clip(text: str, limit: int) -> str:
    return f"{text[:limit]}..." if len(text) > limit else text
