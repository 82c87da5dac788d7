from __future__ import annotations

import pytest

_ENV_VARS = (
    "AGENTCORE_RUNTIME_ARN",
    "AGENTCORE_REGION",
    "AGENTCORE_ENDPOINT",
    "AGENTCORE_MEMORY_ID",
    "AGENTCORE_MEMORY_REGION",
    "AWS_REGION",
    "AUTH_MODE",
    "COGNITO_USER_POOL_ID",
    "COGNITO_CLIENT_ID",
    "COGNITO_USERNAME",
    "COGNITO_PASSWORD",
    "COGNITO_REGION",
    "COGNITO_DOMAIN",
    "COGNITO_SCOPE",
    "MACHINE_CLIENT_ID",
    "MACHINE_CLIENT_SECRET",
    "TARGET_USER_ID",
    "BACKEND_API_URL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
