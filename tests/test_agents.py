from __future__ import annotations

import httpx

from agentcore_chat.agents import AgentDefinition, AgentRegistry
from agentcore_chat.cache import TtlCache


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _registry(handler, clock=None) -> AgentRegistry:
    cache = TtlCache(default_ttl=300, clock=clock) if clock is not None else None
    return AgentRegistry("http://backend.test/", cache=cache, transport=httpx.MockTransport(handler))


def test_definition_is_unwrapped_and_cached() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "agent": {
                    "agentId": "a/1",
                    "name": "Researcher",
                    "systemPrompt": "Be thorough",
                    "enabledTools": ["search"],
                    "modelId": "model-x",
                },
                "metadata": {},
            },
        )

    clock = _Clock()
    registry = _registry(handler, clock)

    definition = registry.get_agent_definition("a/1", auth_header="Bearer t", user_id="user-42")
    assert definition == AgentDefinition(
        name="Researcher", system_prompt="Be thorough", enabled_tools=["search"], model_id="model-x"
    )
    assert registry.get_agent_definition("a/1") == definition
    assert len(requests) == 1
    assert requests[0].url.raw_path == b"/agents/a%2F1"
    assert requests[0].headers["Authorization"] == "Bearer t"
    assert requests[0].headers["X-Target-User-Id"] == "user-42"

    clock.now = 300
    registry.get_agent_definition("a/1")
    assert len(requests) == 2


def test_bare_agent_object_is_accepted() -> None:
    registry = _registry(lambda request: httpx.Response(200, json={"name": "Bare"}))
    definition = registry.get_agent_definition("x")
    assert definition is not None
    assert definition.to_dict() == {"name": "Bare", "systemPrompt": "", "enabledTools": []}


def test_missing_agent_is_none() -> None:
    registry = _registry(lambda request: httpx.Response(404, json={"error": "not found"}))
    assert registry.get_agent_definition("ghost") is None


def test_backend_failure_is_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused")

    assert _registry(handler).get_agent_definition("x") is None
    assert _registry(lambda request: httpx.Response(500)).get_agent_definition("x") is None


def test_list_agents_and_failure() -> None:
    registry = _registry(
        lambda request: httpx.Response(
            200,
            json={"agents": [{"agentId": "a1", "name": "One", "description": "first", "systemPrompt": "p"}]},
        )
    )
    assert [a.to_dict() for a in registry.list_agents()] == [
        {"agentId": "a1", "name": "One", "description": "first"}
    ]
    assert _registry(lambda request: httpx.Response(503)).list_agents() == []


def test_clear_cache_forces_refetch() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"agent": {"name": "A"}})

    registry = _registry(handler)
    registry.get_agent_definition("a")
    registry.clear_cache()
    registry.get_agent_definition("a")
    assert len(calls) == 2
