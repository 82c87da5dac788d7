from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from .cache import TtlCache
from .cli_shared import TARGET_USER_ID_HEADER, _log_json
from .config import backend_api_url

logger = logging.getLogger(__name__)

AGENT_CACHE_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class AgentDefinition:
    name: str
    system_prompt: str = ""
    enabled_tools: list[str] = field(default_factory=list)
    model_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "systemPrompt": self.system_prompt,
            "enabledTools": list(self.enabled_tools),
        }
        if self.model_id is not None:
            out["modelId"] = self.model_id
        return out


@dataclass(frozen=True)
class AgentSummary:
    agent_id: str
    name: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"agentId": self.agent_id, "name": self.name, "description": self.description}


def _to_definition(agent: dict[str, Any]) -> AgentDefinition:
    tools = agent.get("enabledTools")
    model_id = agent.get("modelId")
    return AgentDefinition(
        name=str(agent.get("name") or ""),
        system_prompt=str(agent.get("systemPrompt") or ""),
        enabled_tools=[str(t) for t in tools] if isinstance(tools, list) else [],
        model_id=str(model_id) if model_id else None,
    )


class AgentRegistry:
    """Read-only view of agent definitions served by the backend API.

    Lookups never raise; any failure is logged and reported as "no agent".
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        cache: TtlCache[AgentDefinition] | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.base_url = (base_url or backend_api_url()).rstrip("/")
        self._cache: TtlCache[AgentDefinition] = (
            cache if cache is not None else TtlCache(default_ttl=AGENT_CACHE_TTL_SECONDS)
        )
        self._transport = transport
        self._timeout_seconds = timeout_seconds

    def _headers(self, auth_header: str | None, user_id: str | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if auth_header:
            headers["Authorization"] = auth_header
        if user_id:
            headers[TARGET_USER_ID_HEADER] = user_id
        return headers

    def _get(self, url: str, headers: dict[str, str]) -> httpx.Response:
        with httpx.Client(transport=self._transport, timeout=self._timeout_seconds) as http:
            return http.get(url, headers=headers)

    def get_agent_definition(
        self,
        agent_id: str,
        *,
        auth_header: str | None = None,
        user_id: str | None = None,
    ) -> AgentDefinition | None:
        cached = self._cache.get(agent_id)
        if cached is not None:
            _log_json(logger, logging.DEBUG, "agent_definition_cache_hit", agent_id=agent_id)
            return cached

        url = f"{self.base_url}/agents/{quote(agent_id, safe='')}"
        headers = self._headers(auth_header, user_id)
        _log_json(
            logger,
            logging.INFO,
            "agent_definition_fetch",
            agent_id=agent_id,
            url=url,
            has_auth="Authorization" in headers,
            has_target_user_id=TARGET_USER_ID_HEADER in headers,
        )
        try:
            resp = self._get(url, headers)
            if resp.status_code == 404:
                _log_json(logger, logging.WARNING, "agent_not_found", agent_id=agent_id)
                return None
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            _log_json(logger, logging.ERROR, "agent_definition_fetch_failed", agent_id=agent_id, error=str(e))
            return None

        agent = data.get("agent") if isinstance(data, dict) and "agent" in data else data
        if not isinstance(agent, dict):
            _log_json(logger, logging.WARNING, "agent_missing_in_response", agent_id=agent_id)
            return None

        definition = _to_definition(agent)
        self._cache.set(agent_id, definition)
        _log_json(
            logger,
            logging.INFO,
            "agent_definition_cached",
            agent_id=agent_id,
            tools=len(definition.enabled_tools),
        )
        return definition

    def list_agents(self, *, auth_header: str | None = None, user_id: str | None = None) -> list[AgentSummary]:
        url = f"{self.base_url}/agents"
        try:
            resp = self._get(url, self._headers(auth_header, user_id))
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            _log_json(logger, logging.ERROR, "agent_list_failed", url=url, error=str(e))
            return []

        agents = data.get("agents") if isinstance(data, dict) else None
        out: list[AgentSummary] = []
        for agent in agents or []:
            if not isinstance(agent, dict):
                continue
            out.append(
                AgentSummary(
                    agent_id=str(agent.get("agentId") or ""),
                    name=str(agent.get("name") or ""),
                    description=str(agent.get("description") or ""),
                )
            )
        return out

    def clear_cache(self) -> None:
        self._cache.clear()
        _log_json(logger, logging.INFO, "agent_cache_cleared")
