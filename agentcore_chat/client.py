from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable

import httpx

from .auth import CognitoUserAuth, MachineUserAuth, TokenProvider, token_claims
from .cli_shared import (
    SESSION_ID_HEADER,
    TRACE_ID_HEADER,
    InvocationError,
    OpError,
    ServerEventError,
    UsageError,
    _log_json,
)
from .config import AUTH_MODE_MACHINE, ClientConfig, is_aws_runtime
from .streaming import (
    AfterModelCallEvent,
    AgentStreamEvent,
    ChunkDecoder,
    EventQueue,
    ServerCompletionEvent,
    ServerErrorEvent,
    parse_stream_event,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class LastMessage:
    type: str
    role: str
    content: list[dict[str, str]]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "role": self.role, "content": list(self.content)}


@dataclass(frozen=True)
class InvokeResponse:
    stop_reason: str
    last_message: LastMessage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    type: str = "invocation"

    def text(self) -> str:
        if self.last_message is None:
            return ""
        return "\n\n".join(part["text"] for part in self.last_message.content if part.get("text"))

    def to_dict(self) -> dict[str, Any]:
        response: dict[str, Any] = {"type": self.type, "stopReason": self.stop_reason}
        if self.last_message is not None:
            response["lastMessage"] = self.last_message.to_dict()
        return {"response": response, "metadata": dict(self.metadata)}


def _http_error_message(response: httpx.Response) -> str:
    message = f"HTTP {response.status_code}: {response.reason_phrase}"
    body = response.text
    if not body:
        return message
    try:
        parsed = json.loads(body)
    except ValueError:
        return message
    detail = None
    if isinstance(parsed, dict):
        detail = parsed.get("message") or parsed.get("error")
    return f"{message} - {detail or body}"


class AgentCoreClient:
    """HTTP client for an agent served on AgentCore Runtime (or a local server).

    ``invoke_stream`` yields typed protocol events as NDJSON lines arrive.
    Closing the returned iterator early (``aclose()`` or ``contextlib.aclosing``)
    cancels the network read and releases the connection.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        user_auth: TokenProvider | None = None,
        machine_auth: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = time.monotonic,
        wall_clock: Clock = time.time,
    ) -> None:
        self.config = config
        self._user_auth = user_auth
        self._machine_auth = machine_auth
        self._transport = transport
        self._clock = clock
        self._wall_clock = wall_clock

    def set_endpoint(self, endpoint: str) -> None:
        self.config = dataclasses.replace(
            self.config,
            endpoint=endpoint,
            is_aws_runtime=is_aws_runtime(endpoint),
        )

    def get_config(self) -> ClientConfig:
        return self.config

    @property
    def invocation_url(self) -> str:
        if is_aws_runtime(self.config.endpoint):
            return self.config.endpoint
        return f"{self.config.endpoint}/invocations"

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout_seconds)

    def _uses_machine_auth(self) -> bool:
        return self.config.auth_mode == AUTH_MODE_MACHINE and self.config.machine_user is not None

    def _token_provider(self) -> TokenProvider | None:
        if self._uses_machine_auth():
            if self._machine_auth is None:
                assert self.config.machine_user is not None
                self._machine_auth = MachineUserAuth(self.config.machine_user)
            return self._machine_auth
        if self._user_auth is None and self.config.cognito.is_complete():
            self._user_auth = CognitoUserAuth(self.config.cognito)
        if self._user_auth is None and self.config.is_aws_runtime:
            raise UsageError("missing Cognito user credentials for AgentCore Runtime endpoint")
        return self._user_auth

    async def current_identity(self) -> dict[str, Any] | None:
        """Decoded claims of the bearer token invocations would send, or ``None`` when unauthenticated."""
        provider = self._token_provider()
        if provider is None:
            return None
        return token_claims(await provider.bearer_token())

    async def _invocation_request(self, prompt: str, session_id: str) -> tuple[dict[str, str], dict[str, Any]]:
        headers = {
            "Content-Type": "application/json",
            SESSION_ID_HEADER: session_id,
        }
        if is_aws_runtime(self.config.endpoint):
            headers[TRACE_ID_HEADER] = f"client-trace-{int(self._wall_clock() * 1000)}"

        body: dict[str, Any] = {"prompt": prompt}
        provider = self._token_provider()
        if provider is not None:
            headers["Authorization"] = f"Bearer {await provider.bearer_token()}"
        if self._uses_machine_auth():
            assert self.config.machine_user is not None
            body["targetUserId"] = self.config.machine_user.target_user_id
        return headers, body

    async def _pump(self, response: httpx.Response, queue: EventQueue[AgentStreamEvent]) -> None:
        decoder = ChunkDecoder()
        try:
            async for chunk in response.aiter_bytes():
                for obj in decoder.feed(chunk):
                    self._enqueue(queue, obj)
            for obj in decoder.flush():
                self._enqueue(queue, obj)
        except (httpx.HTTPError, httpx.StreamError) as e:
            queue.fail(InvocationError(f"agent stream interrupted: {e}"))
            return
        except Exception as e:
            queue.fail(e)
            return
        queue.end()

    def _enqueue(self, queue: EventQueue[AgentStreamEvent], obj: Any) -> None:
        event = parse_stream_event(obj)
        if event is None:
            _log_json(logger, logging.WARNING, "stream_event_not_object", value_type=type(obj).__name__)
            return
        queue.push(event)

    async def invoke_stream(self, prompt: str, session_id: str | None = None) -> AsyncIterator[AgentStreamEvent]:
        if not (prompt or "").strip():
            raise UsageError("prompt must not be empty")
        actual_session_id = session_id or f"session-{uuid.uuid4()}"
        headers, body = await self._invocation_request(prompt, actual_session_id)
        url = self.invocation_url
        _log_json(
            logger,
            logging.INFO,
            "agent_invocation_started",
            url=url,
            session_id=actual_session_id,
            auth_mode=self.config.auth_mode,
        )

        async with self._http() as http:
            request = http.build_request("POST", url, headers=headers, content=json.dumps(body))
            try:
                response = await http.send(request, stream=True)
            except httpx.HTTPError as e:
                raise InvocationError(f"agent streaming invocation failed: {e}") from e
            try:
                if not response.is_success:
                    await response.aread()
                    raise InvocationError(_http_error_message(response), status_code=response.status_code)
                if response.stream is None:
                    raise InvocationError("response body is missing", status_code=response.status_code)

                queue: EventQueue[AgentStreamEvent] = EventQueue()
                reader = asyncio.create_task(self._pump(response, queue))
                try:
                    async for event in queue:
                        yield event
                finally:
                    if not reader.done():
                        reader.cancel()
                    await asyncio.gather(reader, return_exceptions=True)
            finally:
                await response.aclose()

    async def invoke(self, prompt: str, session_id: str | None = None) -> InvokeResponse:
        last_message: LastMessage | None = None
        stop_reason = ""
        metadata: dict[str, Any] = {}

        async with contextlib.aclosing(self.invoke_stream(prompt, session_id)) as events:
            async for event in events:
                if isinstance(event, AfterModelCallEvent) and event.message is not None:
                    last_message = LastMessage(
                        type=event.message.type,
                        role=event.message.role,
                        content=event.message.text_parts(),
                    )
                    stop_reason = event.stop_reason or "completed"
                elif isinstance(event, ServerCompletionEvent):
                    metadata = dict(event.metadata)
                elif isinstance(event, ServerErrorEvent):
                    raise ServerEventError(event.message, request_id=event.request_id)

        return InvokeResponse(stop_reason=stop_reason, last_message=last_message, metadata=metadata)

    async def _get_json(self, url: str, *, label: str) -> dict[str, Any]:
        try:
            async with self._http() as http:
                resp = await http.get(url, headers={"Content-Type": "application/json"})
        except httpx.HTTPError as e:
            raise OpError(f"{label} failed: {e}") from e
        if not resp.is_success:
            raise OpError(f"{label} failed: HTTP {resp.status_code}: {resp.reason_phrase}")
        try:
            data = resp.json()
        except ValueError as e:
            raise OpError(f"{label} failed: invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise OpError(f"{label} failed: expected JSON object")
        return data

    async def ping(self) -> dict[str, Any]:
        return await self._get_json(f"{self.config.endpoint}/ping", label="ping")

    async def get_service_info(self) -> dict[str, Any]:
        return await self._get_json(f"{self.config.endpoint}/", label="service info")

    async def test_connection(self) -> dict[str, Any]:
        start = self._clock()
        try:
            ping, service_info = await asyncio.gather(self.ping(), self.get_service_info())
        except OpError as e:
            elapsed_ms = int((self._clock() - start) * 1000)
            raise OpError(f"connection test failed ({elapsed_ms}ms): {e}") from e
        return {
            "ping": ping,
            "serviceInfo": service_info,
            "connectionTime": int((self._clock() - start) * 1000),
        }
