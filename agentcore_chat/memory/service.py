from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..cache import TtlCache
from ..cli_shared import UsageError, _clip, _log_json
from ..config import MemoryConfig, load_memory_config
from .content_blocks import map_content_blocks
from .models import (
    BlobItem,
    ConversationalItem,
    ConversationMessage,
    DeleteSessionResult,
    MemoryRecord,
    MemoryRecordList,
    PayloadItem,
    RawEventRecord,
    SessionSummary,
    TextContent,
    UnrecognizedItem,
)
from .payloads import decode_payload_blob

logger = logging.getLogger(__name__)

EVENTS_PAGE_SIZE = 100
SESSIONS_PAGE_SIZE = 100
MEMORY_RECORDS_PAGE_SIZE = 50
SEMANTIC_STRATEGY_PREFIX = "semantic_memory_strategy"
FALLBACK_STRATEGY_ID = "semantic_memory_strategy"
TITLE_MAX_CHARS = 50
LAST_MESSAGE_MAX_CHARS = 100

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code") or "")


def _is_not_found(err: Exception) -> bool:
    return isinstance(err, ClientError) and _error_code(err) == "ResourceNotFoundException"


def _as_datetime(val: Any) -> datetime | None:
    if isinstance(val, datetime):
        return val if val.tzinfo is not None else val.replace(tzinfo=timezone.utc)
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return datetime.fromtimestamp(float(val), tz=timezone.utc)
    if isinstance(val, str) and val.strip():
        try:
            parsed = datetime.fromisoformat(val.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    return None


def _timestamp_key(val: Any) -> float:
    dt = _as_datetime(val)
    return dt.timestamp() if dt is not None else 0.0


def _payload_item(item: Any) -> PayloadItem:
    if isinstance(item, dict):
        conversational = item.get("conversational")
        if isinstance(conversational, dict):
            content = conversational.get("content")
            text = content.get("text") if isinstance(content, dict) else None
            return ConversationalItem(
                role=str(conversational.get("role") or ""),
                text=text if isinstance(text, str) else "",
            )
        if item.get("blob") is not None:
            return BlobItem(blob=item["blob"])
        return UnrecognizedItem(keys=tuple(sorted(str(k) for k in item)))
    return UnrecognizedItem(keys=())


def to_event_record(raw: dict[str, Any]) -> RawEventRecord:
    payload = raw.get("payload")
    items = [_payload_item(p) for p in payload] if isinstance(payload, list) else []
    event_id = raw.get("eventId")
    return RawEventRecord(
        event_id=str(event_id) if event_id else None,
        event_timestamp=raw.get("eventTimestamp"),
        payload=items,
    )


def _record_content_text(content: Any) -> str:
    if isinstance(content, dict) and content.get("text"):
        return str(content["text"])
    if isinstance(content, str):
        return content
    if content:
        return json.dumps(content, ensure_ascii=False, default=str)
    return ""


def memory_namespace(strategy_id: str, actor_id: str) -> str:
    return f"/strategies/{strategy_id}/actors/{actor_id}"


class MemoryService:
    """Session history and long-term memory access for one AgentCore Memory.

    Event pages are fetched strictly one after another. Reads against an
    actor with no history come back empty instead of raising.
    """

    def __init__(
        self,
        memory_id: str,
        *,
        region: str = "us-east-1",
        client: Any = None,
        control_client: Any = None,
        strategy_cache: TtlCache[str] | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        if not (memory_id or "").strip():
            raise UsageError("missing AgentCore Memory id")
        self.memory_id = memory_id.strip()
        self.region = region
        self._client = client
        self._control_client = control_client
        self._strategy_cache: TtlCache[str] = strategy_cache if strategy_cache is not None else TtlCache()
        self._clock = clock

    def _data(self) -> Any:
        if self._client is None:
            self._client = boto3.client("bedrock-agentcore", region_name=self.region)
        return self._client

    def _control(self) -> Any:
        if self._control_client is None:
            self._control_client = boto3.client("bedrock-agentcore-control", region_name=self.region)
        return self._control_client

    def _iso(self, val: Any) -> str:
        dt = _as_datetime(val) or self._clock()
        return dt.astimezone(timezone.utc).isoformat()

    # -- events ---------------------------------------------------------

    def _iter_event_pages(self, actor_id: str, session_id: str) -> Iterator[list[dict[str, Any]]]:
        next_token: str | None = None
        while True:
            kwargs: dict[str, Any] = {
                "memoryId": self.memory_id,
                "actorId": actor_id,
                "sessionId": session_id,
                "includePayloads": True,
                "maxResults": EVENTS_PAGE_SIZE,
            }
            if next_token:
                kwargs["nextToken"] = next_token
            resp = self._data().list_events(**kwargs)
            events = resp.get("events") or []
            yield [e for e in events if isinstance(e, dict)]
            next_token = resp.get("nextToken")
            if not next_token:
                return

    def list_session_event_records(self, actor_id: str, session_id: str) -> list[RawEventRecord]:
        records: list[RawEventRecord] = []
        pages = 0
        for page in self._iter_event_pages(actor_id, session_id):
            pages += 1
            records.extend(to_event_record(e) for e in page)
        _log_json(
            logger,
            logging.DEBUG,
            "memory_events_listed",
            session_id=session_id,
            pages=pages,
            events=len(records),
        )
        # sorted() is stable, so events sharing a timestamp keep page order.
        return sorted(records, key=lambda r: _timestamp_key(r.event_timestamp))

    def _messages_from_record(self, record: RawEventRecord, position: int) -> list[ConversationMessage]:
        messages: list[ConversationMessage] = []
        timestamp = self._iso(record.event_timestamp)
        for item in record.payload:
            message_id = record.event_id or f"event_{position + len(messages)}"
            if isinstance(item, ConversationalItem):
                messages.append(
                    ConversationMessage(
                        id=message_id,
                        type="user" if item.role == "USER" else "assistant",
                        contents=[TextContent(text=item.text)],
                        timestamp=timestamp,
                    )
                )
            elif isinstance(item, BlobItem):
                blob_data = decode_payload_blob(item.blob)
                if blob_data is None:
                    continue
                messages.append(
                    ConversationMessage(
                        id=message_id,
                        type="user" if blob_data.role == "user" else "assistant",
                        contents=map_content_blocks(blob_data.content),
                        timestamp=timestamp,
                    )
                )
            else:
                _log_json(
                    logger,
                    logging.WARNING,
                    "memory_payload_unrecognized",
                    event_id=record.event_id,
                    keys=list(item.keys),
                )
        return messages

    def get_session_events(self, actor_id: str, session_id: str) -> list[ConversationMessage]:
        try:
            records = self.list_session_event_records(actor_id, session_id)
        except ClientError as e:
            if _is_not_found(e):
                _log_json(logger, logging.INFO, "memory_events_not_found", actor_id=actor_id, session_id=session_id)
                return []
            raise

        messages: list[ConversationMessage] = []
        for record in records:
            messages.extend(self._messages_from_record(record, len(messages)))
        _log_json(
            logger,
            logging.INFO,
            "memory_session_loaded",
            session_id=session_id,
            events=len(records),
            messages=len(messages),
        )
        return messages

    def delete_session(self, actor_id: str, session_id: str) -> DeleteSessionResult:
        deleted = 0
        failed = 0
        try:
            for page in self._iter_event_pages(actor_id, session_id):
                for event in page:
                    event_id = str(event.get("eventId") or "")
                    if not event_id:
                        continue
                    try:
                        self._data().delete_event(
                            memoryId=self.memory_id,
                            actorId=actor_id,
                            sessionId=session_id,
                            eventId=event_id,
                        )
                        deleted += 1
                    except (ClientError, BotoCoreError) as e:
                        failed += 1
                        _log_json(
                            logger,
                            logging.ERROR,
                            "memory_event_delete_failed",
                            session_id=session_id,
                            event_id=event_id,
                            error=str(e),
                        )
        except ClientError as e:
            if not _is_not_found(e):
                raise
            _log_json(logger, logging.INFO, "memory_events_not_found", actor_id=actor_id, session_id=session_id)

        _log_json(
            logger,
            logging.INFO,
            "memory_session_deleted",
            session_id=session_id,
            deleted=deleted,
            failed=failed,
        )
        return DeleteSessionResult(session_id=session_id, deleted=deleted, failed=failed)

    # -- sessions -------------------------------------------------------

    def list_sessions(self, actor_id: str) -> list[SessionSummary]:
        summaries: list[dict[str, Any]] = []
        next_token: str | None = None
        try:
            while True:
                kwargs: dict[str, Any] = {
                    "memoryId": self.memory_id,
                    "actorId": actor_id,
                    "maxResults": SESSIONS_PAGE_SIZE,
                }
                if next_token:
                    kwargs["nextToken"] = next_token
                resp = self._data().list_sessions(**kwargs)
                summaries.extend(s for s in (resp.get("sessionSummaries") or []) if isinstance(s, dict))
                next_token = resp.get("nextToken")
                if not next_token:
                    break
        except ClientError as e:
            if _is_not_found(e):
                _log_json(logger, logging.INFO, "memory_actor_not_found", actor_id=actor_id)
                return []
            raise

        sessions: list[SessionSummary] = []
        for s in summaries:
            session_id = str(s.get("sessionId") or "")
            if not session_id:
                continue
            created_at = self._iso(s.get("createdAt"))
            sessions.append(
                SessionSummary(
                    session_id=session_id,
                    title="Session",
                    last_message="Select the conversation to view its history",
                    message_count=0,
                    created_at=created_at,
                    updated_at=created_at,
                )
            )
        sessions.sort(key=lambda s: _timestamp_key(s.created_at), reverse=True)
        _log_json(logger, logging.INFO, "memory_sessions_listed", actor_id=actor_id, sessions=len(sessions))
        return sessions

    def get_session_detail(self, actor_id: str, session_id: str) -> SessionSummary:
        messages = self.get_session_events(actor_id, session_id)

        title = f"Session {session_id[:8]}..."
        first_user = next((m for m in messages if m.type == "user"), None)
        if first_user is not None:
            title = _clip(first_user.first_text(), TITLE_MAX_CHARS)

        last_message = "Start the conversation"
        if messages:
            last_message = _clip(messages[-1].first_text(), LAST_MESSAGE_MAX_CHARS)

        created_at = messages[0].timestamp if messages else self._iso(None)
        updated_at = messages[-1].timestamp if messages else created_at
        return SessionSummary(
            session_id=session_id,
            title=title,
            last_message=last_message,
            message_count=len(messages),
            created_at=created_at,
            updated_at=updated_at,
        )

    # -- long-term memory -----------------------------------------------

    def get_semantic_strategy_id(self) -> str:
        cached = self._strategy_cache.get(self.memory_id)
        if cached is not None:
            return cached

        strategy_id = FALLBACK_STRATEGY_ID
        try:
            resp = self._control().get_memory(memoryId=self.memory_id)
            strategies = (resp.get("memory") or {}).get("strategies") or []
            for strategy in strategies:
                if not isinstance(strategy, dict):
                    continue
                if str(strategy.get("name") or "").startswith(SEMANTIC_STRATEGY_PREFIX) and strategy.get("strategyId"):
                    strategy_id = str(strategy["strategyId"])
                    break
            else:
                _log_json(logger, logging.WARNING, "memory_semantic_strategy_missing", memory_id=self.memory_id)
        except (ClientError, BotoCoreError) as e:
            _log_json(logger, logging.ERROR, "memory_get_memory_failed", memory_id=self.memory_id, error=str(e))

        self._strategy_cache.set(self.memory_id, strategy_id)
        return strategy_id

    def _to_memory_record(self, raw: dict[str, Any], namespace: str) -> MemoryRecord:
        record_id = str(raw.get("memoryRecordId") or "")
        if not record_id:
            _log_json(logger, logging.WARNING, "memory_record_missing_id", namespace=namespace)
        created_at = self._iso(raw.get("createdAt"))
        return MemoryRecord(
            record_id=record_id,
            namespace=namespace,
            content=_record_content_text(raw.get("content")),
            created_at=created_at,
            updated_at=created_at,
        )

    def list_memory_records(
        self,
        actor_id: str,
        strategy_id: str,
        next_token: str | None = None,
    ) -> MemoryRecordList:
        namespace = memory_namespace(strategy_id, actor_id)
        kwargs: dict[str, Any] = {
            "memoryId": self.memory_id,
            "namespace": namespace,
            "memoryStrategyId": strategy_id,
            "maxResults": MEMORY_RECORDS_PAGE_SIZE,
        }
        if next_token:
            kwargs["nextToken"] = next_token
        try:
            resp = self._data().list_memory_records(**kwargs)
        except ClientError as e:
            if _is_not_found(e):
                return MemoryRecordList(records=[])
            raise
        summaries = resp.get("memoryRecordSummaries") or []
        records = [self._to_memory_record(r, namespace) for r in summaries if isinstance(r, dict)]
        return MemoryRecordList(records=records, next_token=resp.get("nextToken") or None)

    def delete_memory_record(self, record_id: str) -> None:
        self._data().delete_memory_record(memoryId=self.memory_id, memoryRecordId=record_id)
        _log_json(logger, logging.INFO, "memory_record_deleted", record_id=record_id)

    def retrieve_memory_records(
        self,
        actor_id: str,
        strategy_id: str,
        query: str,
        top_k: int = 10,
    ) -> list[MemoryRecord]:
        namespace = memory_namespace(strategy_id, actor_id)
        try:
            resp = self._data().retrieve_memory_records(
                memoryId=self.memory_id,
                namespace=namespace,
                searchCriteria={
                    "searchQuery": query,
                    "memoryStrategyId": strategy_id,
                    "topK": top_k,
                },
                maxResults=MEMORY_RECORDS_PAGE_SIZE,
            )
        except ClientError as e:
            if _is_not_found(e):
                return []
            raise
        summaries = resp.get("memoryRecordSummaries") or []
        return [self._to_memory_record(r, namespace) for r in summaries if isinstance(r, dict)]


def create_memory_service(config: MemoryConfig | None = None) -> MemoryService:
    cfg = config or load_memory_config()
    return MemoryService(cfg.memory_id, region=cfg.region)
