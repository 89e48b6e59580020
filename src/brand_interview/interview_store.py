"""Persistence of interview documents in Redis."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, cast
from uuid import uuid4

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from .errors import InterviewNotFoundError, NetworkError, ServiceError
from .models import InterviewDocument

logger = logging.getLogger(__name__)

KEY_PREFIX = "interview"
INDEX_KEY = "interviews:index"
MAX_WATCH_RETRIES = 5


class InterviewStore(Protocol):
    """Narrow read/update contract the engine relies on."""

    async def create_document(self, document: InterviewDocument) -> str: ...

    async def read_document(self, interview_id: str) -> InterviewDocument: ...

    async def update_document(
        self,
        interview_id: str,
        fields: Mapping[str, Any],
    ) -> None: ...


def new_interview_id() -> str:
    return uuid4().hex[:20]


def apply_field_paths(
    document: Dict[str, Any],
    fields: Mapping[str, Any],
) -> Dict[str, Any]:
    """Apply dotted-path updates (``reports.discovery``) to a plain dict."""

    for path, value in fields.items():
        parts = path.split(".")
        target = document
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = cast(Dict[str, Any], child)
        target[parts[-1]] = value
    return document


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as exc:
        raise NetworkError(f"Unable to {action}: {exc}") from exc
    except RedisError as exc:
        raise ServiceError(f"Unable to {action}: {exc}") from exc


class RedisInterviewStore:
    """Stores one JSON document per interview.

    With the RedisJSON module, nested fields are updated in place through
    ``JSON.SET`` paths inside a single transaction. Without it, documents are
    plain JSON strings updated with an optimistic ``WATCH`` transaction.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        client: Optional[aioredis.Redis] = None,
        use_json: bool = True,
    ) -> None:
        if client is None:
            if not redis_url:
                raise ValueError("A Redis URL or client is required.")
            client = aioredis.from_url(redis_url, decode_responses=True)
        self._client = client
        self._use_json = use_json

    @staticmethod
    def key_for(interview_id: str) -> str:
        return f"{KEY_PREFIX}:{interview_id}"

    async def create_document(self, document: InterviewDocument) -> str:
        interview_id = new_interview_id()
        key = self.key_for(interview_id)
        record = document.to_dict()
        with _translate_errors("create the interview"):
            async with self._client.pipeline(transaction=True) as pipe:
                if self._use_json:
                    pipe.json().set(key, "$", record)
                else:
                    pipe.set(key, json.dumps(record, ensure_ascii=False))
                pipe.zadd(INDEX_KEY, {interview_id: document.created_at.timestamp()})
                await pipe.execute()
        logger.info("Created interview %s for %s", interview_id, document.brand_name)
        return interview_id

    async def read_document(self, interview_id: str) -> InterviewDocument:
        key = self.key_for(interview_id)
        with _translate_errors("read the interview"):
            if self._use_json:
                raw = await self._client.json().get(key)
            else:
                raw = await self._client.get(key)
        if raw is None:
            raise InterviewNotFoundError(interview_id)
        return InterviewDocument.from_dict(self._decode(raw, interview_id))

    async def update_document(
        self,
        interview_id: str,
        fields: Mapping[str, Any],
    ) -> None:
        if not fields:
            return
        key = self.key_for(interview_id)
        if self._use_json:
            await self._update_json(key, interview_id, fields)
        else:
            await self._update_string(key, interview_id, fields)

    async def list_interview_ids(self, limit: int = 10) -> List[str]:
        """Most recently created interviews first."""

        with _translate_errors("list interviews"):
            members = await self._client.zrevrange(INDEX_KEY, 0, max(limit - 1, 0))
        return [str(member) for member in members]

    async def close(self) -> None:
        await self._client.aclose()

    async def _update_json(
        self,
        key: str,
        interview_id: str,
        fields: Mapping[str, Any],
    ) -> None:
        with _translate_errors("update the interview"):
            exists = await self._client.exists(key)
            if not exists:
                raise InterviewNotFoundError(interview_id)
            async with self._client.pipeline(transaction=True) as pipe:
                for path, value in fields.items():
                    pipe.json().set(key, f"$.{path}", value)
                await pipe.execute()

    async def _update_string(
        self,
        key: str,
        interview_id: str,
        fields: Mapping[str, Any],
    ) -> None:
        with _translate_errors("update the interview"):
            async with self._client.pipeline(transaction=True) as pipe:
                for _ in range(MAX_WATCH_RETRIES):
                    try:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        if raw is None:
                            await pipe.unwatch()
                            raise InterviewNotFoundError(interview_id)
                        document = apply_field_paths(
                            self._decode(raw, interview_id), fields
                        )
                        pipe.multi()
                        pipe.set(key, json.dumps(document, ensure_ascii=False))
                        await pipe.execute()
                        return
                    except WatchError:
                        logger.info("Concurrent write on %s; retrying update", key)
                        continue
        raise ServiceError(f"Interview {interview_id} kept changing during update")

    @staticmethod
    def _decode(raw: Any, interview_id: str) -> Dict[str, Any]:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            payload = json.loads(raw) if isinstance(raw, str) else raw
        except json.JSONDecodeError as exc:
            raise ServiceError(
                f"Interview {interview_id} is not valid JSON"
            ) from exc
        if isinstance(payload, list) and payload:
            payload = payload[0]
        if not isinstance(payload, dict):
            raise ServiceError(f"Interview {interview_id} is not a JSON object")
        return cast(Dict[str, Any], payload)
