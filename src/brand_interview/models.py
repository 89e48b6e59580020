"""Persisted interview document and its messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, cast

from .errors import InterviewValidationError
from .phases import InterviewPhase


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value:
        normalized = value.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError as exc:
            raise InterviewValidationError(f"Invalid timestamp: {value}") from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise InterviewValidationError(f"Invalid timestamp: {value!r}")


@dataclass(frozen=True, slots=True)
class InterviewMessage:
    """One chat turn. Immutable once appended to the history."""

    role: str
    content: str
    phase: InterviewPhase
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
            "phase": self.phase.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InterviewMessage":
        role = str(data.get("role", "")).strip().lower()
        if role not in {"user", "assistant"}:
            raise InterviewValidationError(f"Unsupported message role: {role!r}")
        content = data.get("content")
        if not isinstance(content, str):
            raise InterviewValidationError("Message content must be text")
        try:
            phase = InterviewPhase.from_string(
                data.get("phase"), default=InterviewPhase.DISCOVERY
            )
        except ValueError as exc:
            raise InterviewValidationError(str(exc)) from exc
        timestamp = (
            parse_timestamp(data["timestamp"]) if data.get("timestamp") else utc_now()
        )
        return cls(role=role, content=content, phase=phase, timestamp=timestamp)


def _empty_messages() -> List[InterviewMessage]:
    return []


def _empty_reports() -> Dict[str, str]:
    return {}


@dataclass(slots=True)
class InterviewDocument:
    """Interview record as stored in the document store."""

    brand_name: str
    conversation_id: Optional[str] = None
    current_phase: InterviewPhase = InterviewPhase.DISCOVERY
    question_count: int = 0
    messages: List[InterviewMessage] = field(default_factory=_empty_messages)
    reports: Dict[str, str] = field(default_factory=_empty_reports)
    created_at: datetime = field(default_factory=utc_now)
    last_updated: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brandName": self.brand_name,
            "conversationId": self.conversation_id,
            "createdAt": format_timestamp(self.created_at),
            "lastUpdated": format_timestamp(self.last_updated),
            "currentPhase": self.current_phase.value,
            "questionCount": self.question_count,
            "messages": [message.to_dict() for message in self.messages],
            "reports": dict(self.reports),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InterviewDocument":
        brand_name = data.get("brandName")
        if not isinstance(brand_name, str) or not brand_name.strip():
            raise InterviewValidationError("Interview document has no brand name")
        raw_messages = data.get("messages") or []
        if not isinstance(raw_messages, list):
            raise InterviewValidationError("Interview messages must be a list")
        messages = [
            InterviewMessage.from_dict(cast(Mapping[str, Any], entry))
            for entry in cast(List[Any], raw_messages)
            if isinstance(entry, Mapping)
        ]
        raw_reports = data.get("reports") or {}
        if not isinstance(raw_reports, Mapping):
            raise InterviewValidationError("Interview reports must be a mapping")
        reports = {
            str(key): str(value)
            for key, value in cast(Mapping[str, Any], raw_reports).items()
            if value
        }
        try:
            phase = InterviewPhase.from_string(
                data.get("currentPhase"), default=InterviewPhase.DISCOVERY
            )
        except ValueError as exc:
            raise InterviewValidationError(str(exc)) from exc
        try:
            question_count = int(data.get("questionCount") or 0)
        except (TypeError, ValueError) as exc:
            raise InterviewValidationError("questionCount must be an integer") from exc
        conversation_id = data.get("conversationId") or data.get("threadId")
        return cls(
            brand_name=brand_name.strip(),
            conversation_id=str(conversation_id) if conversation_id else None,
            current_phase=phase,
            question_count=question_count,
            messages=messages,
            reports=reports,
            created_at=(
                parse_timestamp(data["createdAt"]) if data.get("createdAt") else utc_now()
            ),
            last_updated=(
                parse_timestamp(data["lastUpdated"])
                if data.get("lastUpdated")
                else utc_now()
            ),
        )
