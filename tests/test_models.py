"""Tests for the persisted interview document."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from brand_interview.errors import InterviewValidationError
from brand_interview.models import InterviewDocument, InterviewMessage, format_timestamp
from brand_interview.phases import InterviewPhase


def test_document_uses_camel_case_fields():
    document = InterviewDocument(
        brand_name="Acme",
        conversation_id="thread_1",
        current_phase=InterviewPhase.AUDIENCE,
        question_count=7,
        messages=[
            InterviewMessage(role="assistant", content="Hi", phase=InterviewPhase.AUDIENCE)
        ],
        reports={"discovery": "# d"},
    )

    payload = document.to_dict()

    assert payload["brandName"] == "Acme"
    assert payload["conversationId"] == "thread_1"
    assert payload["currentPhase"] == "audience"
    assert payload["questionCount"] == 7
    assert payload["messages"][0]["phase"] == "audience"
    assert payload["createdAt"].endswith("Z")
    assert InterviewDocument.from_dict(payload).messages == document.messages


def test_legacy_thread_id_and_missing_fields_are_tolerated():
    document = InterviewDocument.from_dict(
        {"brandName": "Acme", "threadId": "thread_9", "currentPhase": "phase2"}
    )
    assert document.conversation_id == "thread_9"
    assert document.current_phase is InterviewPhase.MESSAGING
    assert document.messages == []
    assert document.question_count == 0


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"brandName": "Acme", "messages": "nope"},
        {"brandName": "Acme", "messages": [{"role": "system", "content": "x"}]},
        {"brandName": "Acme", "questionCount": "several"},
        {"brandName": "Acme", "createdAt": "yesterday"},
    ],
)
def test_invalid_documents_raise_validation_errors(payload):
    with pytest.raises(InterviewValidationError):
        InterviewDocument.from_dict(payload)


def test_format_timestamp_is_utc_with_z_suffix():
    moment = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    assert format_timestamp(moment) == "2024-05-01T12:30:00Z"
