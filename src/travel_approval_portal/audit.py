"""Conversation audit sink and user activity log."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol

from .models import ChatMessage
from .repository import InMemoryTravelRequestRepository


class AuditSink(Protocol):
    """Receives human-readable records of workflow transitions."""

    def append_system_message(
        self, request_id: str, text: str, timestamp: datetime | None = None
    ) -> None:
        """Append a system-authored message stamped with the transition time."""


@dataclass
class ConversationAuditSink:
    """Writes system messages into the request's conversation log."""

    repository: InMemoryTravelRequestRepository

    def append_system_message(
        self, request_id: str, text: str, timestamp: datetime | None = None
    ) -> None:
        self.repository.append_message(
            request_id, ChatMessage.system(text, timestamp=timestamp)
        )


class ActivityAction(StrEnum):
    """User actions recorded in the activity log."""

    CREATE_TRAVEL_REQUEST = "create_travel_request"
    CREATE_ON_BEHALF = "poc_create_on_behalf"
    MANAGER_APPROVE = "manager_approve_request"
    REJECT = "reject_travel_request"
    POC_APPROVE = "poc_approve_request"
    POC_REJECT = "poc_reject_request"
    POC_EDIT = "poc_edit_request"


@dataclass
class ActivityLogEvent:
    """Single activity log entry."""

    action: ActivityAction
    actor_email: str
    actor_name: str
    details: str
    request_ref: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class ActivityLog:
    """In-memory log of who did what to which request."""

    events: list[ActivityLogEvent] = field(default_factory=list)

    def record(
        self,
        action: ActivityAction,
        actor_email: str,
        actor_name: str,
        details: str,
        request_ref: str | None = None,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> ActivityLogEvent:
        """Record a new activity event, stamped now unless ``timestamp`` is given."""

        event = ActivityLogEvent(
            action=action,
            actor_email=actor_email,
            actor_name=actor_name,
            details=details,
            request_ref=request_ref,
            metadata=metadata or {},
        )
        if timestamp is not None:
            event.timestamp = timestamp
        self.events.append(event)
        return event

    def filter_by_action(self, action: ActivityAction) -> list[ActivityLogEvent]:
        return [event for event in self.events if event.action == action]

    def for_request(self, request_ref: str) -> list[ActivityLogEvent]:
        return [event for event in self.events if event.request_ref == request_ref]
