"""Notification protocol and an in-memory inbox implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol
from uuid import uuid4

from pydantic import BaseModel, Field

from .config import normalize_email

logger = logging.getLogger(__name__)

DEFAULT_INBOX_LIMIT = 50


class NotificationKind(StrEnum):
    """Kinds of notifications emitted by the travel desk."""

    REQUEST_CREATED = "request_created"
    MANAGER_APPROVED = "manager_approved"
    POC_APPROVED = "poc_approved"
    REJECTION = "rejection"
    APPROVAL = "approval"
    VENDOR_RESPONSE = "vendor_response"
    COMMENT = "comment"


class Notifier(Protocol):
    """Fire-and-forget delivery of a notification to one recipient."""

    def notify(
        self,
        recipient_email: str,
        kind: NotificationKind,
        title: str,
        body: str,
        request_ref: str | None = None,
    ) -> None:
        """Deliver a notification; failures must not affect the caller's state."""


class Notification(BaseModel):
    """Stored notification for a single recipient."""

    notification_id: str = Field(default_factory=lambda: str(uuid4()))
    recipient_email: str = Field(..., description="Normalised recipient email")
    kind: NotificationKind = Field(..., description="Notification kind")
    title: str = Field(..., description="Short title")
    message: str = Field(..., description="Notification body")
    request_ref: str | None = Field(default=None, description="Related request id")
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass
class NotificationCenter:
    """In-memory notification inbox keyed by recipient email.

    When ``override_recipient`` is set every notification is delivered to
    that address instead of its original recipient.
    """

    override_recipient: str | None = None
    notifications: list[Notification] = field(default_factory=list)

    def notify(
        self,
        recipient_email: str,
        kind: NotificationKind,
        title: str,
        body: str,
        request_ref: str | None = None,
    ) -> None:
        recipient = normalize_email(recipient_email)
        if self.override_recipient:
            logger.info(
                "Notification override: %s -> %s", recipient, self.override_recipient
            )
            recipient = normalize_email(self.override_recipient)
        self.notifications.append(
            Notification(
                recipient_email=recipient,
                kind=NotificationKind(kind),
                title=title,
                message=body,
                request_ref=request_ref,
            )
        )

    def list_for(
        self,
        recipient_email: str,
        *,
        unread_only: bool = False,
        limit: int = DEFAULT_INBOX_LIMIT,
    ) -> list[Notification]:
        """Return the recipient's notifications, newest first."""

        recipient = normalize_email(recipient_email)
        matches = [
            item
            for item in self.notifications
            if item.recipient_email == recipient and not (unread_only and item.is_read)
        ]
        matches.reverse()
        return matches[:limit]

    def unread_count(self, recipient_email: str) -> int:
        recipient = normalize_email(recipient_email)
        return sum(
            1
            for item in self.notifications
            if item.recipient_email == recipient and not item.is_read
        )

    def mark_read(self, recipient_email: str, notification_id: str) -> Notification:
        """Mark one of the recipient's notifications as read."""

        notification = self._find(recipient_email, notification_id)
        notification.is_read = True
        return notification

    def mark_all_read(self, recipient_email: str) -> int:
        """Mark every unread notification for the recipient; return how many changed."""

        recipient = normalize_email(recipient_email)
        changed = 0
        for item in self.notifications:
            if item.recipient_email == recipient and not item.is_read:
                item.is_read = True
                changed += 1
        return changed

    def delete(self, recipient_email: str, notification_id: str) -> Notification:
        notification = self._find(recipient_email, notification_id)
        self.notifications.remove(notification)
        return notification

    def _find(self, recipient_email: str, notification_id: str) -> Notification:
        recipient = normalize_email(recipient_email)
        for item in self.notifications:
            if item.notification_id == notification_id and item.recipient_email == recipient:
                return item
        raise KeyError(f"Notification not found: {notification_id}")
