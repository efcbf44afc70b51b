"""In-memory travel request storage with optimistic concurrency."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime

from .errors import ConcurrentModification, RequestNotFound
from .models import ChatMessage, TravelRequest

REQUEST_ID_BASE = 1000

# Fields written by the workflow engine; chat and file subsystems own the rest.
WORKFLOW_FIELDS = frozenset(
    {
        "status",
        "approval_chain",
        "current_approval_index",
        "manager_approved_by",
        "manager_approved_at",
        "poc_approved_by",
        "poc_approved_at",
        "poc_edited_at",
        "trip",
        "updated_at",
    }
)


class InMemoryTravelRequestRepository:
    """Thread-safe store that hands out copies and compares versions on save."""

    def __init__(self) -> None:
        self._requests: dict[str, TravelRequest] = {}
        self._lock = threading.Lock()
        self._issued = 0

    def next_request_id(self, now: datetime) -> str:
        """Return the next human-readable id, e.g. ``TR-2025-1001``."""

        with self._lock:
            self._issued += 1
            return f"TR-{now.year}-{REQUEST_ID_BASE + self._issued:04d}"

    def add(self, request: TravelRequest) -> TravelRequest:
        """Store a new request and return a copy of the stored aggregate."""

        with self._lock:
            if request.request_id in self._requests:
                raise ValueError(f"Request already exists: {request.request_id}")
            stored = TravelRequest.model_validate(request.model_dump())
            self._requests[stored.request_id] = stored
            return stored.model_copy(deep=True)

    def get(self, request_id: str) -> TravelRequest | None:
        with self._lock:
            stored = self._requests.get(request_id)
            return stored.model_copy(deep=True) if stored is not None else None

    def require(self, request_id: str) -> TravelRequest:
        request = self.get(request_id)
        if request is None:
            raise RequestNotFound(request_id)
        return request

    def save(self, request: TravelRequest, *, expected_version: int) -> TravelRequest:
        """Write the workflow fields of ``request`` if nobody saved in between.

        The stored aggregate is revalidated before it replaces the old one, so
        an update that breaks an approval invariant never becomes visible.
        """

        with self._lock:
            stored = self._requests.get(request.request_id)
            if stored is None:
                raise RequestNotFound(request.request_id)
            if stored.version != expected_version:
                raise ConcurrentModification(
                    request.request_id, expected_version, stored.version
                )
            data = stored.model_dump()
            data.update(request.model_dump(include=set(WORKFLOW_FIELDS)))
            data["version"] = stored.version + 1
            updated = TravelRequest.model_validate(data)
            self._requests[updated.request_id] = updated
            return updated.model_copy(deep=True)

    def append_message(self, request_id: str, message: ChatMessage) -> None:
        """Append to the conversation log without touching workflow fields."""

        with self._lock:
            stored = self._requests.get(request_id)
            if stored is None:
                raise RequestNotFound(request_id)
            stored.chat_messages.append(message.model_copy())

    def query(
        self, predicate: Callable[[TravelRequest], bool] | None = None
    ) -> list[TravelRequest]:
        """Return copies of matching requests, newest first."""

        with self._lock:
            matches = [
                request.model_copy(deep=True)
                for request in self._requests.values()
                if predicate is None or predicate(request)
            ]
        matches.sort(key=lambda item: (item.created_at, item.request_id), reverse=True)
        return matches

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)
