"""Stable, transport-agnostic API surface for the travel approval workflow.

Every operation returns a value instead of raising: callers such as an HTTP
layer or the CLI map ``PortalResult.error`` to their own responses.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .audit import ActivityLog
from .config import ApprovalPolicy
from .directory import OrgDirectory, load_directory
from .engine import WorkflowEngine
from .errors import ErrorKind, WorkflowError
from .models import DecisionOutcome, RequestStatus, TravelRequest, TripDetails
from .notifications import NotificationCenter
from .projections import ApprovalQueue, get_pending_approvals, poc_queue, vendor_queue
from .repository import InMemoryTravelRequestRepository
from .security import RoleDirectory

logger = logging.getLogger(__name__)

__all__ = [
    "PortalResult",
    "TravelPortal",
]


class PortalResult(BaseModel):
    """Outcome of a mutating portal operation."""

    ok: bool = Field(..., description="Whether the operation committed")
    request: TravelRequest | None = Field(
        default=None, description="Updated request when the operation succeeded"
    )
    error: ErrorKind | None = Field(default=None, description="Failure kind")
    message: str | None = Field(default=None, description="Human-readable failure")

    @classmethod
    def success(cls, request: TravelRequest) -> PortalResult:
        return cls(ok=True, request=request)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> PortalResult:
        return cls(ok=False, error=error, message=message)


class TravelPortal:
    """Wires the directory, engine and stores behind one boundary."""

    def __init__(
        self,
        directory: OrgDirectory,
        *,
        policy: ApprovalPolicy | None = None,
        repository: InMemoryTravelRequestRepository | None = None,
        notifications: NotificationCenter | None = None,
        activity_log: ActivityLog | None = None,
        roles: RoleDirectory | None = None,
    ) -> None:
        self.policy = policy or ApprovalPolicy()
        self.repository = (
            repository if repository is not None else InMemoryTravelRequestRepository()
        )
        self.notifications = notifications or NotificationCenter(
            override_recipient=self.policy.notification_override_recipient
        )
        self.engine = WorkflowEngine(
            directory,
            self.repository,
            policy=self.policy,
            notifier=self.notifications,
            activity_log=activity_log,
            roles=roles,
        )

    @classmethod
    def from_files(
        cls, directory_path: str | Path, policy_path: str | Path | None = None
    ) -> TravelPortal:
        """Build a portal from a directory export and a policy YAML file."""

        return cls(load_directory(directory_path), policy=ApprovalPolicy.from_file(policy_path))

    @property
    def activity_log(self) -> ActivityLog:
        return self.engine.activity_log

    def submit_request(
        self, requester_email: str, trip: TripDetails | Mapping[str, object]
    ) -> PortalResult:
        return self._run(
            lambda: self.engine.submit(requester_email, self._trip(trip)),
            "submit request",
        )

    def submit_on_behalf(
        self,
        poc_email: str,
        employee_email: str,
        trip: TripDetails | Mapping[str, object],
    ) -> PortalResult:
        return self._run(
            lambda: self.engine.submit_on_behalf(poc_email, employee_email, self._trip(trip)),
            "submit on behalf",
        )

    def decide(
        self,
        request_id: str,
        actor_email: str,
        outcome: DecisionOutcome | str,
        comment: str | None = None,
    ) -> PortalResult:
        return self._run(
            lambda: self.engine.decide(request_id, actor_email, outcome, comment),
            "decide",
        )

    def edit_logistics(
        self, request_id: str, actor_email: str, changes: Mapping[str, object]
    ) -> PortalResult:
        return self._run(
            lambda: self.engine.edit_logistics(request_id, actor_email, changes),
            "edit logistics",
        )

    def get_request(self, request_id: str) -> TravelRequest | None:
        return self.repository.get(request_id)

    def get_pending_approvals(
        self, approver_email: str, status_filter: RequestStatus | str | None = None
    ) -> ApprovalQueue:
        return get_pending_approvals(self.repository, approver_email, status_filter)

    def poc_queue(self) -> list[TravelRequest]:
        return poc_queue(self.repository)

    def vendor_queue(self) -> list[TravelRequest]:
        return vendor_queue(self.repository)

    @staticmethod
    def _trip(trip: TripDetails | Mapping[str, object]) -> TripDetails:
        if isinstance(trip, TripDetails):
            return trip
        return TripDetails.model_validate(dict(trip))

    @staticmethod
    def _run(operation: Callable[[], TravelRequest], label: str) -> PortalResult:
        try:
            return PortalResult.success(operation())
        except WorkflowError as exc:
            logger.info("%s failed: %s", label, exc)
            return PortalResult.failure(exc.kind, str(exc))
        except ValidationError as exc:
            return PortalResult.failure(ErrorKind.INVALID_REQUEST, str(exc))
        except ValueError as exc:
            return PortalResult.failure(ErrorKind.INVALID_REQUEST, str(exc))
