"""Workflow engine that advances travel requests through their approval chain.

Every mutation follows the same shape: load a copy of the aggregate, check
the caller against the current state, mutate the copy, and save it with the
version it was loaded at. Losing a save race means reloading and re-checking,
so a second caller observes the new state (and usually fails) instead of
advancing the chain twice. Notifications, conversation messages and activity
records are emitted only after the save commits and never undo it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .audit import ActivityAction, ActivityLog, AuditSink, ConversationAuditSink
from .chain import build_approval_chain
from .config import ApprovalPolicy, normalize_email
from .directory import OrgDirectory, lookup_employee
from .errors import (
    ChainExhaustedUnexpectedly,
    ConcurrentModification,
    DirectoryLookupFailed,
    InvalidTransition,
    NotAuthorized,
    NotCurrentApprover,
)
from .models import (
    EDITABLE_TRIP_FIELDS,
    ChatMessage,
    DecisionOutcome,
    RequestStatus,
    TravelRequest,
    TripDetails,
)
from .notifications import NotificationCenter, NotificationKind, Notifier
from .repository import InMemoryTravelRequestRepository
from .security import Permission, RoleDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    """Notification queued for delivery after a commit."""

    recipient: str
    kind: NotificationKind
    title: str
    body: str


@dataclass
class Transition:
    """Side effects describing one committed change to a request."""

    message: str
    action: ActivityAction
    details: str
    notices: list[Notice] = field(default_factory=list)


def with_comment(message: str, comment: str | None) -> str:
    """Append a non-blank comment to a system message."""

    if comment and comment.strip():
        return f'{message} Comment: "{comment.strip()}"'
    return message


class WorkflowEngine:
    """Sole mutator of approval state on travel requests."""

    def __init__(
        self,
        directory: OrgDirectory,
        repository: InMemoryTravelRequestRepository | None = None,
        *,
        policy: ApprovalPolicy | None = None,
        notifier: Notifier | None = None,
        audit_sink: AuditSink | None = None,
        activity_log: ActivityLog | None = None,
        roles: RoleDirectory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.directory = directory
        self.repository = (
            repository if repository is not None else InMemoryTravelRequestRepository()
        )
        self.policy = policy or ApprovalPolicy()
        self.notifier = notifier or NotificationCenter(
            override_recipient=self.policy.notification_override_recipient
        )
        self.audit_sink = audit_sink or ConversationAuditSink(self.repository)
        self.activity_log = activity_log or ActivityLog()
        self.roles = roles or RoleDirectory.from_policy(self.policy)
        self.clock = clock or (lambda: datetime.now(UTC))

    # Submission -----------------------------------------------------------

    def submit(self, requester_email: str, trip: TripDetails) -> TravelRequest:
        """Create a request with a frozen approval chain snapshot.

        A requester without any reachable manager gets an empty chain; the
        request then starts in ``ManagerApproved`` and waits for the POC.
        """

        requester_email = normalize_email(requester_email)
        employee = lookup_employee(self.directory, requester_email)
        if employee is None:
            raise DirectoryLookupFailed(requester_email)

        chain = build_approval_chain(requester_email, self.directory, self.policy)
        now = self.clock()

        if chain:
            status = RequestStatus.PENDING
            opening = "Your travel request has been submitted and is pending approval."
            manager_approved_at = None
        else:
            status = RequestStatus.MANAGER_APPROVED
            opening = (
                "Your travel request has been submitted. No manager approval is"
                " required; awaiting POC final approval."
            )
            manager_approved_at = now

        request = TravelRequest(
            request_id=self.repository.next_request_id(now),
            status=status,
            originator_email=requester_email,
            originator_name=employee.name,
            approval_chain=chain,
            current_approval_index=0,
            manager_approved_at=manager_approved_at,
            trip=trip,
            chat_messages=[ChatMessage.system(opening, timestamp=now)],
            created_at=now,
            updated_at=now,
        )
        stored = self.repository.add(request)
        logger.info(
            "Request %s submitted by %s with %d approver(s)",
            stored.request_id,
            requester_email,
            len(chain),
        )

        destination = trip.destination_label()
        if chain:
            first = chain[0]
            position = "the first" if len(chain) > 1 else "the"
            self._notify(
                stored,
                Notice(
                    recipient=first.email,
                    kind=NotificationKind.REQUEST_CREATED,
                    title="New Travel Request - Awaiting Your Approval",
                    body=(
                        f"{employee.name} submitted a {trip.trip_nature.value} travel"
                        f" request to {destination}. You are {position} approver in"
                        " this chain."
                    ),
                ),
            )
        elif employee.manager_email:
            self._notify(
                stored,
                Notice(
                    recipient=employee.manager_email,
                    kind=NotificationKind.REQUEST_CREATED,
                    title="New Travel Request",
                    body=(
                        f"{employee.name} submitted a {trip.trip_nature.value} travel"
                        f" request to {destination}"
                    ),
                ),
            )
        self._record_activity(
            stored,
            requester_email,
            employee.name,
            ActivityAction.CREATE_TRAVEL_REQUEST,
            f"Created {trip.trip_nature.value} travel request from"
            f" {trip.origin or 'origin'} to {destination} on {trip.travel_date}",
        )
        return stored

    def submit_on_behalf(
        self, poc_email: str, employee_email: str, trip: TripDetails
    ) -> TravelRequest:
        """Create a request for an employee that skips manager approval."""

        poc_email = normalize_email(poc_email)
        self._require(poc_email, Permission.CREATE_ON_BEHALF, "create requests on behalf")
        employee_email = normalize_email(employee_email)
        employee = lookup_employee(self.directory, employee_email)
        if employee is None:
            raise DirectoryLookupFailed(employee_email)

        now = self.clock()
        request = TravelRequest(
            request_id=self.repository.next_request_id(now),
            status=RequestStatus.MANAGER_APPROVED,
            originator_email=employee_email,
            originator_name=employee.name,
            approval_chain=[],
            manager_approved_at=now,
            trip=trip,
            chat_messages=[
                ChatMessage.system(
                    f"Request created by POC on behalf of {employee.name}.", timestamp=now
                )
            ],
            created_at=now,
            updated_at=now,
        )
        stored = self.repository.add(request)
        self._record_activity(
            stored,
            poc_email,
            self._display_name(poc_email),
            ActivityAction.CREATE_ON_BEHALF,
            f"Created travel request {stored.request_id} on behalf of {employee.name}",
        )
        return stored

    # Decisions ------------------------------------------------------------

    def decide(
        self,
        request_id: str,
        actor_email: str,
        outcome: DecisionOutcome | str,
        comment: str | None = None,
    ) -> TravelRequest:
        """Apply an approve or reject decision from ``actor_email``."""

        try:
            outcome = DecisionOutcome(outcome)
        except ValueError as exc:
            raise InvalidTransition(f"Unsupported decision outcome: {outcome}") from exc
        actor = normalize_email(actor_email)
        actor_name = self._display_name(actor)

        def apply(request: TravelRequest) -> Transition:
            if request.is_terminal:
                raise InvalidTransition(
                    f"Request {request.request_id} is {request.status.value};"
                    " no further decisions are accepted"
                )
            if request.status == RequestStatus.MANAGER_APPROVED:
                self._require(actor, Permission.FINAL_APPROVE, "give final approval")
                return self._apply_poc_decision(request, actor, actor_name, outcome, comment)
            return self._apply_manager_decision(request, actor, actor_name, outcome, comment)

        saved, transition = self._commit(request_id, apply)
        self._run_side_effects(saved, actor, actor_name, transition)
        return self.repository.get(request_id) or saved

    def _apply_manager_decision(
        self,
        request: TravelRequest,
        actor: str,
        actor_name: str,
        outcome: DecisionOutcome,
        comment: str | None,
    ) -> Transition:
        chain = request.approval_chain
        index = request.current_approval_index
        if index >= len(chain):
            logger.error(
                "Request %s is pending at index %d of a %d-entry chain",
                request.request_id,
                index,
                len(chain),
            )
            raise ChainExhaustedUnexpectedly(
                f"Request {request.request_id} has no pending approver in its chain"
            )

        current = chain[index]
        if not current.is_actor(actor):
            raise NotCurrentApprover(current.email, current.name)

        now = self.clock()
        request.updated_at = now
        originator = request.originator_email

        if outcome == DecisionOutcome.REJECTED:
            request.status = RequestStatus.REJECTED
            message = with_comment(
                f"Request was rejected by {actor_name} ({current.impact_level}).", comment
            )
            return Transition(
                message=message,
                action=ActivityAction.REJECT,
                details=f"Rejected travel request {request.request_id} - {message}",
                notices=[
                    Notice(originator, NotificationKind.REJECTION, "Request Rejected", message)
                ],
            )

        current.approved = True
        current.approved_at = now
        next_index = index + 1

        if next_index < len(chain):
            request.current_approval_index = next_index
            following = chain[next_index]
            message = with_comment(
                f"Request was approved by {actor_name} ({current.impact_level})."
                f" Now awaiting approval from {following.name} ({following.impact_level}).",
                comment,
            )
            return Transition(
                message=message,
                action=ActivityAction.MANAGER_APPROVE,
                details=(
                    f"Approved travel request {request.request_id} as"
                    f" {current.impact_level} manager (Level {index + 1}/{len(chain)})"
                    f" - Forwarded to {following.name}"
                ),
                notices=[
                    Notice(
                        originator,
                        NotificationKind.MANAGER_APPROVED,
                        "Manager Approved",
                        f"Your travel request {request.request_id} was approved by"
                        f" {actor_name} and is now with {following.name}",
                    ),
                    Notice(
                        following.email,
                        NotificationKind.REQUEST_CREATED,
                        "Travel Request - Awaiting Your Approval",
                        f"{request.originator_name}'s travel request {request.request_id}"
                        f" requires your approval (Level {next_index + 1} of {len(chain)})",
                    ),
                ],
            )

        request.status = RequestStatus.MANAGER_APPROVED
        request.manager_approved_by = actor
        request.manager_approved_at = now
        message = with_comment(
            f"Request was approved by {actor_name} ({current.impact_level})."
            " All manager approvals complete. Awaiting POC final approval.",
            comment,
        )
        return Transition(
            message=message,
            action=ActivityAction.MANAGER_APPROVE,
            details=(
                f"Approved travel request {request.request_id} as final"
                f" {current.impact_level} manager - All manager approvals complete,"
                " sent to POC"
            ),
            notices=[
                Notice(
                    originator,
                    NotificationKind.MANAGER_APPROVED,
                    "Manager Approved",
                    f"Your travel request {request.request_id} was approved by all"
                    " managers and is now with Travel POC",
                )
            ],
        )

    def _apply_poc_decision(
        self,
        request: TravelRequest,
        actor: str,
        actor_name: str,
        outcome: DecisionOutcome,
        comment: str | None,
    ) -> Transition:
        now = self.clock()
        request.poc_approved_by = actor
        request.poc_approved_at = now
        request.updated_at = now

        if outcome == DecisionOutcome.REJECTED:
            request.status = RequestStatus.POC_REJECTED
            message = with_comment(f"Request was rejected by POC ({actor_name}).", comment)
            return Transition(
                message=message,
                action=ActivityAction.POC_REJECT,
                details=f"Rejected travel request {request.request_id} as POC - {message}",
                notices=[
                    Notice(
                        request.originator_email,
                        NotificationKind.REJECTION,
                        "Request Rejected",
                        message,
                    )
                ],
            )

        request.status = RequestStatus.APPROVED
        message = with_comment(
            f"Request was approved by POC ({actor_name}). Ready for vendor to process.",
            comment,
        )
        return Transition(
            message=message,
            action=ActivityAction.POC_APPROVE,
            details=(
                f"Approved travel request {request.request_id} as POC (Final Approval)"
                f" - {message}"
            ),
            notices=[
                Notice(
                    request.originator_email,
                    NotificationKind.POC_APPROVED,
                    "Request Fully Approved",
                    f"Your travel request {request.request_id} has been approved by POC"
                    " and sent to vendor",
                )
            ],
        )

    # POC logistics --------------------------------------------------------

    def edit_logistics(
        self, request_id: str, actor_email: str, changes: Mapping[str, object]
    ) -> TravelRequest:
        """Let the POC adjust trip details before giving final approval."""

        actor = normalize_email(actor_email)
        self._require(actor, Permission.EDIT_LOGISTICS, "edit request logistics")
        unknown = sorted(set(changes) - EDITABLE_TRIP_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(unknown)}")
        actor_name = self._display_name(actor)

        def apply(request: TravelRequest) -> Transition:
            if request.status != RequestStatus.MANAGER_APPROVED:
                raise InvalidTransition("Can only edit manager-approved requests")
            data = request.trip.model_dump()
            data.update(changes)
            request.trip = TripDetails.model_validate(data)
            now = self.clock()
            request.poc_edited_at = now
            request.updated_at = now
            return Transition(
                message=f"Request details were edited by POC ({actor_name}).",
                action=ActivityAction.POC_EDIT,
                details=(
                    f"Edited travel request {request.request_id}:"
                    f" {', '.join(sorted(changes))}"
                ),
            )

        saved, transition = self._commit(request_id, apply)
        self._run_side_effects(saved, actor, actor_name, transition)
        return self.repository.get(request_id) or saved

    # Internals ------------------------------------------------------------

    def _commit(
        self, request_id: str, apply: Callable[[TravelRequest], Transition]
    ) -> tuple[TravelRequest, Transition]:
        """Load, apply and save with a version check, retrying lost races.

        A lost race means another writer committed, so ``apply`` is rerun on
        the fresh state until it either commits or raises a workflow error.
        """

        while True:
            request = self.repository.require(request_id)
            expected_version = request.version
            transition = apply(request)
            try:
                saved = self.repository.save(request, expected_version=expected_version)
            except ConcurrentModification as exc:
                logger.info("Retrying %s after concurrent update: %s", request_id, exc)
                continue
            return saved, transition

    def _require(self, actor: str, permission: Permission, action: str) -> None:
        if not self.roles.can(actor, permission):
            raise NotAuthorized(f"{actor} is not allowed to {action}")

    def _display_name(self, email: str) -> str:
        try:
            employee = lookup_employee(self.directory, email)
        except DirectoryLookupFailed:
            logger.warning("Could not resolve a display name for %s", email)
            return email
        return employee.name if employee is not None and employee.name else email

    def _run_side_effects(
        self,
        request: TravelRequest,
        actor: str,
        actor_name: str,
        transition: Transition,
    ) -> None:
        try:
            self.audit_sink.append_system_message(
                request.request_id, transition.message, timestamp=request.updated_at
            )
        except Exception:
            logger.exception("Failed to record system message for %s", request.request_id)
        for notice in transition.notices:
            self._notify(request, notice)
        self._record_activity(request, actor, actor_name, transition.action, transition.details)

    def _notify(self, request: TravelRequest, notice: Notice) -> None:
        try:
            self.notifier.notify(
                notice.recipient,
                notice.kind,
                notice.title,
                notice.body,
                request.request_id,
            )
        except Exception:
            logger.exception(
                "Failed to notify %s about %s", notice.recipient, request.request_id
            )

    def _record_activity(
        self,
        request: TravelRequest,
        actor: str,
        actor_name: str,
        action: ActivityAction,
        details: str,
    ) -> None:
        try:
            self.activity_log.record(
                action,
                actor,
                actor_name,
                details,
                request_ref=request.request_id,
                metadata={"status": request.status.value},
                timestamp=request.updated_at,
            )
        except Exception:
            logger.exception("Failed to log activity for %s", request.request_id)
