"""Read-only views over travel requests for approver, POC and vendor queues."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .config import normalize_email
from .models import RequestStatus, TravelRequest
from .repository import InMemoryTravelRequestRepository

logger = logging.getLogger(__name__)


class ApprovalCounts(BaseModel):
    """Dashboard counters for a single approver."""

    pending: int = Field(default=0, ge=0)
    approved: int = Field(default=0, ge=0)
    rejected: int = Field(default=0, ge=0)


class ApprovalQueue(BaseModel):
    """Requests visible to an approver plus their dashboard counters."""

    requests: list[TravelRequest] = Field(default_factory=list)
    counts: ApprovalCounts = Field(default_factory=ApprovalCounts)


def is_pending_for(request: TravelRequest, approver_email: str) -> bool:
    """True when ``approver_email`` is the request's current, undecided approver."""

    current = request.current_approver()
    return current is not None and current.is_actor(approver_email) and not current.approved


def has_approved(request: TravelRequest, approver_email: str) -> bool:
    entry = request.chain_entry_for(approver_email)
    return entry is not None and entry.approved


def list_pending_for(
    repository: InMemoryTravelRequestRepository, approver_email: str
) -> list[TravelRequest]:
    """Return requests waiting on ``approver_email``, newest first."""

    approver = normalize_email(approver_email)
    return repository.query(lambda request: is_pending_for(request, approver))


def counts_by_status(
    repository: InMemoryTravelRequestRepository, approver_email: str
) -> ApprovalCounts:
    """Count pending, approved and rejected requests for an approver.

    ``approved`` counts requests past manager review that this approver
    signed; ``rejected`` counts manager rejections of any chain they sit on.
    """

    approver = normalize_email(approver_email)
    counts = ApprovalCounts()
    for request in repository.query(lambda item: item.involves_approver(approver)):
        if is_pending_for(request, approver):
            counts.pending += 1
        elif request.status in (
            RequestStatus.MANAGER_APPROVED,
            RequestStatus.APPROVED,
        ) and has_approved(request, approver):
            counts.approved += 1
        elif request.status == RequestStatus.REJECTED:
            counts.rejected += 1
    return counts


def get_pending_approvals(
    repository: InMemoryTravelRequestRepository,
    approver_email: str,
    status_filter: RequestStatus | str | None = None,
) -> ApprovalQueue:
    """Return an approver's queue, optionally filtered by status.

    ``Pending`` lists only requests where the approver is the current one;
    any other status lists requests in that status whose chain includes the
    approver; no filter lists every request whose chain includes them. An
    unrecognised filter matches nothing.
    """

    approver = normalize_email(approver_email)
    counts = counts_by_status(repository, approver)
    status: RequestStatus | None = None
    if status_filter:
        try:
            status = RequestStatus(status_filter)
        except ValueError:
            logger.warning("Unknown status filter %r for %s", status_filter, approver)
            return ApprovalQueue(counts=counts)

    if status == RequestStatus.PENDING:
        requests = list_pending_for(repository, approver)
    else:
        requests = repository.query(
            lambda request: request.involves_approver(approver)
            and (status is None or request.status == status)
        )
    return ApprovalQueue(requests=requests, counts=counts)


def poc_queue(repository: InMemoryTravelRequestRepository) -> list[TravelRequest]:
    """Requests cleared by every manager and awaiting the POC."""

    return repository.query(lambda request: request.status == RequestStatus.MANAGER_APPROVED)


def vendor_queue(repository: InMemoryTravelRequestRepository) -> list[TravelRequest]:
    """Requests released to the vendor for booking."""

    return repository.query(lambda request: request.status == RequestStatus.APPROVED)
