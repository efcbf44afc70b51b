"""Core models for travel requests and their approval chains."""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import DEFAULT_MAX_CHAIN_DEPTH, normalize_email

SYSTEM_SENDER_EMAIL = "system@travel-desk.local"
SYSTEM_SENDER_NAME = "System"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RequestStatus(str, Enum):
    """Status of a travel request in the approval workflow."""

    PENDING = "Pending"
    MANAGER_APPROVED = "ManagerApproved"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    POC_REJECTED = "POCRejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.POC_REJECTED}
)


class DecisionOutcome(str, Enum):
    """Decision an approver renders on a request."""

    APPROVED = "Approved"
    REJECTED = "Rejected"


class TripNature(str, Enum):
    """Shape of the itinerary."""

    ONE_WAY = "One Way"
    ROUND_TRIP = "Round Trip"
    MULTICITY = "Multicity"


class EmployeeRecord(BaseModel):
    """Org directory entry for a single employee."""

    email: str = Field(..., min_length=1, description="Unique employee email")
    name: str = Field(..., description="Display name of the employee")
    employee_number: str = Field(default="", description="HR employee number")
    manager_email: str | None = Field(
        default=None, description="Email of the employee's direct manager"
    )
    impact_level: str | None = Field(
        default=None, description="Organisational grade code, e.g. 3A"
    )
    designation: str = Field(default="", description="Current designation")
    phone: str = Field(default="", description="Contact phone number")

    model_config = ConfigDict(frozen=True)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: object) -> object:
        return normalize_email(str(value)) if value is not None else value

    @field_validator("manager_email", mode="before")
    @classmethod
    def _normalize_manager(cls, value: object) -> object:
        if value is None:
            return None
        return normalize_email(str(value)) or None

    @field_validator("impact_level", mode="before")
    @classmethod
    def _strip_level(cls, value: object) -> object:
        if value is None:
            return None
        return str(value).strip() or None


class ApprovalChainEntry(BaseModel):
    """One manager in a request's approval chain."""

    email: str = Field(..., description="Approver email")
    name: str = Field(..., description="Approver display name")
    impact_level: str = Field(default="Unknown", description="Approver grade code")
    employee_number: str = Field(default="", description="Approver employee number")
    approved: bool = Field(default=False, description="Whether this approver signed off")
    approved_at: datetime | None = Field(
        default=None, description="When this approver signed off"
    )

    def is_actor(self, email: str) -> bool:
        """Return True when ``email`` identifies this approver."""

        return normalize_email(self.email) == normalize_email(email)


class ChatMessage(BaseModel):
    """Entry in a request's append-only conversation log."""

    sender: str = Field(..., description="Email of the sender")
    sender_name: str = Field(..., description="Display name of the sender")
    message: str = Field(..., min_length=1, description="Message text")
    timestamp: datetime = Field(default_factory=_utcnow, description="When it was sent")

    @classmethod
    def system(cls, text: str, *, timestamp: datetime | None = None) -> ChatMessage:
        return cls(
            sender=SYSTEM_SENDER_EMAIL,
            sender_name=SYSTEM_SENDER_NAME,
            message=text,
            timestamp=timestamp or _utcnow(),
        )


class ItineraryLeg(BaseModel):
    """Single leg of a multi-city itinerary."""

    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    travel_date: date
    time_slot: str | None = None


class TripDetails(BaseModel):
    """Logistics of the requested trip."""

    trip_nature: TripNature = Field(..., description="One way, round trip or multi-city")
    mode: str = Field(..., description="Flight, Train or Car")
    passenger_name: str = Field(..., description="Name of the passenger")
    passenger_phone: str = Field(..., description="Passenger contact number")
    dietary_preference: str = Field(default="No preference")
    origin: str | None = Field(default=None, description="Departure city")
    destination: str | None = Field(default=None, description="Arrival city")
    travel_date: date | None = Field(default=None, description="Date of departure")
    return_date: date | None = Field(default=None, description="Date of return")
    departure_time_slot: str | None = None
    itinerary_legs: list[ItineraryLeg] = Field(
        default_factory=list, description="Legs of a multi-city trip"
    )
    travel_class: str = Field(..., description="Requested travel class")
    purpose: str = Field(..., description="Business purpose of the trip")
    accommodation_required: bool = False
    hotel_preference: str | None = None
    check_in_date: date | None = None
    check_out_date: date | None = None
    special_instructions: str | None = None

    @model_validator(mode="after")
    def _resolve_itinerary(self) -> TripDetails:
        if self.trip_nature == TripNature.MULTICITY:
            if len(self.itinerary_legs) < 2:
                raise ValueError("Multi-city trips require at least two legs.")
            first_leg = self.itinerary_legs[0]
            self.origin = first_leg.origin
            self.destination = first_leg.destination
            self.travel_date = first_leg.travel_date
            self.return_date = None
            self.departure_time_slot = None
        else:
            missing = [
                name
                for name in ("origin", "destination", "travel_date")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"Missing trip fields: {', '.join(missing)}")
            if self.return_date and self.travel_date and self.return_date < self.travel_date:
                raise ValueError("Return date cannot precede travel date")
        if (
            self.check_in_date
            and self.check_out_date
            and self.check_out_date < self.check_in_date
        ):
            raise ValueError("Check-out date cannot precede check-in date")
        return self

    def destination_label(self) -> str:
        return self.destination or "multiple destinations"


EDITABLE_TRIP_FIELDS = frozenset(TripDetails.model_fields)


class PendingState(BaseModel):
    """Awaiting the manager at ``index`` in the chain."""

    kind: Literal["Pending"] = "Pending"
    index: int
    approver: ApprovalChainEntry

    model_config = ConfigDict(frozen=True)


class ManagerApprovedState(BaseModel):
    """Every manager signed off; awaiting the POC."""

    kind: Literal["ManagerApproved"] = "ManagerApproved"
    approved_by: str | None
    approved_at: datetime | None

    model_config = ConfigDict(frozen=True)


class ApprovedState(BaseModel):
    """Final POC sign-off; released to the vendor."""

    kind: Literal["Approved"] = "Approved"
    manager_approved_by: str | None
    poc_approved_by: str
    poc_approved_at: datetime

    model_config = ConfigDict(frozen=True)


class RejectedState(BaseModel):
    """A manager rejected the request at chain position ``index``."""

    kind: Literal["Rejected"] = "Rejected"
    index: int

    model_config = ConfigDict(frozen=True)


class POCRejectedState(BaseModel):
    """The POC rejected the request after manager approval."""

    kind: Literal["POCRejected"] = "POCRejected"
    poc_approved_by: str
    poc_approved_at: datetime

    model_config = ConfigDict(frozen=True)


RequestState = Annotated[
    PendingState | ManagerApprovedState | ApprovedState | RejectedState | POCRejectedState,
    Field(discriminator="kind"),
]


class TravelRequest(BaseModel):
    """Aggregate root for a travel request and its approval progress."""

    request_id: str = Field(..., description="Human-readable request id, e.g. TR-2025-1001")
    status: RequestStatus = Field(default=RequestStatus.PENDING)
    originator_email: str = Field(..., description="Requester email")
    originator_name: str = Field(..., description="Requester display name")
    approval_chain: list[ApprovalChainEntry] = Field(
        default_factory=list, description="Frozen snapshot of required approvers"
    )
    current_approval_index: int = Field(default=0, ge=0)
    manager_approved_by: str | None = None
    manager_approved_at: datetime | None = None
    poc_approved_by: str | None = None
    poc_approved_at: datetime | None = None
    poc_edited_at: datetime | None = None
    trip: TripDetails
    chat_messages: list[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = Field(default=0, ge=0, description="Optimistic concurrency token")

    @model_validator(mode="after")
    def _check_approval_invariants(self) -> TravelRequest:
        if len(self.approval_chain) > DEFAULT_MAX_CHAIN_DEPTH:
            raise ValueError(
                f"Approval chain cannot exceed {DEFAULT_MAX_CHAIN_DEPTH} approvers"
            )
        emails = [normalize_email(entry.email) for entry in self.approval_chain]
        if len(set(emails)) != len(emails):
            raise ValueError("Approval chain cannot contain duplicate approvers")

        if self.status == RequestStatus.PENDING:
            if not self.approval_chain:
                raise ValueError("Pending requests require a non-empty approval chain")
            for position, entry in enumerate(self.approval_chain):
                if entry.approved != (position < self.current_approval_index):
                    raise ValueError(
                        "Approvals must be recorded strictly in chain order"
                    )
        if self.status in (RequestStatus.APPROVED, RequestStatus.POC_REJECTED):
            if self.poc_approved_by is None or self.poc_approved_at is None:
                raise ValueError("POC decisions must record who decided and when")
        return self

    def current_approver(self) -> ApprovalChainEntry | None:
        """Return the only approver allowed to act next, if any."""

        if self.status != RequestStatus.PENDING:
            return None
        if 0 <= self.current_approval_index < len(self.approval_chain):
            return self.approval_chain[self.current_approval_index]
        return None

    def chain_entry_for(self, email: str) -> ApprovalChainEntry | None:
        for entry in self.approval_chain:
            if entry.is_actor(email):
                return entry
        return None

    def involves_approver(self, email: str) -> bool:
        return self.chain_entry_for(email) is not None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def state(self) -> RequestState:
        """Tagged view of the status and the fields that belong to it."""

        if self.status == RequestStatus.PENDING:
            approver = self.current_approver()
            if approver is None:
                raise ValueError("Pending request has no current approver")
            return PendingState(index=self.current_approval_index, approver=approver)
        if self.status == RequestStatus.MANAGER_APPROVED:
            return ManagerApprovedState(
                approved_by=self.manager_approved_by,
                approved_at=self.manager_approved_at,
            )
        if self.status == RequestStatus.APPROVED:
            return ApprovedState(
                manager_approved_by=self.manager_approved_by,
                poc_approved_by=self.poc_approved_by,
                poc_approved_at=self.poc_approved_at,
            )
        if self.status == RequestStatus.REJECTED:
            return RejectedState(index=self.current_approval_index)
        return POCRejectedState(
            poc_approved_by=self.poc_approved_by,
            poc_approved_at=self.poc_approved_at,
        )
