"""Tests for travel request models and their invariants."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from pydantic import ValidationError

from travel_approval_portal import (
    ApprovalChainEntry,
    ApprovedState,
    EmployeeRecord,
    ItineraryLeg,
    RejectedState,
    RequestStatus,
    TravelRequest,
    TripDetails,
    TripNature,
)

NOW = datetime(2025, 3, 1, 9, 30, tzinfo=UTC)


def _chain(*emails: str, approved: int = 0) -> list[ApprovalChainEntry]:
    return [
        ApprovalChainEntry(
            email=email,
            name=email.split("@")[0].title(),
            impact_level="4A",
            approved=position < approved,
            approved_at=NOW if position < approved else None,
        )
        for position, email in enumerate(emails)
    ]


def _request(trip_factory, **overrides: object) -> TravelRequest:
    data: dict[str, object] = {
        "request_id": "TR-2025-1001",
        "originator_email": "alice@company.example",
        "originator_name": "Alice",
        "approval_chain": _chain("bob@company.example", "carol@company.example"),
        "trip": trip_factory(),
    }
    data.update(overrides)
    return TravelRequest(**data)


def test_employee_record_normalises_fields() -> None:
    record = EmployeeRecord(
        email=" Alice@Company.Example ",
        name="Alice",
        manager_email="  ",
        impact_level=" 3A ",
    )

    assert record.email == "alice@company.example"
    assert record.manager_email is None
    assert record.impact_level == "3A"


def test_employee_record_is_immutable() -> None:
    record = EmployeeRecord(email="a@x.example", name="A")

    with pytest.raises(ValidationError):
        record.name = "B"


def test_round_trip_requires_core_fields(trip_factory) -> None:
    with pytest.raises(ValidationError, match="Missing trip fields: destination"):
        trip_factory(destination=None)


def test_return_date_cannot_precede_departure(trip_factory) -> None:
    with pytest.raises(ValidationError, match="Return date"):
        trip_factory(return_date=date(2025, 3, 1))


def test_check_out_cannot_precede_check_in(trip_factory) -> None:
    with pytest.raises(ValidationError, match="Check-out"):
        trip_factory(
            accommodation_required=True,
            check_in_date=date(2025, 3, 12),
            check_out_date=date(2025, 3, 11),
        )


def test_multicity_trip_uses_first_leg(trip_factory) -> None:
    trip = trip_factory(
        trip_nature=TripNature.MULTICITY,
        origin=None,
        destination=None,
        travel_date=None,
        itinerary_legs=[
            ItineraryLeg(origin="Chicago", destination="Denver", travel_date=date(2025, 3, 10)),
            ItineraryLeg(origin="Denver", destination="Austin", travel_date=date(2025, 3, 12)),
        ],
    )

    assert trip.origin == "Chicago"
    assert trip.destination == "Denver"
    assert trip.travel_date == date(2025, 3, 10)
    assert trip.return_date is None


def test_multicity_trip_needs_two_legs(trip_factory) -> None:
    with pytest.raises(ValidationError, match="at least two legs"):
        trip_factory(
            trip_nature=TripNature.MULTICITY,
            itinerary_legs=[
                ItineraryLeg(origin="Chicago", destination="Denver", travel_date=date(2025, 3, 10))
            ],
        )


def test_pending_request_requires_chain(trip_factory) -> None:
    with pytest.raises(ValidationError, match="non-empty approval chain"):
        _request(trip_factory, approval_chain=[])


def test_approvals_must_follow_chain_order(trip_factory) -> None:
    chain = _chain("bob@company.example", "carol@company.example")
    chain[1].approved = True

    with pytest.raises(ValidationError, match="strictly in chain order"):
        _request(trip_factory, approval_chain=chain)


def test_chain_rejects_duplicate_approvers(trip_factory) -> None:
    with pytest.raises(ValidationError, match="duplicate"):
        _request(
            trip_factory,
            approval_chain=_chain("bob@company.example", "BOB@company.example"),
        )


def test_chain_length_is_capped(trip_factory) -> None:
    emails = [f"m{index}@x.example" for index in range(11)]

    with pytest.raises(ValidationError, match="cannot exceed 10"):
        _request(trip_factory, approval_chain=_chain(*emails))


def test_approved_request_needs_poc_stamp(trip_factory) -> None:
    with pytest.raises(ValidationError, match="POC decisions"):
        _request(
            trip_factory,
            status=RequestStatus.APPROVED,
            approval_chain=_chain("bob@company.example", approved=1),
            current_approval_index=1,
        )


def test_current_approver_tracks_index(trip_factory) -> None:
    request = _request(
        trip_factory,
        approval_chain=_chain("bob@company.example", "carol@company.example", approved=1),
        current_approval_index=1,
    )

    assert request.current_approver().email == "carol@company.example"
    assert request.involves_approver(" BOB@company.example")
    assert request.chain_entry_for("dave@company.example") is None
    assert not request.is_terminal


def test_state_view_matches_status(trip_factory) -> None:
    approved = _request(
        trip_factory,
        status=RequestStatus.APPROVED,
        approval_chain=_chain("bob@company.example", approved=1),
        current_approval_index=1,
        manager_approved_by="bob@company.example",
        manager_approved_at=NOW,
        poc_approved_by="poc@company.example",
        poc_approved_at=NOW,
    )
    rejected = _request(trip_factory, status=RequestStatus.REJECTED)

    assert isinstance(approved.state, ApprovedState)
    assert approved.state.poc_approved_by == "poc@company.example"
    assert approved.is_terminal
    assert isinstance(rejected.state, RejectedState)
    assert rejected.state.index == 0


def test_request_round_trips_through_json(trip_factory) -> None:
    request = _request(trip_factory)

    restored = TravelRequest.model_validate_json(request.model_dump_json())

    assert restored == request
