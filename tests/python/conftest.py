"""Test configuration for adding src to the import path."""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import date
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from travel_approval_portal import (
    ApprovalPolicy,
    EmployeeRecord,
    InMemoryOrgDirectory,
    TripDetails,
    TripNature,
    WorkflowEngine,
)

POC_EMAIL = "poc@company.example"


@pytest.fixture()
def employee_factory() -> Callable[..., EmployeeRecord]:
    def _factory(email: str, **overrides: object) -> EmployeeRecord:
        local = email.split("@")[0]
        data: dict[str, object] = {
            "email": email,
            "name": local.title(),
            "employee_number": f"E-{local}",
            "impact_level": "5A",
        }
        data.update(overrides)
        return EmployeeRecord(**data)

    return _factory


@pytest.fixture()
def org_directory(employee_factory: Callable[..., EmployeeRecord]) -> InMemoryOrgDirectory:
    """alice -> bob (4A) -> carol (3A) -> dave (2A); erin has no manager."""

    return InMemoryOrgDirectory.from_records(
        [
            employee_factory("alice@company.example", manager_email="bob@company.example"),
            employee_factory(
                "bob@company.example",
                impact_level="4A",
                manager_email="carol@company.example",
            ),
            employee_factory(
                "carol@company.example",
                impact_level="3A",
                manager_email="dave@company.example",
            ),
            employee_factory("dave@company.example", impact_level="2A"),
            employee_factory("erin@company.example"),
            employee_factory("poc@company.example", name="Pat Coordinator"),
        ]
    )


@pytest.fixture()
def policy() -> ApprovalPolicy:
    return ApprovalPolicy(poc_emails={POC_EMAIL})


@pytest.fixture()
def trip_factory() -> Callable[..., TripDetails]:
    def _factory(**overrides: object) -> TripDetails:
        data: dict[str, object] = {
            "trip_nature": TripNature.ROUND_TRIP,
            "mode": "Flight",
            "passenger_name": "Alice",
            "passenger_phone": "+1-555-0100",
            "origin": "Chicago",
            "destination": "Denver",
            "travel_date": date(2025, 3, 10),
            "return_date": date(2025, 3, 14),
            "travel_class": "Economy",
            "purpose": "Customer onboarding",
        }
        data.update(overrides)
        return TripDetails(**data)

    return _factory


@pytest.fixture()
def engine(org_directory: InMemoryOrgDirectory, policy: ApprovalPolicy) -> WorkflowEngine:
    return WorkflowEngine(org_directory, policy=policy)
