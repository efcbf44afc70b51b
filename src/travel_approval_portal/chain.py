"""Build the ordered approval chain for a requester from the org directory."""

from __future__ import annotations

import logging

from .config import ApprovalPolicy, normalize_email
from .directory import OrgDirectory, lookup_employee
from .errors import DirectoryLookupFailed
from .models import ApprovalChainEntry, EmployeeRecord

logger = logging.getLogger(__name__)

UNKNOWN_IMPACT_LEVEL = "Unknown"


def _entry_for(manager: EmployeeRecord) -> ApprovalChainEntry:
    return ApprovalChainEntry(
        email=manager.email,
        name=manager.name,
        impact_level=manager.impact_level or UNKNOWN_IMPACT_LEVEL,
        employee_number=manager.employee_number,
        approved=False,
    )


def build_approval_chain(
    requester_email: str,
    directory: OrgDirectory,
    policy: ApprovalPolicy | None = None,
) -> list[ApprovalChainEntry]:
    """Walk the management line upward until a terminal impact level.

    The walk stops at the first manager whose impact level is in
    ``policy.terminal_impact_levels``, at a manager with no further manager,
    at a manager missing from the directory, on a revisited email, or once
    ``policy.max_chain_depth`` approvers are collected. A missing manager
    record truncates the chain unless ``policy.strict_directory`` is set.
    """

    policy = policy or ApprovalPolicy()
    chain: list[ApprovalChainEntry] = []

    requester = lookup_employee(directory, normalize_email(requester_email))
    if requester is None or not requester.manager_email:
        logger.info("No manager found for requester %s", requester_email)
        return chain

    visited: set[str] = set()
    current = normalize_email(requester.manager_email)

    while current and current not in visited:
        visited.add(current)

        manager = lookup_employee(directory, current)
        if manager is None:
            if policy.strict_directory:
                raise DirectoryLookupFailed(
                    current, f"Manager not found in directory: {current}"
                )
            logger.warning("Manager not found in directory: %s", current)
            break

        chain.append(_entry_for(manager))

        if policy.is_terminal_level(manager.impact_level):
            logger.info(
                "Reached final approval level %s for %s", manager.impact_level, manager.name
            )
            break

        if not manager.manager_email:
            logger.info("No higher manager found for %s", manager.name)
            break
        current = normalize_email(manager.manager_email)

        if len(chain) >= policy.max_chain_depth:
            logger.warning(
                "Approval chain reached %d levels; stopping", policy.max_chain_depth
            )
            break

    logger.info(
        "Built approval chain with %d manager(s): %s",
        len(chain),
        " -> ".join(f"{entry.name} ({entry.impact_level})" for entry in chain),
    )
    return chain
